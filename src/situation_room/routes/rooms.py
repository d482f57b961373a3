"""
Situation Room Routes

API endpoints for rooms, participants and messages.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..models.context import RequestContext
from ..services.engine_service import get_engine_service, EngineService
from .auth import get_request_context

router = APIRouter(prefix="/api/v1/chat", tags=["situation-rooms"])


# Request models

class CreateRoomRequest(BaseModel):
    name: Optional[str] = None
    entity_type: Optional[str] = None
    object_ids: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)
    purpose: Optional[str] = None
    situation_type: Optional[str] = None
    header: str = ""
    type: str = "P"


class ResolveRoomRequest(BaseModel):
    resolution: List[str] = Field(default_factory=list)
    remark: Optional[str] = None
    resolution_type: Optional[str] = None


class InviteRequest(BaseModel):
    users: List[str] = Field(default_factory=list)


# Dependency
def get_engine() -> EngineService:
    return get_engine_service()


# Endpoints

@router.get("/token")
async def get_session_token(
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Chat token for the caller, provisioning the caller on first use"""
    return await engine.identity_service.get_session_token(ctx)


@router.get("/channels")
async def list_channels(
    by: Optional[str] = None,
    type: Optional[str] = None,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """List caller's rooms, optionally filtered by participant or room status"""
    return await engine.room_service.list_rooms(ctx, by=by, status=type)


@router.post("/channels")
async def create_channel(
    request: CreateRoomRequest,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Create a situation room"""
    return await engine.room_service.create_room(
        ctx,
        name=request.name,
        entity_type=request.entity_type,
        object_ids=request.object_ids,
        participants=request.participants,
        purpose=request.purpose,
        situation_type=request.situation_type,
        header=request.header,
        room_type=request.type,
    )


@router.get("/channels/{room_id}")
async def get_channel_context(
    room_id: str,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Room context"""
    return await engine.room_service.get_room_context(ctx, room_id)


@router.delete("/channels/{room_id}")
async def delete_channel(
    room_id: str,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Delete room (creator only)"""
    return await engine.room_service.remove_room(ctx, room_id)


@router.post("/channels/{room_id}/invite")
async def invite_users(
    room_id: str,
    request: InviteRequest,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Invite users to room"""
    return await engine.room_service.invite_users(ctx, room_id, request.users)


@router.post("/channels/{room_id}/join")
async def join_channel(
    room_id: str,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Accept invitation"""
    return await engine.room_service.accept_invitation(ctx, room_id)


@router.post("/channels/{room_id}/resolve")
async def resolve_channel(
    room_id: str,
    request: ResolveRoomRequest,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Resolve room"""
    return await engine.room_service.resolve_room(
        ctx,
        room_id,
        resolution=request.resolution,
        remark=request.remark,
        resolution_type=request.resolution_type,
    )


@router.delete("/channels/{room_id}/participants/{user}")
async def remove_participant(
    room_id: str,
    user: str,
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Remove participant from room"""
    return await engine.room_service.remove_participant(ctx, room_id, user)


@router.post("/posts")
async def post_message(
    chat: Dict[str, Any],
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Post message to room; body is forwarded to the chat provider as is"""
    return await engine.room_service.post_message(ctx, chat)


@router.get("/unread")
async def get_unread_counts(
    ctx: RequestContext = Depends(get_request_context),
    engine: EngineService = Depends(get_engine)
):
    """Unread message counts of caller's joined rooms"""
    return await engine.room_service.get_unread_counts(ctx)
