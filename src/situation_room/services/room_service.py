"""
Situation Room Service

Room and participant orchestration between the local room store and the
remote chat provider.

Ordering rules:
- validation and state checks run before any remote call
- room creation: remote channel first, local record once the id is known
- room deletion and participant removal: local first, then remote; a remote
  failure is raised without restoring the local record
- unread counts are best effort, failing rooms are skipped
"""
import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..archive import decode_message_log, encode_message_log, encode_snapshot
from ..chat.base import BaseChatClient, remote_id
from ..config import Config
from ..domain.resolver import EntityResolver
from ..exceptions import (
    ChannelNotFound,
    ChatError,
    InvalidRoom,
    ParticipantNotMember,
    RemoteOperationFailed,
    RoomAlreadyResolved,
    RoomNotFound,
    Unauthorized,
    ValidationFailed,
)
from ..locks import KeyedLockManager
from ..models.context import RequestContext
from ..models.participant import Participant, ParticipantStatus
from ..models.room import Room, RoomStatus, Resolution
from ..storage.room_storage import RoomStorage
from .identity_service import IdentityService

logger = logging.getLogger("situation.services.room")

CHANNEL_TYPE_PRIVATE = "P"
CHANNEL_TYPE_OPEN = "O"
FILTER_BY_USER = "user"

SUCCESS_STATUS = {"Status": "Success"}


def generate_channel_name() -> str:
    """Unique remote channel handle (display name carries the room name)"""
    return uuid4().hex


def _require(value: Any, message: str) -> None:
    if value is None:
        raise ValidationFailed(message)
    if isinstance(value, str) and not value.strip():
        raise ValidationFailed(message)
    if isinstance(value, (list, dict, tuple, set)) and not value:
        raise ValidationFailed(message)


class SituationRoomService:
    """Service for situation room operations"""

    def __init__(
        self,
        room_storage: RoomStorage,
        identity_service: IdentityService,
        chat_client: BaseChatClient,
        entity_resolver: EntityResolver,
        locks: KeyedLockManager,
        team_id: Optional[str] = None
    ):
        self.room_storage = room_storage
        self.identity_service = identity_service
        self.chat_client = chat_client
        self.entity_resolver = entity_resolver
        self.locks = locks
        self.team_id = team_id if team_id is not None else Config.CHAT_TEAM_ID

    # Room lifecycle

    async def create_room(
        self,
        ctx: RequestContext,
        name: str,
        entity_type: str,
        object_ids: List[str],
        participants: List[str],
        purpose: str,
        situation_type: str,
        header: str = "",
        room_type: str = CHANNEL_TYPE_PRIVATE
    ) -> Dict[str, Any]:
        """
        Create a room backed by a new remote channel.

        The creator joins immediately, invitees are PENDING until they
        accept. Returns the remote channel creation response unmodified.
        """
        _require(object_ids, "Reference domain object can't be null or empty")
        _require(participants, "Participants can't be null or empty")
        _require(entity_type, "Entity type can't be null or empty")
        _require(name, "Room name can't be null or empty")
        _require(purpose, "Purpose can't be null or empty")
        _require(situation_type, "Situation type can't be null or empty")
        room_type = room_type or CHANNEL_TYPE_PRIVATE
        if room_type not in (CHANNEL_TYPE_OPEN, CHANNEL_TYPE_PRIVATE):
            raise ValidationFailed(f"Invalid room type {room_type}")

        logger.info(f"Creating room {name} requested by {ctx.user_id} for {entity_type} {object_ids}")
        snapshot_json = await self._snapshot_entities(ctx, entity_type, object_ids)

        creator = await self.identity_service.ensure_provisioned(ctx.user_id, ctx.tenant_id)
        response = await self.chat_client.create_channel(
            token=creator.proxy_token,
            team_id=self.team_id,
            name=generate_channel_name(),
            display_name=name,
            purpose=purpose,
            header=header or "",
            channel_type=room_type,
        )
        room_id = remote_id(response) if response.ok else None
        if room_id is None:
            logger.error(f"Remote channel creation failed for room {name}: {response.error_detail}")
            raise RemoteOperationFailed(f"Unable to create channel {name}: {response.error_detail}")
        logger.info(f"Channel {name} created in remote system with id {room_id}")

        now = datetime.utcnow()
        room = Room(
            id=room_id,
            name=name,
            entity_type=entity_type,
            created_by=ctx.user_id,
            description=purpose,
            situation_type=situation_type,
            team_id=self.team_id,
            tenant_id=ctx.tenant_id,
            status=RoomStatus.OPEN,
            resolution=None,
            participants=self.build_participants(room_id, ctx.user_id, participants, now),
            domain_object_ids=list(object_ids),
            chats=encode_message_log([]),
            contexts=encode_snapshot(snapshot_json),
            total_message_count=1,
            created_at=now,
            updated_at=now,
            last_post_at=now,
        )
        await self.room_storage.create(room)
        logger.info(f"Room {room_id} persisted with {len(room.participants)} participants")

        for user in participants:
            await self.identity_service.ensure_provisioned(user, ctx.tenant_id)

        async with self.locks.room(room_id):
            await self._join_room(room_id, ctx.tenant_id, ctx.user_id)
        return response.body

    async def resolve_room(
        self,
        ctx: RequestContext,
        room_id: str,
        resolution: List[str],
        remark: Optional[str] = None,
        resolution_type: Optional[str] = None
    ) -> dict:
        """Resolve an open room (local only). Returns the room context."""
        logger.info(f"User {ctx.user_id} resolving room {room_id} with {resolution}")
        _require(room_id, "Room Id can't be null or empty")
        _require(resolution, "Resolution can't be null or empty")
        for code in resolution:
            _require(code, "Invalid resolution type")

        async with self.locks.room(room_id):
            room = await self._get_room(room_id, ctx.tenant_id, InvalidRoom)
            self._check_open_member(room, ctx.user_id, "Room is already resolved")
            self._check_not_pending(room, ctx.user_id, "resolve")

            room.resolution = Resolution(
                resolution=list(resolution),
                remark=remark,
                resolved_by=ctx.user_id,
                resolved_at=datetime.utcnow(),
                resolution_type=resolution_type,
            )
            room.status = RoomStatus.RESOLVED
            room.updated_at = room.resolution.resolved_at
            room = await self.room_storage.update(room)

        logger.info(f"Room {room_id} status changed to resolved by user {ctx.user_id}")
        return room.to_context(ctx.user_id)

    async def remove_room(self, ctx: RequestContext, room_id: str) -> Dict[str, Any]:
        """
        Delete a room (creator only).

        The local record is deleted before the remote channel. If the remote
        call fails the local record stays deleted and RemoteOperationFailed
        is raised.
        """
        logger.info(f"Delete room {room_id} called by user {ctx.user_id}")
        _require(room_id, "Room Id can't be null or empty")

        async with self.locks.room(room_id):
            room = await self.room_storage.get_by_id(room_id, ctx.tenant_id)
            if room is None:
                raise RoomNotFound(f"Room {room_id} does not exist")
            if room.created_by != ctx.user_id:
                raise Unauthorized("Room can only be removed by creator")
            caller = await self.identity_service.require_mapping(ctx.user_id, ctx.tenant_id)

            await self.room_storage.delete(room_id, ctx.tenant_id)
            logger.info(f"Room {room_id} deleted locally")

            response = await self.chat_client.delete_channel(caller.proxy_token, room_id)
            if not response.ok:
                logger.error(f"Error {response.error_detail} while deleting channel {room_id} for user {ctx.user_id}")
                raise RemoteOperationFailed(response.error_detail)

        logger.info(f"Room {room_id} removed by {ctx.user_id}")
        body = dict(response.body)
        body["deletedRoomId"] = room_id
        return body

    # Participants

    async def invite_users(self, ctx: RequestContext, room_id: str, users: List[str]) -> Dict[str, Any]:
        """Invite users as PENDING participants (existing members untouched)"""
        _require(room_id, "Room Id can't be null or empty")
        _require(users, "Users can't be empty")
        for user in users:
            _require(user, "User can't be null or empty")

        async with self.locks.room(room_id):
            room = await self._get_room(room_id, ctx.tenant_id, InvalidRoom)
            self._check_open_member(room, ctx.user_id, "New invitation can't be sent for resolved room")
            self._check_not_pending(room, ctx.user_id, "invite users to")

            for user in users:
                await self.identity_service.ensure_provisioned(user, ctx.tenant_id)

            now = datetime.utcnow()
            added = []
            for user in dict.fromkeys(users):
                if room.get_participant(user) is None:
                    room.participants.append(Participant(room_id=room_id, user_name=user, invited_at=now))
                    added.append(user)
            if added:
                room.updated_at = now
                await self.room_storage.update(room)

        logger.info(f"User {ctx.user_id} invited {added} to room {room_id}")
        return dict(SUCCESS_STATUS)

    async def accept_invitation(self, ctx: RequestContext, room_id: str) -> Dict[str, Any]:
        """Join a room the caller was invited to (idempotent)"""
        _require(room_id, "Room id can't be null or empty")
        async with self.locks.room(room_id):
            response = await self._join_room(room_id, ctx.tenant_id, ctx.user_id)
        logger.info(f"User {ctx.user_id} joined room {room_id}")
        return response

    async def remove_participant(self, ctx: RequestContext, room_id: str, target_user: str) -> Dict[str, Any]:
        """
        Remove a participant.

        Local record first; remote membership is removed only when the
        target had joined.
        """
        logger.info(f"Remove participant {target_user} from room {room_id} called by {ctx.user_id}")
        _require(room_id, "Room Id can't be null or empty")
        _require(target_user, "Target user can't be null or empty")

        async with self.locks.room(room_id):
            room = await self._get_room(room_id, ctx.tenant_id, InvalidRoom)
            self._check_open_member(room, ctx.user_id, "Room is already resolved, user can't be removed")
            self._check_not_pending(room, ctx.user_id, "remove participants of")
            if room.created_by == target_user:
                raise Unauthorized("Creator of room can't be removed")

            participant = room.get_participant(target_user)
            if participant is None:
                raise ParticipantNotMember(f"User {target_user} does not belong to room {room_id}")

            caller = target = None
            if participant.is_joined:
                caller = await self.identity_service.require_mapping(ctx.user_id, ctx.tenant_id)
                target = await self.identity_service.require_mapping(target_user, ctx.tenant_id)

            room.participants.remove(participant)
            room.updated_at = datetime.utcnow()
            await self.room_storage.update(room)
            logger.info(f"Participant {target_user} removed locally from room {room_id}")

            if participant.is_joined:
                response = await self.chat_client.remove_channel_member(
                    caller.proxy_token, room_id, target.remote_user_id
                )
                if not response.ok:
                    logger.error(f"Error {response.error_detail} while removing {target_user} from channel {room_id}")
                    raise RemoteOperationFailed(response.error_detail)

        logger.info(f"User {ctx.user_id} removed participant {target_user} from room {room_id}")
        return dict(SUCCESS_STATUS)

    # Messages

    async def post_message(self, ctx: RequestContext, chat: Dict[str, Any]) -> Dict[str, Any]:
        """
        Post a message to the remote channel and archive it locally.

        The payload is forwarded verbatim; it must carry channel_id. If
        archival fails after a successful post, the message exists only
        remotely.
        """
        _require(chat, "Post message can't be null or empty")
        room_id = chat.get("channel_id")
        if not isinstance(room_id, str):
            raise ValidationFailed("Channel can't be null")
        _require(room_id, "Channel can't be empty")

        room = await self._get_room(room_id, ctx.tenant_id, InvalidRoom)
        self._check_open_member(room, ctx.user_id, "Message can't be posted to a resolved room")
        self._check_not_pending(room, ctx.user_id, "post to")

        payload = dict(chat)
        logger.info(f"User {ctx.user_id} posting message to channel {room_id}")
        mapping = await self.identity_service.require_mapping(ctx.user_id, ctx.tenant_id)
        response = await self.chat_client.create_post(mapping.proxy_token, payload)
        if not response.ok:
            logger.error(f"Error {response.error_detail} while posting to channel {room_id}")
            raise RemoteOperationFailed(response.error_detail)
        logger.info(f"Message posted into channel {room_id} by user {ctx.user_id}")

        try:
            await self._archive_message(ctx, room_id, payload)
        except ChatError as e:
            logger.error(f"Message posted to {room_id} but archival failed: {e}")
            raise
        return response.body

    async def get_unread_counts(self, ctx: RequestContext) -> List[Dict[str, Any]]:
        """Unread counts of every joined room; failing rooms are left out"""
        logger.info(f"User {ctx.user_id} called for unread message count")
        mapping = await self.identity_service.get_mapping(ctx.user_id, ctx.tenant_id)
        if mapping is None or not mapping.has_token:
            logger.info(f"User {ctx.user_id} has no chat identity yet, no unread counts")
            return []

        rooms = await self.room_storage.list_by_user_and_participant_status(
            ctx.user_id, ctx.tenant_id, ParticipantStatus.JOINED
        )
        logger.info(f"Fetching unread count of {len(rooms)} rooms for user {ctx.user_id} "
                    f"as remote user {mapping.remote_user_id}")

        results = await asyncio.gather(*[
            self._unread_count(mapping.proxy_token, mapping.remote_user_id, room.id, ctx.user_id)
            for room in rooms
        ])
        return [result for result in results if result is not None]

    # Reads

    async def get_room_context(self, ctx: RequestContext, room_id: str) -> dict:
        """Context view of one room"""
        _require(room_id, "Channel id can't be null or empty")
        logger.info(f"Fetching room {room_id} context for user {ctx.user_id}")
        room = await self.room_storage.get_by_id(room_id, ctx.tenant_id)
        if room is None:
            logger.error(f"Chat room {room_id} does not exist")
            raise ChannelNotFound(f"Channel {room_id} does not exist")
        return room.to_context(ctx.user_id)

    async def list_rooms(
        self,
        ctx: RequestContext,
        by: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[dict]:
        """
        List caller's rooms, latest modified first.

        No status: all rooms. With status and by empty or "user": filter on
        the caller's participant status (PENDING/JOINED). Otherwise filter on
        room status (OPEN/RESOLVED).
        """
        if not status:
            logger.info(f"Fetching all chat rooms for user {ctx.user_id}")
            rooms = await self.room_storage.list_by_user(ctx.user_id, ctx.tenant_id)
        elif not by or by.strip() == FILTER_BY_USER:
            logger.info(f"Fetching {status} chat rooms for user {ctx.user_id}")
            try:
                participant_status = ParticipantStatus(status.strip().upper())
            except ValueError:
                raise ValidationFailed(f"Unknown participant status {status}") from None
            rooms = await self.room_storage.list_by_user_and_participant_status(
                ctx.user_id, ctx.tenant_id, participant_status
            )
        else:
            logger.info(f"Fetching {status} chat rooms for user {ctx.user_id}")
            try:
                room_status = RoomStatus(status.strip().upper())
            except ValueError:
                raise ValidationFailed(f"Unknown room status {status}") from None
            rooms = await self.room_storage.list_by_user_and_room_status(ctx.user_id, ctx.tenant_id, room_status)
        return [room.to_context(ctx.user_id) for room in rooms]

    # Helpers

    @staticmethod
    def build_participants(
        room_id: str,
        creator: str,
        invitees: List[str],
        at: datetime
    ) -> List[Participant]:
        """
        Initial participant set: invitees PENDING, creator JOINED.

        The creator's JOINED record replaces any PENDING record with the
        same key, so listing the creator as invitee has no effect.
        """
        participants: Dict[str, Participant] = {}
        creator_record = Participant(room_id=room_id, user_name=creator, invited_at=at)
        participants[creator_record.id] = creator_record
        for user in invitees:
            record = Participant(room_id=room_id, user_name=user, invited_at=at)
            participants.setdefault(record.id, record)

        creator_record = Participant(room_id=room_id, user_name=creator, invited_at=at)
        creator_record.join(at)
        participants[creator_record.id] = creator_record
        return list(participants.values())

    async def _snapshot_entities(self, ctx: RequestContext, entity_type: str, object_ids: List[str]) -> str:
        entities = []
        for object_id in object_ids:
            entities.append(await self.entity_resolver.resolve(entity_type, object_id, ctx.tenant_id))
        return json.dumps(entities, default=str)

    async def _join_room(self, room_id: str, tenant_id: str, user: str) -> Dict[str, Any]:
        """Move user from PENDING to JOINED; caller holds the room lock"""
        room = await self._get_room(room_id, tenant_id, InvalidRoom)
        participant = room.get_participant(user)
        if participant is None:
            raise ParticipantNotMember(f"User {user} is not invited to room {room_id}")

        if participant.is_joined:
            logger.info(f"User {user} already joined room {room_id}, nothing to do")
            return {"channel_id": room_id, "user_id": user}

        creator = await self.identity_service.require_mapping(room.created_by, room.tenant_id)
        joiner = await self.identity_service.require_mapping(user, room.tenant_id)

        now = datetime.utcnow()
        participant.join(now)
        room.updated_at = now
        room.total_message_count += 1

        logger.info(f"Adding user {user} to room {room_id} as remote user {joiner.remote_user_id}")
        response = await self.chat_client.add_channel_member(creator.proxy_token, room_id, joiner.remote_user_id)
        if not response.ok:
            logger.error(f"Error {response.error_detail} while adding {user} to channel {room_id}")
            raise RemoteOperationFailed(f"Unable to join room {room_id}: {response.error_detail}")

        await self.room_storage.update(room)
        logger.info(f"Room {room_id} updated for newly joined {user}")
        return response.body

    async def _archive_message(self, ctx: RequestContext, room_id: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"Archiving message for room {room_id}")
        async with self.locks.room(room_id):
            # Room may have been resolved or the poster removed since validation
            room = await self._get_room(room_id, ctx.tenant_id, InvalidRoom)
            self._check_open_member(room, ctx.user_id, "Message can't be archived to a resolved room")
            self._check_not_pending(room, ctx.user_id, "post to")
            messages = decode_message_log(room.chats)
            messages.append(payload)
            room.chats = encode_message_log(messages)
            room.total_message_count += 1
            now = datetime.utcnow()
            room.last_post_at = now
            room.updated_at = now
            await self.room_storage.update(room)
        logger.debug(f"Message archived for room {room_id}")

    async def _unread_count(
        self,
        token: str,
        remote_user_id: str,
        room_id: str,
        user: str
    ) -> Optional[Dict[str, Any]]:
        try:
            response = await self.chat_client.get_channel_unread(token, remote_user_id, room_id)
        except Exception as e:
            logger.error(f"Unable to fetch unread count for channel {room_id} for user {user}: {e}")
            return None
        if not response.ok:
            logger.error(f"Error {response.error_detail} while fetching unread count "
                         f"for channel {room_id} for user {user}")
            return None
        return response.body

    async def _get_room(self, room_id: str, tenant_id: str, missing_error) -> Room:
        logger.debug(f"Fetching chat room by id {room_id}")
        room = await self.room_storage.get_by_id(room_id, tenant_id)
        if room is None:
            raise missing_error(f"Room {room_id} does not exist")
        return room

    def _check_open_member(self, room: Room, user: str, resolved_message: str) -> None:
        if room.is_resolved:
            raise RoomAlreadyResolved(resolved_message)
        if room.get_participant(user) is None:
            raise Unauthorized(f"You are not part of {room.name} room")

    def _check_not_pending(self, room: Room, user: str, action: str) -> None:
        if room.is_pending(user):
            raise Unauthorized(f"You are not authorized to {action} room {room.name}")
