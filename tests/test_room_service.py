"""Tests for room lifecycle: create, resolve, delete and reads."""
import json

import pytest

from situation_room.archive import decode_message_log, decode_snapshot
from situation_room.exceptions import (
    ChannelNotFound,
    InvalidRoom,
    RemoteOperationFailed,
    RoomAlreadyResolved,
    RoomNotFound,
    UnsupportedEntityType,
    Unauthorized,
    ValidationFailed,
)
from situation_room.models.context import RequestContext
from situation_room.models.participant import ParticipantStatus
from situation_room.models.room import RoomStatus
from situation_room.models.token_mapping import TokenMapping
from situation_room.services.room_service import SituationRoomService

from tests.conftest import ALICE, BOB, CAROL, TEAM, TENANT, create_room


# Create

async def test_create_room_initial_state(room_service, room_storage, room_id):
    room = await room_storage.get_by_id(room_id, TENANT)

    assert room.status == RoomStatus.OPEN
    assert room.resolution is None
    assert room.created_by == "alice"
    assert room.team_id == TEAM
    assert room.tenant_id == TENANT
    assert room.total_message_count == 1
    assert room.get_participant("alice").status == ParticipantStatus.JOINED
    assert room.get_participant("alice").joined_at is not None
    assert room.get_participant("bob").status == ParticipantStatus.PENDING
    assert decode_message_log(room.chats) == []


async def test_create_room_returns_remote_body(room_service, chat_server):
    body = await room_service.create_room(
        ALICE,
        name="Late shipment",
        entity_type="shipment",
        object_ids=["SH-1"],
        participants=["bob"],
        purpose="delayed",
        situation_type="delay",
        header="watch",
    )

    assert body["display_name"] == "Late shipment"
    assert body["type"] == "P"
    assert body["team_id"] == TEAM
    assert body["header"] == "watch"
    assert body["id"] in chat_server.channels
    assert body["name"] != "Late shipment"


async def test_create_room_snapshots_entities(room_service, room_storage):
    room_id = await create_room(room_service, object_ids=["SH-1", "SH-2"])
    room = await room_storage.get_by_id(room_id, TENANT)

    assert json.loads(decode_snapshot(room.contexts)) == [
        {"type": "shipment", "id": "SH-1", "tenant": TENANT},
        {"type": "shipment", "id": "SH-2", "tenant": TENANT},
    ]
    assert room.domain_object_ids == ["SH-1", "SH-2"]


async def test_create_room_provisions_invitees(room_service, token_storage, room_id):
    bob = await token_storage.get_by_user("bob", TENANT)
    assert bob is not None and bob.is_complete


async def test_create_room_makes_no_member_call_for_creator(room_service, chat_server, room_id):
    assert chat_server.calls("POST", r"/channels/.*/members") == []


async def test_creator_listed_as_invitee_stays_joined(room_service, room_storage):
    room_id = await create_room(room_service, participants=["alice", "bob", "bob"])
    room = await room_storage.get_by_id(room_id, TENANT)

    assert [p.user_name for p in room.participants] == ["alice", "bob"]
    assert room.get_participant("alice").status == ParticipantStatus.JOINED


@pytest.mark.parametrize("field,value", [
    ("object_ids", []),
    ("participants", []),
    ("entity_type", ""),
    ("name", "  "),
    ("purpose", None),
    ("situation_type", ""),
    ("room_type", "X"),
])
async def test_create_room_validation_precedes_remote_calls(room_service, chat_server, field, value):
    with pytest.raises(ValidationFailed):
        await create_room(room_service, **{field: value})
    assert chat_server.requests == []


async def test_create_room_unsupported_entity_type(room_service, chat_server):
    with pytest.raises(UnsupportedEntityType):
        await create_room(room_service, entity_type="invoice")
    assert chat_server.calls("POST", "/channels") == []


async def test_create_room_remote_failure_persists_nothing(room_service, chat_server, room_storage):
    chat_server.fail("POST", "/channels", 500, {"message": "boom"})

    with pytest.raises(RemoteOperationFailed):
        await create_room(room_service)
    assert room_storage.rooms == {}


def test_build_participants_creator_supersedes_pending():
    from datetime import datetime

    at = datetime(2024, 1, 1)
    participants = SituationRoomService.build_participants("r1", "alice", ["bob", "alice"], at)

    by_user = {p.user_name: p for p in participants}
    assert len(participants) == 2
    assert by_user["alice"].status == ParticipantStatus.JOINED
    assert by_user["alice"].joined_at == at
    assert by_user["bob"].status == ParticipantStatus.PENDING
    assert by_user["bob"].id == "bob-r1"


# Resolve

async def test_resolve_room(room_service, room_storage, room_id):
    context = await room_service.resolve_room(ALICE, room_id, ["duplicate"], "dup of X")

    room = await room_storage.get_by_id(room_id, TENANT)
    assert room.status == RoomStatus.RESOLVED
    assert room.resolution.resolution == ["duplicate"]
    assert room.resolution.remark == "dup of X"
    assert room.resolution.resolved_by == "alice"
    assert room.updated_at == room.resolution.resolved_at
    assert context["room_status"] == "RESOLVED"
    assert context["resolution"] == ["duplicate"]
    assert context["resolution_remark"] == "dup of X"
    assert context["resolved_by"] == "alice"
    assert context["resolved_at"] > 0


async def test_resolve_makes_no_remote_call(room_service, chat_server, room_id):
    before = len(chat_server.requests)
    await room_service.resolve_room(ALICE, room_id, ["fixed"])
    assert len(chat_server.requests) == before


async def test_resolved_room_rejects_post(room_service, room_id):
    await room_service.resolve_room(ALICE, room_id, ["duplicate"], "dup of X")

    with pytest.raises(RoomAlreadyResolved):
        await room_service.post_message(ALICE, {"channel_id": room_id, "message": "hi"})


async def test_resolve_twice_is_rejected(room_service, room_storage, room_id):
    await room_service.resolve_room(ALICE, room_id, ["fixed"], "first")

    with pytest.raises(RoomAlreadyResolved):
        await room_service.resolve_room(ALICE, room_id, ["other"], "second")
    room = await room_storage.get_by_id(room_id, TENANT)
    assert room.resolution.remark == "first"


async def test_pending_participant_cannot_resolve(room_service, room_id):
    with pytest.raises(Unauthorized):
        await room_service.resolve_room(BOB, room_id, ["fixed"])


async def test_outsider_cannot_resolve(room_service, room_id):
    with pytest.raises(Unauthorized):
        await room_service.resolve_room(CAROL, room_id, ["fixed"])


@pytest.mark.parametrize("codes", [[], ["ok", " "], None])
async def test_resolve_requires_codes(room_service, room_id, codes):
    with pytest.raises(ValidationFailed):
        await room_service.resolve_room(ALICE, room_id, codes)


async def test_resolve_missing_room(room_service):
    with pytest.raises(InvalidRoom):
        await room_service.resolve_room(ALICE, "nope", ["fixed"])


# Delete

async def test_creator_deletes_room(room_service, room_storage, chat_server, room_id):
    body = await room_service.remove_room(ALICE, room_id)

    assert body["deletedRoomId"] == room_id
    assert body["status"] == "OK"
    assert await room_storage.get_by_id(room_id, TENANT) is None
    assert room_id not in chat_server.channels


async def test_non_creator_cannot_delete(room_service, room_storage, room_id):
    with pytest.raises(Unauthorized):
        await room_service.remove_room(CAROL, room_id)
    assert await room_storage.get_by_id(room_id, TENANT) is not None


async def test_delete_missing_room(room_service):
    with pytest.raises(RoomNotFound):
        await room_service.remove_room(ALICE, "nope")


async def test_remote_delete_failure_keeps_local_delete(room_service, room_storage, chat_server, room_id):
    chat_server.fail("DELETE", r"/channels/[^/]+", 500, {"message": "remote down"})

    with pytest.raises(RemoteOperationFailed) as excinfo:
        await room_service.remove_room(ALICE, room_id)

    assert "remote down" in str(excinfo.value)
    assert await room_storage.get_by_id(room_id, TENANT) is None


async def test_delete_resolved_room(room_service, room_storage, room_id):
    await room_service.resolve_room(ALICE, room_id, ["fixed"])
    await room_service.remove_room(ALICE, room_id)
    assert await room_storage.get_by_id(room_id, TENANT) is None


# Reads

async def test_room_context_view(room_service, room_id):
    context = await room_service.get_room_context(BOB, room_id)

    assert context["id"] == room_id
    assert context["name"] == "Late shipment"
    assert context["room_status"] == "OPEN"
    assert context["your_status"] == "PENDING"
    assert context["participants"] == ["alice", "bob"]
    assert context["entity"] == [{"type": "shipment", "id": "SH-1", "tenant": TENANT}]
    assert context["total_msg_count"] == 1
    assert context["purpose"] == "Shipment SH-1 is delayed"
    assert context["resolution"] is None


async def test_room_context_missing(room_service):
    with pytest.raises(ChannelNotFound):
        await room_service.get_room_context(ALICE, "nope")


async def test_room_context_requires_id(room_service):
    with pytest.raises(ValidationFailed):
        await room_service.get_room_context(ALICE, "")


async def test_list_rooms_filters(room_service, room_id):
    other_id = await create_room(room_service, name="Second", participants=["carol"])
    await room_service.resolve_room(ALICE, other_id, ["fixed"])

    assert [r["id"] for r in await room_service.list_rooms(ALICE)] == [other_id, room_id]
    assert [r["id"] for r in await room_service.list_rooms(ALICE, by="room", status="RESOLVED")] == [other_id]
    assert [r["id"] for r in await room_service.list_rooms(ALICE, by="room", status="open")] == [room_id]
    assert [r["id"] for r in await room_service.list_rooms(BOB, by="user", status="PENDING")] == [room_id]
    assert [r["id"] for r in await room_service.list_rooms(BOB, status="JOINED")] == []
    assert await room_service.list_rooms(CAROL, by="user", status="JOINED") == []


async def test_list_rooms_unknown_status(room_service, room_id):
    with pytest.raises(ValidationFailed):
        await room_service.list_rooms(ALICE, by="user", status="ARCHIVED")
    with pytest.raises(ValidationFailed):
        await room_service.list_rooms(ALICE, by="room", status="JOINED")


# Tenant isolation

async def test_rooms_are_invisible_to_other_tenants(room_service, room_storage, token_storage, chat_server, room_id):
    alice = await token_storage.get_by_user("alice", TENANT)
    await token_storage.create(TokenMapping(
        app_user_id="alice",
        tenant_id="tenant-2",
        remote_user_id=alice.remote_user_id,
        proxy_token=alice.proxy_token,
        team_id=TEAM,
    ))
    other_alice = RequestContext(user_id="alice", tenant_id="tenant-2")

    assert await room_service.list_rooms(other_alice) == []
    assert await room_service.list_rooms(other_alice, by="room", status="OPEN") == []
    assert await room_service.get_unread_counts(other_alice) == []
    with pytest.raises(ChannelNotFound):
        await room_service.get_room_context(other_alice, room_id)
    with pytest.raises(InvalidRoom):
        await room_service.resolve_room(other_alice, room_id, ["fixed"])
    with pytest.raises(InvalidRoom):
        await room_service.post_message(other_alice, {"channel_id": room_id, "message": "hi"})
    with pytest.raises(RoomNotFound):
        await room_service.remove_room(other_alice, room_id)

    room = await room_storage.get_by_id(room_id, TENANT)
    assert room is not None and room.status == RoomStatus.OPEN
    assert decode_message_log(room.chats) == []
    assert room_id in chat_server.channels
    assert await room_storage.get_by_id(room_id, "tenant-2") is None
