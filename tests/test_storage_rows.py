"""Tests for database row conversion (no database needed)."""
import json
from datetime import datetime
from uuid import uuid4

from situation_room.archive import encode_message_log, encode_snapshot
from situation_room.config import Config
from situation_room.models.participant import ParticipantStatus
from situation_room.models.room import RoomStatus
from situation_room.storage.room_storage import RoomStorage
from situation_room.storage.token_storage import TokenStorage


def room_row(**overrides) -> dict:
    now = datetime(2024, 3, 1, 12, 0, 0)
    row = {
        "id": "r1",
        "name": "Late shipment",
        "entity_type": "shipment",
        "created_by": "alice",
        "description": "delayed",
        "situation_type": "delay",
        "team_id": "team-1",
        "tenant_id": "t1",
        "status": "OPEN",
        "resolution": None,
        "domain_object_ids": ["SH-1"],
        "chats": memoryview(encode_message_log([{"message": "hi"}])),
        "contexts": encode_snapshot("[]"),
        "total_message_count": 2,
        "created_at": now,
        "updated_at": now,
        "last_post_at": None,
        "version": 3,
    }
    row.update(overrides)
    return row


def test_room_row_conversion():
    storage = RoomStorage(Config.get_postgres_dsn())
    participant = storage._row_to_participant({
        "room_id": "r1",
        "user_name": "bob",
        "status": "JOINED",
        "invited_at": datetime(2024, 3, 1),
        "joined_at": datetime(2024, 3, 2),
    })

    room = storage._row_to_room(room_row(), [participant])

    assert room.status == RoomStatus.OPEN
    assert room.version == 3
    assert isinstance(room.chats, bytes)
    assert room.get_participant("bob").status == ParticipantStatus.JOINED
    assert room.resolution is None


def test_resolved_room_row_conversion():
    storage = RoomStorage(Config.get_postgres_dsn())
    resolution = json.dumps({
        "resolution": ["duplicate"],
        "remark": "dup of X",
        "resolved_by": "alice",
        "resolved_at": "2024-03-02T10:00:00",
        "resolution_type": None,
    })

    room = storage._row_to_room(room_row(status="RESOLVED", resolution=resolution), [])

    assert room.is_resolved
    assert room.resolution.resolution == ["duplicate"]
    assert room.resolution.resolved_at == datetime(2024, 3, 2, 10, 0, 0)


def test_resolution_is_serialized_for_jsonb():
    storage = RoomStorage(Config.get_postgres_dsn())
    room = storage._row_to_room(room_row(), [])
    assert storage._resolution_json(room) is None


def test_token_row_conversion():
    storage = TokenStorage(Config.get_postgres_dsn())
    mapping_id = uuid4()

    mapping = storage._row_to_mapping({
        "id": mapping_id,
        "app_user_id": "alice",
        "tenant_id": "t1",
        "remote_user_id": "mm1",
        "proxy_token": "tok",
        "team_id": None,
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    })

    assert mapping.id == mapping_id
    assert mapping.has_token
    assert not mapping.is_complete


async def test_ping_without_pool():
    assert await RoomStorage("postgresql://nobody@localhost/none").ping() is False
