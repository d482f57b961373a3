"""
Situation Room Model

Represents a discussion room bound to business objects and mapped 1:1 to a
remote chat channel.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from ..archive import decode_snapshot, encode_message_log, encode_snapshot
from .participant import Participant, ParticipantStatus


class RoomStatus(str, Enum):
    """Room lifecycle status (OPEN -> RESOLVED only)"""
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


def to_epoch_millis(value: Optional[datetime]) -> int:
    """UTC datetime to epoch milliseconds (0 when unset)"""
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


@dataclass
class Resolution:
    """Outcome attached to a room when it is resolved. Immutable once attached."""
    resolution: List[str]
    remark: Optional[str]
    resolved_by: str
    resolved_at: datetime = field(default_factory=datetime.utcnow)
    resolution_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "resolution": list(self.resolution),
            "remark": self.remark,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat(),
            "resolution_type": self.resolution_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Resolution":
        return cls(
            resolution=list(data.get("resolution") or []),
            remark=data.get("remark"),
            resolved_by=data.get("resolved_by", ""),
            resolved_at=datetime.fromisoformat(data["resolved_at"]) if isinstance(data.get("resolved_at"), str) else data.get("resolved_at", datetime.utcnow()),
            resolution_type=data.get("resolution_type"),
        )


@dataclass
class Room:
    """
    Situation room entity.

    The id is assigned by the remote chat provider when the channel is
    created. chats and contexts are archive containers (see archive.py):
    chats is the append-only message log, contexts the business object
    snapshot captured once at creation.

    Invariants:
    - status == RESOLVED iff resolution is not None
    - total_message_count never decreases
    - version increases by one on every persisted update
    """
    id: str
    name: str
    entity_type: str
    created_by: str
    description: str = ""
    situation_type: str = ""
    team_id: Optional[str] = None
    tenant_id: str = ""
    status: RoomStatus = RoomStatus.OPEN
    resolution: Optional[Resolution] = None
    participants: List[Participant] = field(default_factory=list)
    domain_object_ids: List[str] = field(default_factory=list)
    chats: bytes = field(default_factory=lambda: encode_message_log([]))
    contexts: bytes = field(default_factory=lambda: encode_snapshot("[]"))
    total_message_count: int = 1
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    last_post_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_resolved(self) -> bool:
        return self.status == RoomStatus.RESOLVED

    def get_participant(self, user_name: str) -> Optional[Participant]:
        """Find participant record for user"""
        for participant in self.participants:
            if participant.user_name == user_name:
                return participant
        return None

    def is_pending(self, user_name: str) -> bool:
        participant = self.get_participant(user_name)
        return participant is not None and participant.status == ParticipantStatus.PENDING

    def entity_snapshot(self) -> list:
        """Decoded business object snapshot"""
        return json.loads(decode_snapshot(self.contexts))

    def to_context(self, caller: str) -> dict:
        """Room context view for the given caller"""
        your_status = None
        users = []
        for participant in self.participants:
            if participant.user_name == caller:
                your_status = participant.status.value
            users.append(participant.user_name)

        context = {
            "id": self.id,
            "name": self.name,
            "team_id": self.team_id,
            "created_by": self.created_by,
            "entity_type": self.entity_type,
            "room_status": self.status.value,
            "resolution": None,
            "resolution_remark": None,
            "resolved_by": None,
            "resolved_at": 0,
            "your_status": your_status,
            "participants": users,
            "total_msg_count": self.total_message_count,
            "purpose": self.description,
            "situation_type": self.situation_type,
            "entity": self.entity_snapshot(),
            "created_at": to_epoch_millis(self.created_at),
            "update_at": to_epoch_millis(self.updated_at),
            "last_post_at": to_epoch_millis(self.last_post_at),
            "delete_at": 0,
            "expire_at": 0,
            "extra_update_at": 0,
        }
        if self.resolution is not None:
            context["resolution"] = list(self.resolution.resolution)
            context["resolution_remark"] = self.resolution.remark
            context["resolved_by"] = self.resolution.resolved_by
            context["resolved_at"] = to_epoch_millis(self.resolution.resolved_at)
        return context
