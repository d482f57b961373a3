"""
Participant Model

Membership record of a user within a situation room.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ParticipantStatus(str, Enum):
    """Membership status of a participant"""
    PENDING = "PENDING"   # Invited, not yet accepted
    JOINED = "JOINED"     # Accepted, member of the remote channel


def participant_id(user_name: str, room_id: str) -> str:
    """Deterministic membership key for (user, room)"""
    return f"{user_name}-{room_id}"


@dataclass
class Participant:
    """
    Participant entity.

    A user appears at most once per room; the key is derived from
    (user_name, room_id). Status only moves PENDING -> JOINED, removal
    deletes the record.
    """
    room_id: str
    user_name: str
    status: ParticipantStatus = ParticipantStatus.PENDING
    invited_at: datetime = field(default_factory=datetime.utcnow)
    joined_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return participant_id(self.user_name, self.room_id)

    @property
    def is_joined(self) -> bool:
        return self.status == ParticipantStatus.JOINED

    @property
    def is_pending(self) -> bool:
        return self.status == ParticipantStatus.PENDING

    def join(self, at: datetime) -> None:
        """Mark participant as joined"""
        self.status = ParticipantStatus.JOINED
        self.joined_at = at
