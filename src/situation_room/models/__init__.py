"""
Situation Room Data Models

Domain models for situation rooms and chat identities.
"""
from .context import RequestContext
from .participant import Participant, ParticipantStatus, participant_id
from .room import Room, RoomStatus, Resolution
from .token_mapping import TokenMapping, PLACEHOLDER_TOKEN

__all__ = [
    'RequestContext',
    'Participant',
    'ParticipantStatus',
    'participant_id',
    'Room',
    'RoomStatus',
    'Resolution',
    'TokenMapping',
    'PLACEHOLDER_TOKEN',
]
