"""
Situation Room Services

Business logic services for situation rooms.
"""
from .engine_service import EngineService
from .identity_service import IdentityService
from .room_service import SituationRoomService

__all__ = [
    'EngineService',
    'IdentityService',
    'SituationRoomService',
]
