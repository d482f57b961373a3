"""
Situation Room Storage Layer

PostgreSQL storage implementations for rooms and token mappings.
"""
from .base import BaseStorage
from .room_storage import RoomStorage
from .token_storage import TokenStorage

__all__ = [
    'BaseStorage',
    'RoomStorage',
    'TokenStorage',
]
