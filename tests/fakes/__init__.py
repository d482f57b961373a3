from .chat_server import FakeMattermost
from .storage import InMemoryRoomStorage, InMemoryTokenStorage

__all__ = [
    'FakeMattermost',
    'InMemoryRoomStorage',
    'InMemoryTokenStorage',
]
