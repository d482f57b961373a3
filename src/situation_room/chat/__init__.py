"""
Remote Chat Clients
"""
from .base import BaseChatClient, RemoteResponse, UNKNOWN_REMOTE_ERROR, remote_id
from .mattermost import MattermostClient

__all__ = [
    'BaseChatClient',
    'RemoteResponse',
    'UNKNOWN_REMOTE_ERROR',
    'remote_id',
    'MattermostClient',
]
