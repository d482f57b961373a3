"""
Base Chat Client

Contract of the remote chat provider as seen by the situation room services.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

UNKNOWN_REMOTE_ERROR = "Remote system unknown exception."


@dataclass
class RemoteResponse:
    """Status and JSON body of a remote call"""
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error_detail(self) -> str:
        """Body as error text, or a generic message when absent"""
        return str(self.body) if self.body else UNKNOWN_REMOTE_ERROR


class BaseChatClient(ABC):
    """
    Abstract remote chat client.

    Every call returns a RemoteResponse for any HTTP status; transport
    failures raise RemoteOperationFailed. Callers decide how a non-2xx
    status is handled.

    Implementations:
    - MattermostClient: Mattermost REST API v4 over httpx
    """

    @abstractmethod
    async def create_channel(
        self,
        token: str,
        team_id: str,
        name: str,
        display_name: str,
        purpose: str = "",
        header: str = "",
        channel_type: str = "P"
    ) -> RemoteResponse:
        """Create a channel as the token owner"""
        ...

    @abstractmethod
    async def delete_channel(self, token: str, channel_id: str) -> RemoteResponse:
        ...

    @abstractmethod
    async def add_channel_member(
        self,
        token: str,
        channel_id: str,
        remote_user_id: str,
        post_root_id: str = ""
    ) -> RemoteResponse:
        ...

    @abstractmethod
    async def remove_channel_member(self, token: str, channel_id: str, remote_user_id: str) -> RemoteResponse:
        ...

    @abstractmethod
    async def create_post(self, token: str, post: dict) -> RemoteResponse:
        """Forward a post payload verbatim"""
        ...

    @abstractmethod
    async def create_user(self, username: str, email: str, password: str) -> RemoteResponse:
        """Create a remote identity (admin)"""
        ...

    @abstractmethod
    async def update_user_roles(self, remote_user_id: str, roles: str) -> RemoteResponse:
        """Replace the role set of a remote identity (admin)"""
        ...

    @abstractmethod
    async def create_user_access_token(self, remote_user_id: str, description: str) -> RemoteResponse:
        """Issue a personal access token for a remote identity (admin)"""
        ...

    @abstractmethod
    async def add_team_member(self, team_id: str, remote_user_id: str) -> RemoteResponse:
        """Add a remote identity to a team (admin)"""
        ...

    @abstractmethod
    async def get_channel_unread(self, token: str, remote_user_id: str, channel_id: str) -> RemoteResponse:
        ...

    async def close(self):
        """Cleanup resources"""
        pass


def remote_id(response: RemoteResponse) -> Optional[str]:
    """Id assigned by the remote system in a create response"""
    value = response.body.get("id") if response.body else None
    return str(value) if value else None
