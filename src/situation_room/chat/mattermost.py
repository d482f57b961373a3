"""
Mattermost Chat Client

Calls the Mattermost REST API (v4) using httpx.
"""
import logging
from typing import Optional

import httpx

from .base import BaseChatClient, RemoteResponse
from ..config import Config
from ..exceptions import RemoteOperationFailed

logger = logging.getLogger("situation.chat.mattermost")


class MattermostClient(BaseChatClient):
    """
    Mattermost API client.

    base_url is the API root, e.g. http://chat:8065/api/v4.
    User, role, token and team calls use the admin token; channel and post
    calls use the token of the acting user.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        admin_token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = (base_url or Config.CHAT_API_URL).rstrip("/")
        self.admin_token = admin_token if admin_token is not None else Config.CHAT_ADMIN_TOKEN
        self.timeout = timeout or Config.CHAT_HTTP_TIMEOUT
        self._client = client
        logger.info(f"MattermostClient initialized: base_url={self.base_url}, timeout={self.timeout}s")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[dict] = None
    ) -> RemoteResponse:
        url = f"{self.base_url}{path}"
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
        }
        try:
            response = await self._get_client().request(method, url, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Remote call {method} {path} failed: {e}")
            raise RemoteOperationFailed(f"Remote call {method} {path} failed: {e}") from e

        body = {}
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text[:500]}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.is_success:
            logger.debug(f"Remote call {method} {path} -> {response.status_code}")
        else:
            logger.warning(f"Remote call {method} {path} -> {response.status_code}: {body}")
        return RemoteResponse(status_code=response.status_code, body=body)

    # Channels

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
        return await self._request("POST", "/channels", token, json={
            "team_id": team_id,
            "name": name,
            "display_name": display_name,
            "purpose": purpose,
            "header": header,
            "type": channel_type,
        })

    async def delete_channel(self, token: str, channel_id: str) -> RemoteResponse:
        return await self._request("DELETE", f"/channels/{channel_id}", token)

    async def add_channel_member(
        self,
        token: str,
        channel_id: str,
        remote_user_id: str,
        post_root_id: str = ""
    ) -> RemoteResponse:
        return await self._request("POST", f"/channels/{channel_id}/members", token, json={
            "user_id": remote_user_id,
            "post_root_id": post_root_id,
        })

    async def remove_channel_member(self, token: str, channel_id: str, remote_user_id: str) -> RemoteResponse:
        return await self._request("DELETE", f"/channels/{channel_id}/members/{remote_user_id}", token)

    async def get_channel_unread(self, token: str, remote_user_id: str, channel_id: str) -> RemoteResponse:
        return await self._request("GET", f"/users/{remote_user_id}/channels/{channel_id}/unread", token)

    # Posts

    async def create_post(self, token: str, post: dict) -> RemoteResponse:
        return await self._request("POST", "/posts", token, json=post)

    # Users and teams (admin)

    async def create_user(self, username: str, email: str, password: str) -> RemoteResponse:
        return await self._request("POST", "/users", self.admin_token, json={
            "username": username,
            "email": email,
            "password": password,
        })

    async def update_user_roles(self, remote_user_id: str, roles: str) -> RemoteResponse:
        return await self._request("PUT", f"/users/{remote_user_id}/roles", self.admin_token, json={
            "roles": roles,
        })

    async def create_user_access_token(self, remote_user_id: str, description: str) -> RemoteResponse:
        return await self._request("POST", f"/users/{remote_user_id}/tokens", self.admin_token, json={
            "description": description,
        })

    async def add_team_member(self, team_id: str, remote_user_id: str) -> RemoteResponse:
        return await self._request("POST", f"/teams/{team_id}/members", self.admin_token, json={
            "team_id": team_id,
            "user_id": remote_user_id,
        })

    async def health_check(self) -> bool:
        """Check if the chat server answers its ping endpoint"""
        try:
            response = await self._get_client().get(f"{self.base_url}/system/ping")
            return response.status_code == 200
        except Exception:
            return False

    async def close(self):
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
