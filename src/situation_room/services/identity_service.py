"""
Identity Service

Provisions remote chat identities and access tokens for local users on
first use.
"""
import logging
import re
from typing import Optional

from ..chat.base import BaseChatClient, remote_id
from ..config import Config
from ..exceptions import DuplicateTokenMapping, ProvisioningFailed
from ..locks import KeyedLockManager
from ..models.context import RequestContext
from ..models.token_mapping import TokenMapping
from ..storage.token_storage import TokenStorage

logger = logging.getLogger("situation.services.identity")

# Roles granted to every provisioned identity
REMOTE_USER_ROLES = "team_user channel_admin channel_user system_user_access_token"
TOKEN_DESCRIPTION = "situation room"

_DISALLOWED_USERNAME_CHARS = re.compile(r"[^a-z0-9._-]")


class IdentityService:
    """
    Service for chat identity provisioning.

    Provisioning sequence for a new user:
    1. create remote user
    2. assign REMOTE_USER_ROLES
    3. persist mapping with placeholder token
    4. issue access token, persist it
    5. add remote user to the team, persist team id

    A mapping is only treated as provisioned once steps 4 and 5 are
    recorded; an interrupted sequence resumes at the missing step with the
    stored remote user id.
    """

    def __init__(
        self,
        token_storage: TokenStorage,
        chat_client: BaseChatClient,
        locks: KeyedLockManager,
        team_id: Optional[str] = None,
        email_domain: Optional[str] = None,
        initial_password: Optional[str] = None,
        max_username_length: Optional[int] = None
    ):
        self.token_storage = token_storage
        self.chat_client = chat_client
        self.locks = locks
        self.team_id = team_id if team_id is not None else Config.CHAT_TEAM_ID
        self.email_domain = email_domain or Config.CHAT_USER_EMAIL_DOMAIN
        self.initial_password = initial_password or Config.CHAT_USER_PASSWORD
        self.max_username_length = max_username_length or Config.MAX_REMOTE_USERNAME_LENGTH

    async def get_mapping(self, user_id: str, tenant_id: str) -> Optional[TokenMapping]:
        """Get mapping for user (None if never provisioned)"""
        return await self.token_storage.get_by_user(user_id, tenant_id)

    async def require_mapping(self, user_id: str, tenant_id: str) -> TokenMapping:
        """Get mapping that must already carry an access token"""
        mapping = await self.token_storage.get_by_user(user_id, tenant_id)
        if mapping is None or not mapping.has_token:
            raise ProvisioningFailed(f"User {user_id} has no chat identity")
        return mapping

    async def ensure_provisioned(
        self,
        user_id: str,
        tenant_id: str,
        team_id: Optional[str] = None
    ) -> TokenMapping:
        """
        Ensure user has a remote identity, token and team membership.

        Returns:
            Complete token mapping

        Raises:
            ProvisioningFailed: a remote step returned non-2xx
        """
        team_id = team_id or self.team_id

        logger.info(f"Checking whether user {user_id} exists in chat system")
        mapping = await self.token_storage.get_by_user(user_id, tenant_id)
        if mapping is not None and mapping.is_complete:
            logger.info(f"User {user_id} already present in chat system")
            return mapping

        async with self.locks.user(user_id, tenant_id):
            mapping = await self.token_storage.get_by_user(user_id, tenant_id)
            if mapping is None:
                logger.warning(f"User {user_id} does not exist in chat system")
                mapping = await self._create_identity(user_id, tenant_id)
            elif mapping.is_complete:
                return mapping
            else:
                logger.warning(f"Resuming incomplete chat setup for user {user_id}")

            if not mapping.has_token:
                mapping = await self._setup_access_token(mapping)
            if not mapping.team_id:
                mapping = await self._join_team(mapping, team_id)

        logger.info(f"Setup done for user {user_id}")
        return mapping

    async def get_session_token(self, ctx: RequestContext) -> dict:
        """Provision caller if needed and return token for the chat client"""
        logger.info(f"Chat session token requested by user {ctx.user_id}")
        mapping = await self.ensure_provisioned(ctx.user_id, ctx.tenant_id)
        return {"token": mapping.proxy_token, "team_id": mapping.team_id or self.team_id}

    def remote_username(self, user_id: str) -> str:
        """Remote username derived from local id (the same in every tenant)"""
        username = _DISALLOWED_USERNAME_CHARS.sub("", user_id.lower())
        return username[:self.max_username_length]

    async def _create_identity(self, user_id: str, tenant_id: str) -> TokenMapping:
        username = self.remote_username(user_id)
        if not username:
            raise ProvisioningFailed(f"Cannot derive chat username from {user_id!r}")

        logger.warning(f"Creating new chat user {username} for {user_id}")
        response = await self.chat_client.create_user(
            username=username,
            email=f"{username}@{self.email_domain}",
            password=self.initial_password,
        )
        new_remote_id = remote_id(response) if response.ok else None
        if new_remote_id is None:
            logger.error(f"Chat user creation failed for {user_id}: {response.error_detail}")
            raise ProvisioningFailed(f"Unable to create chat user for {user_id}: {response.error_detail}")
        logger.info(f"User {user_id} created in chat system with id {new_remote_id}")

        logger.info(f"Assigning roles to user {new_remote_id}")
        response = await self.chat_client.update_user_roles(new_remote_id, REMOTE_USER_ROLES)
        if not response.ok:
            logger.error(f"Role assignment failed for {new_remote_id}: {response.error_detail}")
            raise ProvisioningFailed(f"Unable to update roles for {user_id}: {response.error_detail}")

        mapping = TokenMapping(app_user_id=user_id, remote_user_id=new_remote_id, tenant_id=tenant_id)
        try:
            mapping = await self.token_storage.create(mapping)
        except DuplicateTokenMapping:
            # Another worker committed first; continue from its mapping
            logger.warning(f"Token mapping for {user_id} created concurrently, reusing it")
            mapping = await self.token_storage.get_by_user(user_id, tenant_id)
            if mapping is None:
                raise ProvisioningFailed(f"Token mapping for {user_id} vanished during setup")
        logger.info(f"Remote user id {mapping.remote_user_id} mapped to {user_id}")
        return mapping

    async def _setup_access_token(self, mapping: TokenMapping) -> TokenMapping:
        logger.info(f"Generating access token in chat system for user {mapping.app_user_id}")
        response = await self.chat_client.create_user_access_token(mapping.remote_user_id, TOKEN_DESCRIPTION)
        token = response.body.get("token") if response.ok else None
        if not token:
            logger.error(f"Token generation failed for {mapping.app_user_id}: {response.error_detail}")
            raise ProvisioningFailed(f"Unable to generate token for {mapping.app_user_id}: {response.error_detail}")

        mapping.proxy_token = token
        mapping = await self.token_storage.update(mapping)
        logger.info(f"Token mapping for user {mapping.app_user_id} updated")
        return mapping

    async def _join_team(self, mapping: TokenMapping, team_id: str) -> TokenMapping:
        logger.info(f"Adding user {mapping.remote_user_id} to team {team_id}")
        response = await self.chat_client.add_team_member(team_id, mapping.remote_user_id)
        if not response.ok:
            logger.error(f"Team join failed for {mapping.remote_user_id}: {response.error_detail}")
            raise ProvisioningFailed(f"Unable to join team {team_id}: {response.error_detail}")

        mapping.team_id = team_id
        mapping = await self.token_storage.update(mapping)
        logger.info(f"User {mapping.remote_user_id} added to team {team_id}")
        return mapping
