"""
Token Storage

PostgreSQL storage for local user -> remote chat identity mappings.
"""
import logging
from datetime import datetime
from typing import Optional

import asyncpg

from .base import BaseStorage
from ..exceptions import DuplicateTokenMapping
from ..models.token_mapping import TokenMapping

logger = logging.getLogger("situation.storage.token")


class TokenStorage(BaseStorage):
    """Storage for TokenMapping entities"""

    async def create(self, mapping: TokenMapping) -> TokenMapping:
        """
        Create a new mapping.

        Raises:
            DuplicateTokenMapping: a mapping for (app_user_id, tenant_id) exists
        """
        query = """
            INSERT INTO proxy_token_mappings (
                id, app_user_id, tenant_id, remote_user_id, proxy_token,
                team_id, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query,
                mapping.id, mapping.app_user_id, mapping.tenant_id, mapping.remote_user_id,
                mapping.proxy_token, mapping.team_id, mapping.created_at, mapping.updated_at
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateTokenMapping(
                f"Token mapping for user {mapping.app_user_id} already exists"
            ) from e
        return self._row_to_mapping(row)

    async def get_by_user(self, app_user_id: str, tenant_id: str) -> Optional[TokenMapping]:
        """Get mapping by local user"""
        query = "SELECT * FROM proxy_token_mappings WHERE app_user_id = $1 AND tenant_id = $2"
        row = await self.fetchrow(query, app_user_id, tenant_id)
        return self._row_to_mapping(row) if row else None

    async def update(self, mapping: TokenMapping) -> TokenMapping:
        """Update token and team; remote user id is never rewritten"""
        mapping.updated_at = datetime.utcnow()
        query = """
            UPDATE proxy_token_mappings
            SET proxy_token = $2, team_id = $3, updated_at = $4
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            mapping.id, mapping.proxy_token, mapping.team_id, mapping.updated_at
        )
        return self._row_to_mapping(row)

    def _row_to_mapping(self, row) -> TokenMapping:
        """Convert database row to TokenMapping"""
        return TokenMapping(
            id=row["id"],
            app_user_id=row["app_user_id"],
            tenant_id=row["tenant_id"],
            remote_user_id=row["remote_user_id"],
            proxy_token=row["proxy_token"],
            team_id=row["team_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"]
        )
