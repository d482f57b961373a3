"""
Token Mapping Model

Links a local user to the remote chat identity and its access token.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

# Token value persisted before the remote access token is issued
PLACEHOLDER_TOKEN = "not present"


@dataclass
class TokenMapping:
    """
    Token mapping entity.

    One mapping per (app_user_id, tenant_id). remote_user_id never changes
    once written; proxy_token may be regenerated. team_id is set once the
    remote identity has been added to the chat team.
    """
    app_user_id: str
    remote_user_id: str
    tenant_id: str = ""
    proxy_token: str = PLACEHOLDER_TOKEN
    team_id: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def has_token(self) -> bool:
        return bool(self.proxy_token) and self.proxy_token != PLACEHOLDER_TOKEN

    @property
    def is_complete(self) -> bool:
        """Identity, token and team membership are all in place"""
        return self.has_token and bool(self.team_id)
