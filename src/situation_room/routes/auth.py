"""
Authentication

Caller identity for every request comes from a bearer JWT carrying
user_id and tenant_id.
"""
import jwt
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Header

from ..config import Config
from ..models.context import RequestContext

logger = logging.getLogger("situation.routes.auth")
router = APIRouter(prefix="/auth", tags=["auth"])


# ============================================
# Helpers
# ============================================

def create_token(user_id: str, tenant_id: str, expires_in_hours: int = 24) -> str:
    """Create JWT token for user"""
    expiration = datetime.utcnow() + timedelta(hours=expires_in_hours)
    payload = {
        "user_id": user_id,
        "tenant_id": tenant_id,
        "exp": expiration
    }
    return jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


async def get_request_context(authorization: str = Header(None)) -> RequestContext:
    """Dependency to get the authenticated caller"""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Expect "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    payload = verify_token(parts[1])
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = payload.get("user_id")
    tenant_id = payload.get("tenant_id")
    if not user_id or not tenant_id:
        logger.info("Rejected token without user_id or tenant_id claim")
        raise HTTPException(status_code=401, detail="Token must carry user_id and tenant_id")

    return RequestContext(user_id=str(user_id), tenant_id=str(tenant_id))


# ============================================
# Routes
# ============================================

@router.get("/me")
async def get_current_caller(ctx: RequestContext = Depends(get_request_context)):
    """Identity resolved from the bearer token"""
    return {"user_id": ctx.user_id, "tenant_id": ctx.tenant_id}
