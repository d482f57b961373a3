"""
Request Context

Caller identity passed explicitly through every service operation.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, and for which tenant"""
    user_id: str
    tenant_id: str
