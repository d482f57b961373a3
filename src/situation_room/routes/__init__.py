"""
Situation Room API Routes

FastAPI route handlers for the situation room service.
"""
from .health import router as health_router
from .auth import router as auth_router
from .rooms import router as rooms_router

__all__ = [
    'health_router',
    'auth_router',
    'rooms_router',
]
