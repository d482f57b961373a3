"""
Health Check Routes

Endpoints for service health monitoring.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from datetime import datetime

from ..services.engine_service import get_engine_service

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "situation-room",
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - indicates if service is ready to handle requests.
    Used by Kubernetes/orchestrators for readiness probes.
    """
    engine = get_engine_service()
    ready = engine.is_initialized and await engine.is_ready()
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "ready": ready,
            "timestamp": datetime.utcnow().isoformat()
        }
    )


@router.get("/live")
async def liveness_check():
    """
    Liveness check - indicates if service is running.
    Used by Kubernetes/orchestrators for liveness probes.
    """
    return {
        "alive": True,
        "timestamp": datetime.utcnow().isoformat()
    }
