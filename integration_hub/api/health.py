"""Health check endpoints."""

from fastapi import APIRouter, Request
from datetime import datetime

from integration_hub.core.config import get_settings
from integration_hub.core.database import database

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.service_name,
        "environment": settings.environment,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """Detailed health check with database and scheduler state."""
    settings = get_settings()
    health_status = {
        "status": "healthy",
        "service": settings.service_name,
        "environment": settings.environment,
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": {"status": "unknown"},
            "scheduler": {"status": "unknown"},
        }
    }

    # Check MongoDB
    try:
        if await database.ping():
            health_status["checks"]["database"]["status"] = "healthy"
        else:
            health_status["checks"]["database"]["status"] = "disconnected"
            health_status["status"] = "degraded"
    except Exception as e:
        health_status["checks"]["database"]["status"] = "unhealthy"
        health_status["checks"]["database"]["error"] = str(e)
        health_status["status"] = "unhealthy"

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None and scheduler.is_running:
        health_status["checks"]["scheduler"] = {
            "status": "healthy",
            **scheduler.get_status().model_dump(),
        }
    else:
        health_status["checks"]["scheduler"]["status"] = "stopped"
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"

    return health_status
