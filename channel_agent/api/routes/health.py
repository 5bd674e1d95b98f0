"""Health check endpoints."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Response
from sqlalchemy import text

from channel_agent.db.client import get_db_session

router = APIRouter()
logger = structlog.get_logger()

_startup_time = datetime.now(timezone.utc)


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if the service is running.
    """
    now = datetime.now(timezone.utc)
    return {
        "status": "healthy",
        "service": "channel-agent",
        "version": "0.1.0",
        "timestamp": now.isoformat(),
        "uptime_seconds": (now - _startup_time).total_seconds(),
    }


@router.get("/ready")
async def readiness_check(response: Response):
    """
    Readiness check endpoint.
    Verifies PostgreSQL is reachable.
    """
    checks = {"postgres": False}

    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
            checks["postgres"] = True
    except Exception as e:
        logger.warning("PostgreSQL health check failed", error=str(e))

    ready = all(checks.values())
    if not ready:
        response.status_code = 503

    return {
        "status": "ready" if ready else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/live")
async def liveness_check():
    """Liveness check. Returns 200 if the process is alive."""
    return {"status": "alive"}
