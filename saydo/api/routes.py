"""Service-level routes."""

from datetime import datetime, timezone

from fastapi import APIRouter

from saydo import __version__

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Status, version, database health and an ISO8601 timestamp
    """
    health_status = {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        from saydo.database import health_check as db_health_check

        db_healthy = await db_health_check()
        health_status["database"] = "healthy" if db_healthy else "unhealthy"
    except Exception:
        health_status["database"] = "unavailable"

    return health_status
