"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.herdbook.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check database and Redis connectivity. Returns check results dict."""
    checks: dict = {"database": "ok", "redis": "ok"}

    database = getattr(request.app.state, "database", None)
    try:
        if database is None:
            raise RuntimeError("database not initialized")
        await database.ping()
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    redis_client = getattr(request.app.state, "redis_client", None)
    if redis_client is None:
        checks["redis"] = "disabled"
    else:
        try:
            pong = await redis_client.ping()
            if not pong:
                checks["redis"] = "error"
                checks["redis_error"] = "PING did not return PONG"
        except Exception as e:
            checks["redis"] = "error"
            checks["redis_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 if the database and Redis answer, 503 otherwise."""
    checks = await _check_dependencies(request)
    all_healthy = checks["database"] == "ok" and checks["redis"] in ("ok", "disabled")

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
