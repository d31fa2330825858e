"""FastAPI dependency injection for tenant context and app.state services.

Services are built once in the application lifespan and stored on
app.state; these getters hand them to endpoints and answer 503 when one
was not initialized.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from src.herdbook.core.errors import ServiceUnavailableError
from src.herdbook.core.tenant import TenantContext, get_current_tenant


async def get_tenant() -> TenantContext:
    """Get the current tenant context (set by TenantAuthMiddleware)."""
    return get_current_tenant()


def _from_state(request: Request, name: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise ServiceUnavailableError(f"{name} not initialized")
    return service


def get_composer(request: Request) -> Any:
    return _from_state(request, "query_composer")


def get_feed_analytics(request: Request) -> Any:
    return _from_state(request, "feed_analytics")


def get_batch_executor(request: Request) -> Any:
    return _from_state(request, "batch_executor")


def get_task_repository(request: Request) -> Any:
    return _from_state(request, "task_repository")


def get_reading_ingestor(request: Request) -> Any:
    return _from_state(request, "reading_ingestor")
