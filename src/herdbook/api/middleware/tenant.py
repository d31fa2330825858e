"""Tenant resolution middleware.

Verifies the bearer token, resolves the caller to exactly one live tenant
through the TenantDirectory on app.state, and sets TenantContext in
contextvars for the request scope.

Rejections are written directly as JSON responses: exceptions raised inside
a BaseHTTPMiddleware never reach the application's exception handlers.
"""

from __future__ import annotations

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.herdbook.core.errors import AuthenticationError, HerdbookError, TenantResolutionError, TransientStoreError
from src.herdbook.core.security import bearer_token, verify_token
from src.herdbook.core.tenant import SKIP_TENANT_PATHS, reset_tenant_context, set_tenant_context

logger = structlog.get_logger(__name__)


class TenantAuthMiddleware(BaseHTTPMiddleware):
    """Authenticates the caller and binds the request to their tenant.

    Paths in SKIP_TENANT_PATHS are excluded from tenant resolution.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if any(path.startswith(skip) for skip in SKIP_TENANT_PATHS):
            return await call_next(request)

        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return _reject(AuthenticationError("Missing bearer token"))

        try:
            identity = verify_token(token)
        except AuthenticationError as exc:
            return _reject(exc)

        directory = getattr(request.app.state, "tenant_directory", None)
        if directory is None:
            return _reject(TransientStoreError("Tenant directory not initialized"))

        try:
            tenant_ctx = await directory.resolve(identity)
        except (OperationalError, InterfaceError, OSError, TimeoutError) as exc:
            logger.error("tenant.resolve_failed", user_id=identity.user_id, error=str(exc))
            return _reject(TransientStoreError())

        if tenant_ctx is None:
            logger.info("tenant.unresolved", user_id=identity.user_id, tenant_claim=identity.tenant_id)
            return _reject(TenantResolutionError())

        request.state.tenant_id = tenant_ctx.tenant_id
        request.state.user_id = tenant_ctx.user_id

        ctx_token = set_tenant_context(tenant_ctx)
        try:
            return await call_next(request)
        finally:
            reset_tenant_context(ctx_token)


def _reject(exc: HerdbookError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())
