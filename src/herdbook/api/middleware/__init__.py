"""API middleware package."""

from src.herdbook.api.middleware.logging import LoggingMiddleware
from src.herdbook.api.middleware.tenant import TenantAuthMiddleware

__all__ = ["LoggingMiddleware", "TenantAuthMiddleware"]
