"""Tenant context propagation and tenant resolution.

This module is the foundation of multi-tenant isolation. The TenantContext
is set by middleware at the start of each request and is accessible anywhere
in the call stack via get_current_tenant(). Every repository call receives
the tenant id taken from this context.

TenantDirectory maps a verified caller identity to exactly one live tenant
(membership joined with a tenant that has not been soft-deleted).
"""

from __future__ import annotations

import contextvars
import json
import logging
import uuid
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.herdbook.core.security import CallerIdentity
from src.herdbook.models.shared import Tenant, TenantMember

logger = logging.getLogger(__name__)

# ── Tenant Context ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TenantContext:
    """Immutable tenant context for the current request."""

    tenant_id: str
    tenant_slug: str
    user_id: str
    role: str


_tenant_context: contextvars.ContextVar[TenantContext] = contextvars.ContextVar("tenant_context")


def get_current_tenant() -> TenantContext:
    """Get the tenant context for the current request.

    Raises RuntimeError if no tenant context has been set (i.e., the call
    is not within a tenant-scoped request).
    """
    try:
        return _tenant_context.get()
    except LookupError:
        raise RuntimeError("No tenant context set -- request is not tenant-scoped")


def set_tenant_context(ctx: TenantContext) -> contextvars.Token[TenantContext]:
    """Set the tenant context for the current request. Returns a token for reset."""
    return _tenant_context.set(ctx)


def reset_tenant_context(token: contextvars.Token[TenantContext]) -> None:
    _tenant_context.reset(token)


# ── Paths that skip tenant resolution ───────────────────────────────────────

SKIP_TENANT_PATHS = (
    "/health",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/redoc",
)


# ── Tenant Directory ────────────────────────────────────────────────────────


class TenantDirectory:
    """Resolves a caller identity to its tenant, with a Redis read-through cache.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        redis_client: Optional Redis client; cache failures fall back to the database.
        cache_ttl: Seconds a resolved membership stays cached.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncGenerator[AsyncSession, None]],
        redis_client: aioredis.Redis | None = None,
        cache_ttl: int = 300,
    ) -> None:
        self._session_factory = session_factory
        self._redis = redis_client
        self._cache_ttl = cache_ttl

    async def resolve(self, identity: CallerIdentity) -> TenantContext | None:
        """Return the caller's tenant, or None if no live tenant is bound.

        With a tenant_id claim the caller must be a member of that tenant;
        without one the caller must have exactly one live membership.
        """
        cache_key = f"tenant:member:{identity.user_id}:{identity.tenant_id or '*'}"
        cached = await self._cache_get(cache_key)
        if cached is not None:
            if await self._is_live(cached.tenant_id):
                return cached
            await self._cache_delete(cache_key)

        async for session in self._session_factory():
            stmt = (
                select(Tenant.id, Tenant.slug, TenantMember.role)
                .join(TenantMember, TenantMember.tenant_id == Tenant.id)
                .where(
                    TenantMember.user_id == identity.user_id,
                    Tenant.deleted_at.is_(None),
                )
            )
            if identity.tenant_id:
                try:
                    stmt = stmt.where(Tenant.id == uuid.UUID(identity.tenant_id))
                except ValueError:
                    return None

            result = await session.execute(stmt.limit(2))
            rows = result.all()
            if len(rows) != 1:
                if len(rows) > 1:
                    logger.warning("Caller %s has several tenants and sent no tenant_id claim", identity.user_id)
                return None

            row = rows[0]
            ctx = TenantContext(
                tenant_id=str(row.id),
                tenant_slug=row.slug,
                user_id=identity.user_id,
                role=row.role,
            )
            await self._cache_set(cache_key, ctx)
            return ctx
        return None

    async def _is_live(self, tenant_id: str) -> bool:
        """Re-check a cached tenant against soft deletion."""
        async for session in self._session_factory():
            found = await session.scalar(
                select(Tenant.id).where(Tenant.id == uuid.UUID(tenant_id), Tenant.deleted_at.is_(None))
            )
            return found is not None
        return False

    async def _cache_get(self, key: str) -> TenantContext | None:
        if not self._redis:
            return None
        try:
            cached = await self._redis.get(key)
        except Exception:
            logger.warning("Redis cache lookup failed for %s", key)
            return None
        if not cached:
            return None
        data = json.loads(cached)
        return TenantContext(**data)

    async def _cache_set(self, key: str, ctx: TenantContext) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(
                key,
                json.dumps(
                    {
                        "tenant_id": ctx.tenant_id,
                        "tenant_slug": ctx.tenant_slug,
                        "user_id": ctx.user_id,
                        "role": ctx.role,
                    }
                ),
                ex=self._cache_ttl,
            )
        except Exception:
            logger.warning("Redis cache set failed for %s", key)

    async def _cache_delete(self, key: str) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(key)
        except Exception:
            logger.warning("Redis cache delete failed for %s", key)
