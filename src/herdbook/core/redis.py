"""Redis client construction for the tenant resolution cache."""

from __future__ import annotations

import redis.asyncio as aioredis


def create_redis_client(url: str) -> aioredis.Redis:
    """Create a Redis client from a URL (connections are opened lazily)."""
    return aioredis.from_url(url, decode_responses=True)


async def close_redis(client: aioredis.Redis | None) -> None:
    """Close a Redis client if one was created."""
    if client is not None:
        await client.aclose()
