"""Read-through cache for derived views (leaderboards).

Flow:  caller -> cache -> miss -> compute from attempts -> populate -> return
       caller -> cache -> hit  -> return

Entries are protected two ways: a TTL bounds staleness even if an
invalidation is missed, and submission deletes the assessment's entry so
the next read recomputes.  Only derived data goes in here; attempts and
answers always come from the repositories.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from assessment_service.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryCacheService:
    """Process-local cache for dev and tests; TTL is not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisCacheService:
    """Redis-backed cache shared by every API instance and the worker."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


def leaderboard_cache_key(assessment_id: object) -> str:
    return f"leaderboard:{assessment_id}"


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
