"""Redis connection management.

Mirrors engine.py: with REDIS_URL set there is a shared asyncio pool,
without it redis_pool is None and the leaderboard cache falls back to
an in-process dict.  Redis only ever holds derived data here (cached
leaderboards), so losing it costs a recomputation, never an answer.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from assessment_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Verify connectivity on startup and close the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, leaderboard cache is in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Start anyway: a cold cache only means leaderboards are recomputed.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
