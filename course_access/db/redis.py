"""Redis connection management.

Mirrors engine.py: with REDIS_URL set we build a shared async connection
pool; without it redis_pool is None and the event queue falls back to
its in-memory implementation.

Redis only carries the domain event queue.  Entitlements (enrollments,
completions) are durable relational data and never live here.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from course_access.core.config import SETTINGS

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
    """Verify Redis on startup and close the pool on shutdown.

    An unreachable Redis does not stop the service: enrollments and
    completions are still recorded, and event publication failures are
    logged by the publisher.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, domain events use the in-memory queue")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
