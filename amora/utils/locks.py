"""
Amora — Cross-process per-user lock on Redis.

Used around ranking recomputation so that two API workers missing the cache
for the same user do not both call the oracle.  The lock is advisory: if
Redis is unreachable or the lock cannot be acquired in time the holder
proceeds unlocked (the cache write itself is still serialised by a Postgres
advisory lock).
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from redis.exceptions import LockError, RedisError

logger = structlog.get_logger("amora.locks")

_KEY_PREFIX = "amora:ranking-lock"


class RedisUserLock:

    def __init__(self, redis_client, timeout: float = 120.0) -> None:
        self._redis = redis_client
        self.timeout = timeout

    def key_for(self, user_id: uuid.UUID) -> str:
        return f"{_KEY_PREFIX}:{user_id}"

    @asynccontextmanager
    async def hold(self, user_id: uuid.UUID) -> AsyncIterator[bool]:
        """Hold the lock for ``user_id``; yields whether it was acquired."""
        lock = self._redis.lock(
            self.key_for(user_id),
            timeout=self.timeout,
            blocking_timeout=self.timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            logger.warning("ranking_lock_unavailable", user_id=str(user_id), error=str(exc))
            acquired = False

        if not acquired:
            logger.warning("ranking_lock_not_acquired", user_id=str(user_id))

        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except (LockError, RedisError) as exc:
                    logger.warning(
                        "ranking_lock_release_failed",
                        user_id=str(user_id),
                        error=str(exc),
                    )
