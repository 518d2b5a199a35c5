"""
Amora — In-process single-flight group.

Concurrent callers asking for the same key share one running task instead of
starting their own.  The task is shielded from the callers: a caller that is
cancelled stops waiting, but the shared computation runs to completion.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

import structlog

logger = structlog.get_logger("amora.single_flight")


class SingleFlight:

    def __init__(self) -> None:
        self._flights: dict[Hashable, asyncio.Task] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._flights

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``fn()`` for ``key`` unless a run is already in progress."""
        task = self._flights.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._flights[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("single_flight_joined", key=str(key))
        return await asyncio.shield(task)

    def _forget(self, key: Hashable, task: asyncio.Task) -> None:
        if self._flights.get(key) is task:
            del self._flights[key]
        # Mark the outcome retrieved; waiters that are still attached re-raise it.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "single_flight_failed",
                key=str(key),
                error=str(task.exception()),
            )
