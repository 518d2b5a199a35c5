"""
Amora — Repository base class.

Every repository call opens its own short-lived ``AsyncSession`` from the
injected factory.  SQLAlchemy errors are translated into ``StorageFailure`` at
this boundary so that services only ever see the service-layer taxonomy.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from amora.exceptions import AmoraError, StorageFailure

logger = structlog.get_logger("amora.repositories")


class BaseRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(
        self,
        operation: str,
        on_conflict: type[AmoraError] | None = None,
    ) -> AsyncIterator[AsyncSession]:
        """Yield a session; wrap persistence errors raised inside the block.

        When ``on_conflict`` is given, an ``IntegrityError`` is re-raised as
        that exception type instead of ``StorageFailure``.
        """
        try:
            async with self._session_factory() as session:
                yield session
        except IntegrityError as exc:
            if on_conflict is not None:
                raise on_conflict(f"{operation}: conflicting record exists") from exc
            logger.error(
                "storage_integrity_error",
                repository=type(self).__name__,
                operation=operation,
                error=str(exc.orig),
            )
            raise StorageFailure(f"{operation} failed: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            logger.error(
                "storage_failure",
                repository=type(self).__name__,
                operation=operation,
                error=str(exc),
            )
            raise StorageFailure(f"{operation} failed: {exc}") from exc

    @asynccontextmanager
    async def _transaction(
        self,
        operation: str,
        on_conflict: type[AmoraError] | None = None,
    ) -> AsyncIterator[AsyncSession]:
        """Like ``_session`` but commits on success and rolls back on error."""
        async with self._session(operation, on_conflict=on_conflict) as session:
            async with session.begin():
                yield session

    @staticmethod
    async def _lock_user(session: AsyncSession, user_id: uuid.UUID) -> None:
        """Take a transaction-scoped Postgres advisory lock keyed on a user."""
        await session.execute(
            select(func.pg_advisory_xact_lock(func.hashtextextended(str(user_id), 0)))
        )
