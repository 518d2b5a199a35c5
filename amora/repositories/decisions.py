"""
Amora — Decision store (likes and passes).

Pure storage.  Inserts rely on the ``uq_like_pair`` / ``uq_pass_pair`` unique
constraints: a duplicate submission surfaces as ``DuplicateDecision``.
"""

from __future__ import annotations

import uuid

from sqlalchemy import delete, select

from amora.exceptions import DuplicateDecision
from amora.models.decision import Like, Pass
from amora.repositories.base import BaseRepository


class DecisionRepository(BaseRepository):

    # ── Writes ───────────────────────────────────────────────────────────

    async def insert_like(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> Like:
        return await self._insert(
            "insert_like", Like(sender_id=sender_id, receiver_id=receiver_id)
        )

    async def insert_pass(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> Pass:
        return await self._insert(
            "insert_pass", Pass(sender_id=sender_id, receiver_id=receiver_id)
        )

    async def delete_like(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> bool:
        async with self._transaction("delete_like") as session:
            result = await session.execute(
                delete(Like).where(
                    Like.sender_id == sender_id,
                    Like.receiver_id == receiver_id,
                )
            )
        return result.rowcount > 0

    async def _insert(self, operation: str, record: Like | Pass) -> Like | Pass:
        async with self._transaction(operation, on_conflict=DuplicateDecision) as session:
            session.add(record)
            await session.flush()
            await session.refresh(record)
        return record

    # ── Reads ────────────────────────────────────────────────────────────

    async def like_exists(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> bool:
        async with self._session("like_exists") as session:
            result = await session.execute(
                select(Like.id).where(
                    Like.sender_id == sender_id,
                    Like.receiver_id == receiver_id,
                )
            )
            return result.first() is not None

    async def list_likes_by_sender(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of users that ``user_id`` has liked."""
        return await self._ids(
            "list_likes_by_sender",
            select(Like.receiver_id).where(Like.sender_id == user_id),
        )

    async def list_likes_by_receiver(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of users who liked ``user_id``."""
        return await self._ids(
            "list_likes_by_receiver",
            select(Like.sender_id).where(Like.receiver_id == user_id),
        )

    async def list_passes_by_sender(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        return await self._ids(
            "list_passes_by_sender",
            select(Pass.receiver_id).where(Pass.sender_id == user_id),
        )

    async def list_passes_by_receiver(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        return await self._ids(
            "list_passes_by_receiver",
            select(Pass.sender_id).where(Pass.receiver_id == user_id),
        )

    async def _ids(self, operation: str, stmt) -> list[uuid.UUID]:
        async with self._session(operation) as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
