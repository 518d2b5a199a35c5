"""
Amora — Match store.

Pairs are normalised before every write and read, and the insert is
idempotent: a second insert for the same pair (in either order) returns the
existing row.
"""

from __future__ import annotations

import uuid

from sqlalchemy import or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from amora.models.match import Match, normalise_pair
from amora.repositories.base import BaseRepository


class MatchRepository(BaseRepository):

    async def insert_match(
        self,
        user_x: uuid.UUID,
        user_y: uuid.UUID,
    ) -> tuple[Match, bool]:
        """Create the match for a pair unless it exists.

        Returns
        -------
        tuple[Match, bool]
            The match row and whether this call created it.
        """
        user_a, user_b = normalise_pair(user_x, user_y)

        async with self._transaction("insert_match") as session:
            result = await session.execute(
                pg_insert(Match)
                .values(id=uuid.uuid4(), user_a_id=user_a, user_b_id=user_b)
                .on_conflict_do_nothing(constraint="uq_match_pair")
                .returning(Match)
            )
            created = result.scalar_one_or_none()
            if created is not None:
                return created, True

            existing = await session.execute(
                select(Match).where(
                    Match.user_a_id == user_a,
                    Match.user_b_id == user_b,
                )
            )
            return existing.scalar_one(), False

    async def list_matches(self, user_id: uuid.UUID) -> list[Match]:
        async with self._session("list_matches") as session:
            result = await session.execute(
                select(Match)
                .where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
                .order_by(Match.matched_at.desc())
            )
            return list(result.scalars().all())

    async def list_matches_for_user(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """Counterpart ids of every match ``user_id`` takes part in."""
        return [match.other(user_id) for match in await self.list_matches(user_id)]
