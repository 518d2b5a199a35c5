"""
Amora — Ranking cache backed by ``user_rankings``.

A snapshot is the set of rows for one user.  It is fresh while
``now < expires_at``.  Every write (store, discard, invalidate) runs in a
single transaction under a per-user advisory lock, so two concurrent writers
for the same user serialise and the table always holds one complete snapshot:

  store      delete all rows for the user, insert the new ordered set
  discard    drop some targets and renumber the survivors 1..n
  invalidate delete all rows for the user

Users the owner has already decided on (liked, passed, matched, or who passed
on the owner) never leave the cache.  ``store`` drops them under the lock
before writing, and ``get_fresh`` filters them again on read, so a decision
that raced a recompute or a failed ``discard`` cannot resurface anyone.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection, Sequence
from datetime import datetime, timedelta

import structlog
from sqlalchemy import Select, delete, select, union

from amora.models.decision import Like, Pass
from amora.models.match import Match
from amora.models.profile import UserProfile
from amora.models.ranking import UserRanking
from amora.repositories.base import BaseRepository
from amora.schemas.profile import CandidateProfile
from amora.schemas.ranking import RankedUser

logger = structlog.get_logger("amora.repositories.rankings")


def decided_target_queries(user_id: uuid.UUID) -> list[Select]:
    """One id query per kind of decision that hides a target from ``user_id``."""
    return [
        select(Like.receiver_id).where(Like.sender_id == user_id),
        select(Pass.receiver_id).where(Pass.sender_id == user_id),
        select(Pass.sender_id).where(Pass.receiver_id == user_id),
        select(Match.user_b_id).where(Match.user_a_id == user_id),
        select(Match.user_a_id).where(Match.user_b_id == user_id),
    ]


def renumber(ranked: Sequence[RankedUser]) -> list[RankedUser]:
    return [
        ranked_user.model_copy(update={"position": position})
        for position, ranked_user in enumerate(ranked, start=1)
    ]


def build_snapshot_rows(
    user_id: uuid.UUID,
    ranked: Sequence[RankedUser],
    now: datetime,
    ttl: timedelta,
) -> list[UserRanking]:
    """Turn an ordered ranking into cache rows with positions 1..n."""
    expires_at = now + ttl
    return [
        UserRanking(
            user_id=user_id,
            target_user_id=ranked_user.id,
            score=ranked_user.score,
            match_percentage=ranked_user.match_percentage,
            reasons=list(ranked_user.reasons),
            has_liked_me=ranked_user.has_liked_me,
            position=position,
            created_at=now,
            expires_at=expires_at,
        )
        for position, ranked_user in enumerate(ranked, start=1)
    ]


class RankingCache(BaseRepository):

    async def get_fresh(
        self,
        user_id: uuid.UUID,
        now: datetime,
    ) -> list[RankedUser] | None:
        """Return the live snapshot in position order, or ``None`` on a miss.

        Decided targets are filtered out and positions renumbered 1..n.
        """
        stmt = (
            select(UserRanking, UserProfile)
            .join(UserProfile, UserProfile.id == UserRanking.target_user_id)
            .where(
                UserRanking.user_id == user_id,
                UserRanking.expires_at > now,
                *[
                    UserRanking.target_user_id.not_in(query)
                    for query in decided_target_queries(user_id)
                ],
            )
            .order_by(UserRanking.position.asc())
        )
        async with self._session("get_fresh_ranking") as session:
            result = await session.execute(stmt)
            rows = result.all()

        if not rows:
            return None

        return renumber([
            RankedUser(
                **CandidateProfile.model_validate(profile).model_dump(),
                score=ranking.score,
                match_percentage=ranking.match_percentage,
                reasons=ranking.reasons or [],
                has_liked_me=ranking.has_liked_me,
                position=ranking.position,
            )
            for ranking, profile in rows
        ])

    async def store(
        self,
        user_id: uuid.UUID,
        ranked: Sequence[RankedUser],
        now: datetime,
        ttl: timedelta,
    ) -> list[RankedUser]:
        """Replace the user's snapshot and return it as stored.

        Targets decided on before the lock was taken are dropped here; a
        decision committed afterwards is removed by its own ``discard``,
        which waits on the same lock.
        """
        async with self._transaction("store_ranking") as session:
            await self._lock_user(session, user_id)
            result = await session.execute(union(*decided_target_queries(user_id)))
            decided = set(result.scalars().all())
            kept = renumber([r for r in ranked if r.id not in decided])
            await session.execute(
                delete(UserRanking).where(UserRanking.user_id == user_id)
            )
            session.add_all(build_snapshot_rows(user_id, kept, now, ttl))

        logger.info(
            "ranking_snapshot_stored",
            user_id=str(user_id),
            row_count=len(kept),
            dropped=len(ranked) - len(kept),
            expires_at=(now + ttl).isoformat(),
        )
        return kept

    async def discard(
        self,
        user_id: uuid.UUID,
        target_ids: Collection[uuid.UUID],
    ) -> int:
        """Remove decided targets from a snapshot, keeping positions contiguous.

        Returns the number of rows removed.
        """
        targets = set(target_ids)
        if not targets:
            return 0

        async with self._transaction("discard_ranking_targets") as session:
            await self._lock_user(session, user_id)
            result = await session.execute(
                select(UserRanking)
                .where(UserRanking.user_id == user_id)
                .order_by(UserRanking.position.asc())
            )
            current = list(result.scalars().all())
            survivors = [row for row in current if row.target_user_id not in targets]
            removed = len(current) - len(survivors)
            if removed == 0:
                return 0

            replacements = [
                UserRanking(
                    user_id=row.user_id,
                    target_user_id=row.target_user_id,
                    score=row.score,
                    match_percentage=row.match_percentage,
                    reasons=row.reasons,
                    has_liked_me=row.has_liked_me,
                    position=position,
                    created_at=row.created_at,
                    expires_at=row.expires_at,
                )
                for position, row in enumerate(survivors, start=1)
            ]
            await session.execute(
                delete(UserRanking).where(UserRanking.user_id == user_id)
            )
            session.add_all(replacements)

        logger.info(
            "ranking_targets_discarded",
            user_id=str(user_id),
            removed=removed,
        )
        return removed

    async def invalidate(self, user_id: uuid.UUID) -> int:
        async with self._transaction("invalidate_ranking") as session:
            await self._lock_user(session, user_id)
            result = await session.execute(
                delete(UserRanking).where(UserRanking.user_id == user_id)
            )

        logger.info(
            "ranking_snapshot_invalidated",
            user_id=str(user_id),
            removed=result.rowcount,
        )
        return result.rowcount
