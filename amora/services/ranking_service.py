"""
Amora — Ranking Orchestrator.

``get_ranked_users(user_id)`` is the one operation the ranking core exposes:

  1. Serve the cached snapshot if it is still fresh.
  2. Otherwise recompute, at most once at a time per user:
       - the requester must have a complete, verified profile
       - select candidates (empty pool → empty result, nothing cached)
       - score them
       - merge profile + score + has_liked_me, sort, number 1..n
       - store the snapshot, minus anyone decided on while scoring ran
  3. Return the ordered list.

Single-flight is layered.  Within a process, concurrent misses share one
shielded task, so an abandoned request still finishes and fills the cache.
Across processes, an optional Redis lock serialises recomputes and the cache
is re-read once the lock is held.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone

import structlog

from amora.exceptions import NotFound, ProfileIncomplete
from amora.repositories.profiles import ProfileRepository
from amora.repositories.rankings import RankingCache
from amora.schemas.profile import Candidate
from amora.schemas.ranking import CompatibilityResult, RankedUser
from amora.services.candidate_service import CandidateSelector
from amora.services.scoring_service import CompatibilityScorer
from amora.services.single_flight import SingleFlight
from amora.utils.locks import RedisUserLock

logger = structlog.get_logger("amora.ranking_service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ranking_sort_key(ranked_user: RankedUser) -> tuple:
    """Users who liked the requester first, then score desc, then id asc."""
    return (not ranked_user.has_liked_me, -ranked_user.score, str(ranked_user.id))


def assemble_ranking(
    candidates: Sequence[Candidate],
    results: Sequence[CompatibilityResult],
) -> list[RankedUser]:
    """Merge candidates with their scores into a sorted, numbered ranking.

    Candidates without a result are left out.  If a candidate has more than
    one result, the first one wins.
    """
    by_id: dict[uuid.UUID, CompatibilityResult] = {}
    for result in results:
        by_id.setdefault(result.candidate_id, result)

    ranked = [
        RankedUser(
            **candidate.profile.model_dump(),
            score=by_id[candidate.profile.id].score,
            match_percentage=by_id[candidate.profile.id].match_percentage,
            reasons=list(by_id[candidate.profile.id].reasons),
            has_liked_me=candidate.has_liked_me,
        )
        for candidate in candidates
        if candidate.profile.id in by_id
    ]
    ranked.sort(key=ranking_sort_key)
    for position, ranked_user in enumerate(ranked, start=1):
        ranked_user.position = position
    return ranked


class RankingService:
    """Cached, single-flight candidate ranking for one user at a time."""

    def __init__(
        self,
        profiles: ProfileRepository,
        cache: RankingCache,
        selector: CandidateSelector,
        scorer: CompatibilityScorer,
        pool_size: int = 50,
        ttl: timedelta = timedelta(hours=24),
        user_lock: RedisUserLock | None = None,
        flights: SingleFlight | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.profiles = profiles
        self.cache = cache
        self.selector = selector
        self.scorer = scorer
        self.pool_size = pool_size
        self.ttl = ttl
        self._user_lock = user_lock
        self._flights = flights or SingleFlight()
        self._clock = clock

    # ── Public API ────────────────────────────────────────────────────────

    async def get_ranked_users(self, user_id: uuid.UUID) -> list[RankedUser]:
        cached = await self.cache.get_fresh(user_id, self._clock())
        if cached is not None:
            logger.info("ranking_cache_hit", user_id=str(user_id), count=len(cached))
            return cached

        return await self._flights.do(user_id, lambda: self._recompute(user_id))

    async def invalidate(self, user_id: uuid.UUID) -> int:
        return await self.cache.invalidate(user_id)

    # ── Recompute ─────────────────────────────────────────────────────────

    async def _recompute(self, user_id: uuid.UUID) -> list[RankedUser]:
        if self._user_lock is None:
            return await self._refresh(user_id)
        async with self._user_lock.hold(user_id):
            return await self._refresh(user_id)

    async def _refresh(self, user_id: uuid.UUID) -> list[RankedUser]:
        # Another flight or worker may have stored a snapshot since the first read.
        cached = await self.cache.get_fresh(user_id, self._clock())
        if cached is not None:
            logger.info("ranking_cache_hit", user_id=str(user_id), count=len(cached), late=True)
            return cached
        return await self._compute(user_id)

    async def _compute(self, user_id: uuid.UUID) -> list[RankedUser]:
        start_time = time.monotonic()
        log = logger.bind(user_id=str(user_id))
        log.info("ranking_cache_miss")

        requester = await self.profiles.get_profile(user_id)
        if requester is None:
            raise NotFound(f"User {user_id} not found")
        if not requester.is_complete:
            raise ProfileIncomplete(
                f"User {user_id} needs a verified profile with age and gender"
            )

        candidates = await self.selector.select(user_id, self.pool_size)
        if not candidates:
            log.info("ranking_no_candidates")
            return []

        outcome = await self.scorer.score_candidates(
            requester, [candidate.profile for candidate in candidates]
        )
        ranked = assemble_ranking(candidates, outcome.results)
        if not ranked:
            log.warning("ranking_empty_after_scoring", candidates=len(candidates))
            return []

        ranked = await self.cache.store(user_id, ranked, self._clock(), self.ttl)

        log.info(
            "ranking_computed",
            candidates=len(candidates),
            ranked=len(ranked),
            fallback=len(outcome.fallback_ids),
            failed_batches=len(outcome.failed_batches),
            elapsed_ms=round((time.monotonic() - start_time) * 1000, 2),
        )
        return ranked
