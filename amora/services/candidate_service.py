"""
Amora — Candidate Selector.

Selects a bounded pool of recently active, not-yet-decided users for a
requester:

  1. Fetch up to ``pool_size × overfetch_factor`` active profiles, most
     recently active first (ties by id), excluding the requester.
  2. Drop everything in the exclusion set.
  3. Flag candidates who already liked the requester.
  4. Truncate to ``pool_size``.

Over-fetching absorbs the usual shrinkage from exclusions in a single
round-trip.  An empty pool is a valid answer.  The pool is widened only when
``widen_attempts > 0``: the fetch limit doubles while the filtered pool is
empty and the store keeps returning full pages.
"""

from __future__ import annotations

import uuid

import structlog

from amora.repositories.profiles import ProfileRepository
from amora.schemas.profile import Candidate
from amora.services.exclusion_service import ExclusionSetBuilder

logger = structlog.get_logger("amora.candidate_service")


class CandidateSelector:

    def __init__(
        self,
        profiles: ProfileRepository,
        exclusions: ExclusionSetBuilder,
        overfetch_factor: int = 2,
        widen_attempts: int = 0,
    ) -> None:
        if overfetch_factor < 1:
            raise ValueError(f"overfetch_factor must be >= 1, got {overfetch_factor}")
        if widen_attempts < 0:
            raise ValueError(f"widen_attempts must be >= 0, got {widen_attempts}")
        self.profiles = profiles
        self.exclusions = exclusions
        self.overfetch_factor = overfetch_factor
        self.widen_attempts = widen_attempts

    async def select(self, user_id: uuid.UUID, pool_size: int) -> list[Candidate]:
        """Return at most ``pool_size`` candidates in recency order."""
        if pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {pool_size}")

        exclusion = await self.exclusions.build(user_id)
        limit = pool_size * self.overfetch_factor
        log = logger.bind(user_id=str(user_id), pool_size=pool_size)

        for attempt in range(self.widen_attempts + 1):
            fetched = await self.profiles.list_profiles(exclude={user_id}, limit=limit)
            candidates = [
                Candidate(profile=profile, has_liked_me=profile.id in exclusion.liked_me)
                for profile in fetched
                if profile.id not in exclusion.excluded
            ][:pool_size]

            if candidates or len(fetched) < limit or attempt == self.widen_attempts:
                break

            log.info("candidate_pool_widened", previous_limit=limit, new_limit=limit * 2)
            limit *= 2

        log.info(
            "candidates_selected",
            fetched=len(fetched),
            selected=len(candidates),
            liked_me=sum(1 for c in candidates if c.has_liked_me),
        )
        return candidates
