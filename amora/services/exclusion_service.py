"""
Amora — Exclusion Set Builder.

For a requester, derives:
  excluded  users who must never be offered as candidates (liked, passed,
            matched, or who passed on the requester) plus the requester
  liked_me  users who liked the requester; these stay eligible and are
            shown with priority

All lookups run concurrently and must all succeed.  A storage error in any
one of them fails the whole build; a partial exclusion set would let
already-decided users resurface.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

import structlog

from amora.exceptions import NotFound
from amora.repositories.decisions import DecisionRepository
from amora.repositories.matches import MatchRepository
from amora.repositories.profiles import ProfileRepository

logger = structlog.get_logger("amora.exclusion_service")


@dataclass(frozen=True)
class ExclusionSet:
    excluded: frozenset[uuid.UUID]
    liked_me: frozenset[uuid.UUID]


class ExclusionSetBuilder:

    def __init__(
        self,
        profiles: ProfileRepository,
        decisions: DecisionRepository,
        matches: MatchRepository,
    ) -> None:
        self.profiles = profiles
        self.decisions = decisions
        self.matches = matches

    async def build(self, user_id: uuid.UUID) -> ExclusionSet:
        if await self.profiles.get_profile(user_id) is None:
            raise NotFound(f"User {user_id} not found")

        (
            liked,
            passed,
            matched,
            passed_on_me,
            liked_me,
        ) = await asyncio.gather(
            self.decisions.list_likes_by_sender(user_id),
            self.decisions.list_passes_by_sender(user_id),
            self.matches.list_matches_for_user(user_id),
            self.decisions.list_passes_by_receiver(user_id),
            self.decisions.list_likes_by_receiver(user_id),
        )

        excluded = frozenset({user_id, *liked, *passed, *matched, *passed_on_me})

        logger.debug(
            "exclusion_set_built",
            user_id=str(user_id),
            liked=len(liked),
            passed=len(passed),
            matched=len(matched),
            passed_on_me=len(passed_on_me),
            liked_me=len(liked_me),
        )
        return ExclusionSet(excluded=excluded, liked_me=frozenset(liked_me))
