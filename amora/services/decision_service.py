"""
Amora — Decision Service: like, pass, unlike and mutual-match detection.

Every decision is committed before anything is derived from it.  For a like
that means the reciprocal check runs against committed data: of two crossing
likes, whichever commits second sees the first and creates the match.  If
both happen to see each other, the idempotent match insert still leaves a
single row and only its creator publishes the ``match_created`` event.

Mutual-match detection runs before any cache upkeep.  A recorded decision then
removes the decided user from any cached ranking snapshot that could still
show them.  That removal is best effort: the cache also filters decided users
on read, so a stale snapshot never resurfaces someone already acted on.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

import structlog

from amora.exceptions import InvalidDecision, NotFound, StorageFailure
from amora.models.decision import Like, Pass
from amora.models.match import Match
from amora.repositories.decisions import DecisionRepository
from amora.repositories.matches import MatchRepository
from amora.repositories.profiles import ProfileRepository
from amora.repositories.rankings import RankingCache
from amora.services.events import MatchEventPublisher

logger = structlog.get_logger("amora.decision_service")


@dataclass
class LikeOutcome:
    like: Like
    match: Match | None = None

    @property
    def is_match(self) -> bool:
        return self.match is not None


class DecisionService:

    def __init__(
        self,
        profiles: ProfileRepository,
        decisions: DecisionRepository,
        matches: MatchRepository,
        cache: RankingCache,
        events: MatchEventPublisher | None = None,
    ) -> None:
        self.profiles = profiles
        self.decisions = decisions
        self.matches = matches
        self.cache = cache
        self.events = events or MatchEventPublisher()

    # ── Public API ────────────────────────────────────────────────────────

    async def like(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> LikeOutcome:
        """Record a like and create the match if the like is mutual.

        Raises
        ------
        InvalidDecision
            When a user likes themself.
        NotFound
            When either user does not exist.
        DuplicateDecision
            When the like already exists.
        """
        await self._validate(sender_id, receiver_id)
        log = logger.bind(sender_id=str(sender_id), receiver_id=str(receiver_id))

        like = await self.decisions.insert_like(sender_id, receiver_id)
        log.info("like_recorded", like_id=str(like.id))

        match = None
        if await self.decisions.like_exists(receiver_id, sender_id):
            match, created = await self.matches.insert_match(sender_id, receiver_id)
            if created:
                log.info("match_created", match_id=str(match.id))
                await self.events.match_created(match)
            else:
                log.info("match_already_exists", match_id=str(match.id))

        await self._discard(sender_id, receiver_id)
        if match is not None:
            await self._discard(receiver_id, sender_id)
        return LikeOutcome(like=like, match=match)

    async def pass_user(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> Pass:
        """Record a pass.  It hides each user from the other's ranking."""
        await self._validate(sender_id, receiver_id)

        record = await self.decisions.insert_pass(sender_id, receiver_id)
        logger.info(
            "pass_recorded",
            sender_id=str(sender_id),
            receiver_id=str(receiver_id),
            pass_id=str(record.id),
        )
        await self._discard(sender_id, receiver_id)
        await self._discard(receiver_id, sender_id)
        return record

    async def unlike(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> None:
        """Withdraw a like.  An existing match is not affected."""
        if not await self.decisions.delete_like(sender_id, receiver_id):
            raise NotFound(f"No like from {sender_id} to {receiver_id}")
        logger.info("like_withdrawn", sender_id=str(sender_id), receiver_id=str(receiver_id))

    async def list_matches(self, user_id: uuid.UUID) -> list[Match]:
        if await self.profiles.get_profile(user_id) is None:
            raise NotFound(f"User {user_id} not found")
        return await self.matches.list_matches(user_id)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _validate(self, sender_id: uuid.UUID, receiver_id: uuid.UUID) -> None:
        if sender_id == receiver_id:
            raise InvalidDecision("Users cannot like or pass themselves")

        sender, receiver = await asyncio.gather(
            self.profiles.get_profile(sender_id),
            self.profiles.get_profile(receiver_id),
        )
        if sender is None:
            raise NotFound(f"User {sender_id} not found")
        if receiver is None:
            raise NotFound(f"User {receiver_id} not found")

    async def _discard(self, owner_id: uuid.UUID, target_id: uuid.UUID) -> None:
        """Drop ``target_id`` from the owner's snapshot.

        The decision is already committed and the cache filters decided
        targets on read, so a failure here is logged rather than raised.
        """
        try:
            await self.cache.discard(owner_id, [target_id])
        except StorageFailure as exc:
            logger.warning(
                "ranking_discard_failed",
                user_id=str(owner_id),
                target_id=str(target_id),
                error=str(exc),
            )
