"""
Amora — Profile Service.

Read and patch a user's public profile.  A patch that leaves the profile with
a name, an age and a gender marks it verified, which is what unlocks ranking.
Any successful patch invalidates the user's own ranking snapshot because the
scores in it were computed from the old attributes.
"""

from __future__ import annotations

import uuid

import structlog

from amora.exceptions import NotFound
from amora.repositories.profiles import ProfileRepository
from amora.repositories.rankings import RankingCache
from amora.schemas.profile import CandidateProfile, ProfileUpdate

logger = structlog.get_logger("amora.profile_service")


class ProfileService:

    def __init__(self, profiles: ProfileRepository, cache: RankingCache) -> None:
        self.profiles = profiles
        self.cache = cache

    async def get_profile(self, user_id: uuid.UUID) -> CandidateProfile:
        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            raise NotFound(f"User {user_id} not found")
        return profile

    async def update_profile(
        self,
        user_id: uuid.UUID,
        update: ProfileUpdate,
    ) -> CandidateProfile:
        current = await self.get_profile(user_id)
        patch = update.model_dump(exclude_unset=True, exclude_none=True)
        if not patch:
            return current

        if not current.is_verified and _has_required_fields({**current.model_dump(), **patch}):
            patch["is_verified"] = True

        updated = await self.profiles.update_profile(user_id, patch)
        if updated is None:
            raise NotFound(f"User {user_id} not found")

        removed = await self.cache.invalidate(user_id)
        logger.info(
            "profile_updated",
            user_id=str(user_id),
            fields=sorted(patch),
            ranking_rows_invalidated=removed,
        )
        return updated


def _has_required_fields(fields: dict) -> bool:
    name = fields.get("name") or ""
    return (
        len(name.strip()) >= 2
        and fields.get("age") is not None
        and bool(fields.get("gender"))
    )
