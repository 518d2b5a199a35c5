"""
Amora — Profile store.

Read-mostly access to ``user_profiles``: single lookup, recency-ordered
candidate listing with ID exclusion, and patch.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection
from typing import Any

from sqlalchemy import select, update

from amora.models.profile import UserProfile
from amora.repositories.base import BaseRepository
from amora.schemas.profile import CandidateProfile


class ProfileRepository(BaseRepository):

    async def get_profile(self, user_id: uuid.UUID) -> CandidateProfile | None:
        async with self._session("get_profile") as session:
            result = await session.execute(
                select(UserProfile).where(UserProfile.id == user_id)
            )
            row = result.scalar_one_or_none()
        return CandidateProfile.model_validate(row) if row is not None else None

    async def list_profiles(
        self,
        exclude: Collection[uuid.UUID],
        limit: int,
    ) -> list[CandidateProfile]:
        """Return up to ``limit`` active profiles, most recently active first.

        Ties on activity time are broken by id so the page is deterministic.
        """
        stmt = (
            select(UserProfile)
            .where(UserProfile.is_active.is_(True))
            .order_by(UserProfile.last_active_at.desc(), UserProfile.id.asc())
            .limit(limit)
        )
        if exclude:
            stmt = stmt.where(UserProfile.id.not_in(list(exclude)))

        async with self._session("list_profiles") as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        return [CandidateProfile.model_validate(row) for row in rows]

    async def update_profile(
        self,
        user_id: uuid.UUID,
        patch: dict[str, Any],
    ) -> CandidateProfile | None:
        async with self._transaction("update_profile") as session:
            result = await session.execute(
                update(UserProfile)
                .where(UserProfile.id == user_id)
                .values(**patch)
                .returning(UserProfile)
            )
            row = result.scalar_one_or_none()
        return CandidateProfile.model_validate(row) if row is not None else None
