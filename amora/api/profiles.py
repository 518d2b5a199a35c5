"""
Amora — Profiles API
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from amora.api.deps import get_profile_service
from amora.schemas.profile import CandidateProfile, ProfileUpdate
from amora.services.profile_service import ProfileService

router = APIRouter()


@router.get("/{user_id}", response_model=CandidateProfile, summary="Get a profile")
async def get_profile(
    user_id: uuid.UUID,
    service: ProfileService = Depends(get_profile_service),
) -> CandidateProfile:
    return await service.get_profile(user_id)


@router.patch("/{user_id}", response_model=CandidateProfile, summary="Update a profile")
async def update_profile(
    user_id: uuid.UUID,
    payload: ProfileUpdate,
    service: ProfileService = Depends(get_profile_service),
) -> CandidateProfile:
    """Apply a partial update.  The user's cached ranking is invalidated."""
    return await service.update_profile(user_id, payload)
