"""
Amora — Ranking API

Serves a user's ranked candidate list (cached or freshly computed) and lets
the snapshot be dropped explicitly.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, Response, status

from amora.api.deps import get_ranking_service
from amora.schemas.ranking import RankedListResponse
from amora.services.ranking_service import RankingService

logger = structlog.get_logger("amora.api.ranking")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id} — Ranked candidates
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}",
    response_model=RankedListResponse,
    summary="Get the ranked candidate list for a user",
)
async def get_ranking(
    user_id: uuid.UUID,
    limit: Optional[int] = Query(None, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: RankingService = Depends(get_ranking_service),
) -> RankedListResponse:
    """Return the user's candidates, users who liked them first, then by score.

    An empty list means there is nobody left to show; it is not an error.
    """
    ranked = await service.get_ranked_users(user_id)
    page = ranked[offset:] if limit is None else ranked[offset:offset + limit]

    return RankedListResponse(
        user_id=user_id,
        count=len(page),
        total=len(ranked),
        data=page,
    )


# ──────────────────────────────────────────────────────────────────────────────
# DELETE /{user_id} — Invalidate snapshot
# ──────────────────────────────────────────────────────────────────────────────

@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Drop the cached ranking so the next read recomputes it",
)
async def invalidate_ranking(
    user_id: uuid.UUID,
    service: RankingService = Depends(get_ranking_service),
) -> Response:
    removed = await service.invalidate(user_id)
    logger.info("ranking_invalidated_via_api", user_id=str(user_id), removed=removed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
