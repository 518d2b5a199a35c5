"""
Amora — Decisions API

Likes, passes, unlikes and the match list.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status

from amora.api.deps import get_decision_service
from amora.schemas.decision import (
    DecisionCreate,
    DecisionResponse,
    LikeResponse,
    MatchResponse,
)
from amora.services.decision_service import DecisionService

router = APIRouter()


@router.post(
    "/like",
    response_model=LikeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Like a user",
)
async def like_user(
    payload: DecisionCreate,
    service: DecisionService = Depends(get_decision_service),
) -> LikeResponse:
    """Record a like.  ``is_match`` is true when the like completed a match."""
    outcome = await service.like(payload.sender_id, payload.receiver_id)
    return LikeResponse(
        like=DecisionResponse.model_validate(outcome.like),
        is_match=outcome.is_match,
        match_id=outcome.match.id if outcome.match is not None else None,
    )


@router.delete(
    "/like",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Withdraw a like",
)
async def unlike_user(
    payload: DecisionCreate,
    service: DecisionService = Depends(get_decision_service),
) -> Response:
    await service.unlike(payload.sender_id, payload.receiver_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/pass",
    response_model=DecisionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pass on a user",
)
async def pass_user(
    payload: DecisionCreate,
    service: DecisionService = Depends(get_decision_service),
) -> DecisionResponse:
    record = await service.pass_user(payload.sender_id, payload.receiver_id)
    return DecisionResponse.model_validate(record)


@router.get(
    "/{user_id}/matches",
    response_model=list[MatchResponse],
    summary="List a user's matches, newest first",
)
async def list_matches(
    user_id: uuid.UUID,
    service: DecisionService = Depends(get_decision_service),
) -> list[MatchResponse]:
    matches = await service.list_matches(user_id)
    return [MatchResponse.model_validate(m) for m in matches]
