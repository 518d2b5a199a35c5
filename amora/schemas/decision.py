from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional


class DecisionCreate(BaseModel):
    sender_id: UUID
    receiver_id: UUID


class DecisionResponse(BaseModel):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class LikeResponse(BaseModel):
    like: DecisionResponse
    is_match: bool
    match_id: Optional[UUID] = None


class MatchResponse(BaseModel):
    id: UUID
    user_a_id: UUID
    user_b_id: UUID
    matched_at: datetime

    model_config = {"from_attributes": True}
