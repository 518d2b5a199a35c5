from pydantic import BaseModel, Field
from uuid import UUID

from amora.schemas.profile import CandidateProfile


class CompatibilityResult(BaseModel):
    candidate_id: UUID
    score: int = Field(ge=0, le=100)
    match_percentage: int = Field(ge=0, le=100)
    reasons: list[str] = []


class RankedUser(CandidateProfile):
    score: int = Field(ge=0, le=100)
    match_percentage: int = Field(ge=0, le=100)
    reasons: list[str] = []
    has_liked_me: bool = False
    position: int = 0


class RankedListResponse(BaseModel):
    success: bool = True
    user_id: UUID
    count: int
    total: int
    data: list[RankedUser]
