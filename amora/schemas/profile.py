from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from typing import Optional


class CandidateProfile(BaseModel):
    id: UUID
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    job_title: Optional[str] = None
    education: Optional[str] = None
    religion: Optional[str] = None
    lifestyle: Optional[str] = None
    interests: list[str] = []
    personality_traits: list[str] = []
    habits: dict = {}
    photos: list[str] = []
    is_verified: bool = False
    last_active_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("interests", "personality_traits", "photos", mode="before")
    @classmethod
    def _none_as_empty_list(cls, v):
        return [] if v is None else v

    @field_validator("habits", mode="before")
    @classmethod
    def _none_as_empty_dict(cls, v):
        return {} if v is None else v

    @property
    def is_complete(self) -> bool:
        """Verified and carrying the attributes the scorer cannot do without."""
        return self.is_verified and self.age is not None and bool(self.gender)


class Candidate(BaseModel):
    profile: CandidateProfile
    has_liked_me: bool = False


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    age: Optional[int] = Field(None, ge=18, le=100)
    gender: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    job_title: Optional[str] = None
    education: Optional[str] = None
    religion: Optional[str] = None
    lifestyle: Optional[str] = None
    interests: Optional[list[str]] = Field(None, max_length=10)
    personality_traits: Optional[list[str]] = None
    habits: Optional[dict] = None
    height_cm: Optional[int] = Field(None, ge=100, le=250)
