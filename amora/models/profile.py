"""
Amora — UserProfile model (public profile fields used for ranking).
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from amora.database import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"
    __table_args__ = (
        Index("ix_user_profiles_recency", "last_active_at", "id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String, nullable=True)
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    education: Mapped[str | None] = mapped_column(String, nullable=True)
    religion: Mapped[str | None] = mapped_column(String, nullable=True)
    lifestyle: Mapped[str | None] = mapped_column(String, nullable=True)
    interests: Mapped[list | None] = mapped_column(
        JSONB, nullable=True, comment="Array of interest tags"
    )
    personality_traits: Mapped[list | None] = mapped_column(
        JSONB, nullable=True, comment="Array of self-described traits"
    )
    habits: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment="Free-form habit map (smoking, drinking, ...)"
    )
    photos: Mapped[list | None] = mapped_column(
        JSONB, nullable=True, comment="Array of photo URLs"
    )
    height_cm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        return f"<UserProfile {self.name!r} id={self.id}>"
