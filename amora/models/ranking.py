"""
Amora — UserRanking model (one row per ranked candidate in a snapshot).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from amora.database import Base


class UserRanking(Base):
    __tablename__ = "user_rankings"
    __table_args__ = (
        UniqueConstraint("user_id", "target_user_id", name="uq_ranking_target"),
        UniqueConstraint("user_id", "position", name="uq_ranking_position"),
        Index("ix_user_rankings_user_expiry", "user_id", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    target_user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    match_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    reasons: Mapped[list | None] = mapped_column(
        JSONB, nullable=True, comment="Array of oracle reason strings"
    )
    has_liked_me: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="1-based, contiguous, sort order"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<UserRanking {self.user_id} #{self.position} -> "
            f"{self.target_user_id} score={self.score}>"
        )
