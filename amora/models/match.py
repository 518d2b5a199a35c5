"""
Amora — Match model.

A match is an unordered pair.  Rows are stored normalised with
``user_a_id < user_b_id`` so the unique constraint covers both orderings.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from amora.database import Base


def normalise_pair(
    user_x: uuid.UUID, user_y: uuid.UUID
) -> tuple[uuid.UUID, uuid.UUID]:
    """Return the pair ordered as it is stored in ``matches``."""
    return (user_x, user_y) if user_x < user_y else (user_y, user_x)


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_match_pair"),
        CheckConstraint("user_a_id < user_b_id", name="ck_match_pair_ordered"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_a_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_b_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    matched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def other(self, user_id: uuid.UUID) -> uuid.UUID:
        """Return the counterpart of ``user_id`` in this match."""
        return self.user_b_id if self.user_a_id == user_id else self.user_a_id

    def __repr__(self) -> str:
        return f"<Match {self.user_a_id} <-> {self.user_b_id}>"
