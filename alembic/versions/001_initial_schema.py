"""Initial schema: profiles, likes, passes, matches, user_rankings.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _decision_table(name: str, constraint: str) -> None:
    op.create_table(
        name,
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "sender_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "receiver_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("sender_id", "receiver_id", name=constraint),
    )


def upgrade() -> None:
    # ── 1. user_profiles ────────────────────────────────────────────
    op.create_table(
        "user_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("gender", sa.String, nullable=True),
        sa.Column("location", sa.String, nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("job_title", sa.String, nullable=True),
        sa.Column("education", sa.String, nullable=True),
        sa.Column("religion", sa.String, nullable=True),
        sa.Column("lifestyle", sa.String, nullable=True),
        sa.Column(
            "interests",
            postgresql.JSONB,
            nullable=True,
            comment="Array of interest tags",
        ),
        sa.Column(
            "personality_traits",
            postgresql.JSONB,
            nullable=True,
            comment="Array of self-described traits",
        ),
        sa.Column(
            "habits",
            postgresql.JSONB,
            nullable=True,
            comment="Free-form habit map (smoking, drinking, ...)",
        ),
        sa.Column(
            "photos",
            postgresql.JSONB,
            nullable=True,
            comment="Array of photo URLs",
        ),
        sa.Column("height_cm", sa.Integer, nullable=True),
        sa.Column("is_verified", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        sa.Column(
            "last_active_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_user_profiles_recency", "user_profiles", ["last_active_at", "id"]
    )

    # ── 2. likes / 3. passes ────────────────────────────────────────
    _decision_table("likes", "uq_like_pair")
    _decision_table("passes", "uq_pass_pair")

    # ── 4. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "user_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "matched_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_a_id", "user_b_id", name="uq_match_pair"),
        sa.CheckConstraint("user_a_id < user_b_id", name="ck_match_pair_ordered"),
    )

    # ── 5. user_rankings ────────────────────────────────────────────
    op.create_table(
        "user_rankings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("user_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("match_percentage", sa.Integer, nullable=False),
        sa.Column(
            "reasons",
            postgresql.JSONB,
            nullable=True,
            comment="Array of oracle reason strings",
        ),
        sa.Column("has_liked_me", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "position",
            sa.Integer,
            nullable=False,
            comment="1-based, contiguous, sort order",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "target_user_id", name="uq_ranking_target"),
        sa.UniqueConstraint("user_id", "position", name="uq_ranking_position"),
    )
    op.create_index(
        "ix_user_rankings_user_expiry", "user_rankings", ["user_id", "expires_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_user_rankings_user_expiry", table_name="user_rankings")
    op.drop_table("user_rankings")
    op.drop_table("matches")
    op.drop_table("passes")
    op.drop_table("likes")
    op.drop_index("ix_user_profiles_recency", table_name="user_profiles")
    op.drop_table("user_profiles")
