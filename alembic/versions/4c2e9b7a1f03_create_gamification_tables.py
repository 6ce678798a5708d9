"""Create gamification tables

Revision ID: 4c2e9b7a1f03
Revises:
Create Date: 2026-10-19 09:12:31.518204

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4c2e9b7a1f03'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users, activity_log, badges and user_badges."""

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("total_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="1"),
        sa.Column("level_name", sa.String(50), nullable=False, server_default="Iniciante"),
        sa.Column("current_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.Date, nullable=True),
        sa.Column("tasks_completed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_users_total_points_desc", "users", ["total_points"])

    # --- activity_log ---
    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.BigInteger,
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("points_earned", sa.Integer, nullable=False, server_default="0"),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("entity_type", sa.String(30), nullable=True),
        sa.Column("entity_id", sa.BigInteger, nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_activity_log_user_time", "activity_log", ["user_id", "created_at"],
    )
    op.create_index(
        "ix_activity_log_user_action", "activity_log", ["user_id", "action"],
    )
    op.create_index("ix_activity_log_created_at", "activity_log", ["created_at"])

    # --- badges ---
    op.create_table(
        "badges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("icon", sa.String(50), nullable=False),
        sa.Column("criteria_type", sa.String(30), nullable=False),
        sa.Column("required_count", sa.Integer, nullable=False),
        sa.Column("is_secret", sa.Boolean, server_default=sa.false()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )

    # --- user_badges ---
    op.create_table(
        "user_badges",
        sa.Column(
            "user_id", sa.BigInteger,
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "badge_id", sa.Integer,
            sa.ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "earned_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_user_badges_user_earned", "user_badges", ["user_id", "earned_at"],
    )


def downgrade() -> None:
    """Drop the gamification tables."""
    op.drop_index("ix_user_badges_user_earned", table_name="user_badges")
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_index("ix_activity_log_created_at", table_name="activity_log")
    op.drop_index("ix_activity_log_user_action", table_name="activity_log")
    op.drop_index("ix_activity_log_user_time", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_index("ix_users_total_points_desc", table_name="users")
    op.drop_table("users")
