"""add reflections, period selections and reflection triggers

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17

reflections is append-only. Selections are unique per (user, period) and
triggers per (user, tier, period_key).
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reflections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("tier", sa.String(16), nullable=False),
        sa.Column("seed_memory_id", sa.Integer(), nullable=False),
        sa.Column("narrative", sa.Text(), nullable=False),
        sa.Column("tone", sa.String(16), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=True),
        sa.Column("month", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("prompt_used", sa.Text(), nullable=False),
        sa.Column("model", sa.String(128), nullable=True),
        sa.Column("word_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_reflections_id", "reflections", ["id"])
    op.create_index("ix_reflections_user_id", "reflections", ["user_id"])
    op.create_index("ix_reflections_tier", "reflections", ["tier"])
    op.create_index("ix_reflections_seed_memory_id", "reflections", ["seed_memory_id"])

    op.create_table(
        "weekly_selections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("selected_memory_id", sa.Integer(), nullable=False),
        sa.Column("reflection_id", sa.Integer(), sa.ForeignKey("reflections.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "week_number", "year", name="uq_weekly_selection_period"),
    )
    op.create_index("ix_weekly_selections_id", "weekly_selections", ["id"])
    op.create_index("ix_weekly_selections_user_id", "weekly_selections", ["user_id"])
    op.create_index("ix_weekly_selections_year", "weekly_selections", ["year"])

    op.create_table(
        "monthly_selections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column(
            "selected_weekly_reflection_id", sa.Integer(),
            sa.ForeignKey("reflections.id"), nullable=False,
        ),
        sa.Column("reflection_id", sa.Integer(), sa.ForeignKey("reflections.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "month", "year", name="uq_monthly_selection_period"),
    )
    op.create_index("ix_monthly_selections_id", "monthly_selections", ["id"])
    op.create_index("ix_monthly_selections_user_id", "monthly_selections", ["user_id"])
    op.create_index("ix_monthly_selections_year", "monthly_selections", ["year"])

    op.create_table(
        "reflection_triggers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("tier", sa.String(16), nullable=False),
        sa.Column("period_key", sa.String(16), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=True),
        sa.Column("month", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trigger_date", sa.Date(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "tier", "period_key", name="uq_trigger_user_tier_period"),
    )
    op.create_index("ix_reflection_triggers_id", "reflection_triggers", ["id"])
    op.create_index("ix_reflection_triggers_user_id", "reflection_triggers", ["user_id"])
    op.create_index("ix_reflection_triggers_completed", "reflection_triggers", ["completed"])


def downgrade() -> None:
    op.drop_table("reflection_triggers")
    op.drop_table("monthly_selections")
    op.drop_table("weekly_selections")
    op.drop_table("reflections")
