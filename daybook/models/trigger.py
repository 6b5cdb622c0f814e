"""
ReflectionTrigger: "the user may now reflect on period P".

Lifecycle: absent → pending → completed. Completed is terminal.

One row per (user_id, tier, period_key); the unique constraint enforces
idempotency at the DB level. period_key is the canonical period string
("2024-W10", "2024-03", "2024") so the key never contains NULLs.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Boolean, DateTime, Date, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from daybook.db.base import Base


class ReflectionTrigger(Base):
    __tablename__ = "reflection_triggers"
    __table_args__ = (
        UniqueConstraint("user_id", "tier", "period_key", name="uq_trigger_user_tier_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    period_key: Mapped[str] = mapped_column(String(16), nullable=False)
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    trigger_date: Mapped[date] = mapped_column(
        Date, nullable=False, comment="Day eligibility was first detected"
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
