"""
Period selections: "for period P the user chose X, which produced reflection R".

WeeklySelection:  (user, week, year)  → chosen memory         → weekly reflection
MonthlySelection: (user, month, year) → chosen weekly reflection → monthly reflection

One row per (user, period). Written in the same transaction as the
reflection it points at, so reflection_id never dangles.
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from daybook.db.base import Base


class WeeklySelection(Base):
    __tablename__ = "weekly_selections"
    __table_args__ = (
        UniqueConstraint("user_id", "week_number", "year", name="uq_weekly_selection_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    selected_memory_id: Mapped[int] = mapped_column(Integer, nullable=False)
    reflection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reflections.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class MonthlySelection(Base):
    __tablename__ = "monthly_selections"
    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_monthly_selection_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    selected_weekly_reflection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reflections.id"), nullable=False
    )
    reflection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("reflections.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
