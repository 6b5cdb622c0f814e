"""
Reflection: a generated narrative for one period, seeded by one memory.

Append-only: regenerating produces a new row, nothing updates an existing one.
seed_memory_id always points at the ORIGINAL daily memory, for every tier.

Period descriptor:
  weekly   week_number + year
  monthly  month + year
  yearly   year
"""
import enum
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from daybook.db.base import Base


class ReflectionTier(str, enum.Enum):
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class Tone(str, enum.Enum):
    therapeutic = "therapeutic"
    inspirational = "inspirational"


class Reflection(Base):
    __tablename__ = "reflections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    seed_memory_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True,
        comment="Original daily memory; plain reference, memories may be deleted by the user",
    )
    narrative: Mapped[str] = mapped_column(Text, nullable=False)
    tone: Mapped[str] = mapped_column(String(16), nullable=False)
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    prompt_used: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment="Exact user prompt sent to the narrator, kept for auditing",
    )
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
