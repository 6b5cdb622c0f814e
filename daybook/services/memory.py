"""
Memory service: the daily journal entries every reflection is built from.

Rules:
- One memory per (user, day); saving an existing day updates it in place.
- Only "today" (the caller's local date) is writable. The caller passes
  `today` explicitly; the store itself does not enforce it.
- Every query is scoped by user_id.
- db.commit() only at the root function.

Public API
----------
count_words(text)                                         -> int
get_by_date(db, user_id, day)                             -> Memory | None
get_by_id(db, user_id, memory_id)                         -> Memory | None
get_by_month(db, user_id, month, year)                    -> list[Memory]   (newest first)
get_range(db, user_id, start, end)                        -> list[Memory]   (oldest first)
dates_with_memories(db, user_id, month, year)             -> list[date]
upsert_memory(db, user_id, day, text, mood, prompt, today) -> Memory
delete_memory(db, user_id, day)                           -> None
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from daybook.core.errors import MemoryNotEditableError, NotFoundError
from daybook.models.memory import Memory

logger = logging.getLogger(__name__)


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _ev(v) -> Optional[str]:
    """Return bare string value from a str-enum or plain str."""
    if v is None:
        return None
    return v.value if hasattr(v, "value") else str(v)


def count_words(text: str) -> int:
    return len(text.split())


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_by_date(db: Session, user_id: str, day: date) -> Optional[Memory]:
    return (
        db.query(Memory)
        .filter(Memory.user_id == user_id, Memory.day == day)
        .first()
    )


def get_by_id(db: Session, user_id: str, memory_id: int) -> Optional[Memory]:
    """Owned lookup: another user's id behaves exactly like a missing id."""
    return (
        db.query(Memory)
        .filter(Memory.id == memory_id, Memory.user_id == user_id)
        .first()
    )


def get_by_month(db: Session, user_id: str, month: int, year: int) -> list[Memory]:
    return (
        db.query(Memory)
        .filter(Memory.user_id == user_id, Memory.month == month, Memory.year == year)
        .order_by(Memory.day.desc())
        .all()
    )


def get_range(db: Session, user_id: str, start: date, end: date) -> list[Memory]:
    """Memories with start <= day <= end, oldest first."""
    return (
        db.query(Memory)
        .filter(Memory.user_id == user_id, Memory.day >= start, Memory.day <= end)
        .order_by(Memory.day.asc())
        .all()
    )


def dates_with_memories(db: Session, user_id: str, month: int, year: int) -> list[date]:
    rows = (
        db.query(Memory.day)
        .filter(Memory.user_id == user_id, Memory.month == month, Memory.year == year)
        .order_by(Memory.day.asc())
        .all()
    )
    return [r[0] for r in rows]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def upsert_memory(
    db: Session,
    user_id: str,
    day: date,
    text: str,
    mood: Optional[str] = None,
    prompt: Optional[str] = None,
    today: Optional[date] = None,
) -> Memory:
    """
    Create or update the memory for (user_id, day).

    Raises MemoryNotEditableError unless `day` is `today` (defaults to the
    server's UTC date).
    """
    current = today or _today()
    if day != current:
        raise MemoryNotEditableError(day=day, today=current)

    body = text.strip()
    existing = get_by_date(db, user_id, day)
    if existing is not None:
        existing.text = body
        existing.mood = _ev(mood)
        existing.prompt = prompt
        existing.word_count = count_words(body)
        db.commit()
        db.refresh(existing)
        logger.info("memory updated user=%s day=%s id=%s", user_id, day, existing.id)
        return existing

    memory = Memory(
        user_id=user_id,
        day=day,
        month=day.month,
        year=day.year,
        text=body,
        mood=_ev(mood),
        prompt=prompt,
        word_count=count_words(body),
    )
    db.add(memory)
    db.commit()
    db.refresh(memory)
    logger.info("memory created user=%s day=%s id=%s", user_id, day, memory.id)
    return memory


def delete_memory(db: Session, user_id: str, day: date) -> None:
    """Explicit user deletion. Reflections seeded by it are left untouched."""
    memory = get_by_date(db, user_id, day)
    if memory is None:
        raise NotFoundError("memory", day)
    db.delete(memory)
    db.commit()
    logger.info("memory deleted user=%s day=%s", user_id, day)
