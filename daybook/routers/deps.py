"""
Shared router dependencies.

Authentication lives outside this service; the caller's user id arrives in
the `X-User-ID` header and every query is scoped by it.
"""
from __future__ import annotations

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from daybook.db.base import get_db
from daybook.services.narrator import Narrator, get_narrator
from daybook.services.reflection_engine import ReflectionEngine


def get_user_id(
    x_user_id: str = Header(min_length=1, max_length=128, description="Owning user id."),
) -> str:
    return x_user_id.strip()


def get_engine(
    db: Session = Depends(get_db),
    narrator: Narrator = Depends(get_narrator),
) -> ReflectionEngine:
    return ReflectionEngine(db=db, narrator=narrator)
