"""
Memories router.

PUT    /memories/{day}   — Write today's memory (create or replace)
GET    /memories         — Memories for a month (newest first)
GET    /memories/dates   — Days with a memory in a month (calendar highlights)
GET    /memories/{day}   — Memory for one day
DELETE /memories/{day}   — Delete a memory (explicit user action)
"""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from daybook.core.errors import NotFoundError
from daybook.db.base import get_db
from daybook.models.memory import Memory
from daybook.routers.deps import get_user_id
from daybook.schemas.common import VALIDATION_RESPONSES, ErrorResponse
from daybook.schemas.memory import (
    MemoryDatesResponse,
    MemoryListResponse,
    MemoryResponse,
    MemoryUpsertRequest,
)
from daybook.services import memory as memory_service

router = APIRouter(prefix="/memories", tags=["memories"], responses=VALIDATION_RESPONSES)


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def memory_to_response(m: Memory) -> MemoryResponse:
    return MemoryResponse(
        id=m.id,
        day=str(m.day),
        text=m.text,
        mood=m.mood,
        prompt=m.prompt,
        word_count=m.word_count,
        created_at=m.created_at.isoformat() if m.created_at else "",
        updated_at=m.updated_at.isoformat() if m.updated_at else "",
    )


# ---------------------------------------------------------------------------
# PUT /memories/{day}
# ---------------------------------------------------------------------------

@router.put(
    "/{day}",
    response_model=MemoryResponse,
    summary="Write the memory for a day (today only)",
    responses={
        409: {"model": ErrorResponse, "description": "Day is not today; memory is read-only."},
    },
)
def put_memory(
    day: date,
    payload: MemoryUpsertRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """
    One memory per day. Writing again on the same day replaces the text,
    mood and prompt in place; past and future days are read-only.
    """
    memory = memory_service.upsert_memory(
        db,
        user_id=user_id,
        day=day,
        text=payload.text,
        mood=payload.mood,
        prompt=payload.prompt,
        today=payload.today,
    )
    return memory_to_response(memory)


# ---------------------------------------------------------------------------
# GET /memories
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=MemoryListResponse,
    summary="List memories for a month (newest first)",
)
def list_memories(
    month: int = Query(ge=1, le=12, examples=[3]),
    year: int = Query(ge=1970, le=9999, examples=[2024]),
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    items = memory_service.get_by_month(db, user_id, month, year)
    return MemoryListResponse(total=len(items), items=[memory_to_response(m) for m in items])


@router.get(
    "/dates",
    response_model=MemoryDatesResponse,
    summary="Days in a month that have a memory",
)
def list_memory_dates(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1970, le=9999),
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    days = memory_service.dates_with_memories(db, user_id, month, year)
    return MemoryDatesResponse(month=month, year=year, dates=[str(d) for d in days])


# ---------------------------------------------------------------------------
# GET /memories/{day}
# ---------------------------------------------------------------------------

@router.get(
    "/{day}",
    response_model=MemoryResponse,
    summary="Memory for one day",
    responses={404: {"model": ErrorResponse, "description": "No memory that day."}},
)
def get_memory(
    day: date,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    memory = memory_service.get_by_date(db, user_id, day)
    if memory is None:
        raise NotFoundError("memory", day)
    return memory_to_response(memory)


# ---------------------------------------------------------------------------
# DELETE /memories/{day}
# ---------------------------------------------------------------------------

@router.delete(
    "/{day}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete the memory for a day",
    responses={404: {"model": ErrorResponse, "description": "No memory that day."}},
)
def delete_memory(
    day: date,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    memory_service.delete_memory(db, user_id, day)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
