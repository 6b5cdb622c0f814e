"""
Reflections router.

GET  /reflections                               — User's reflections (newest first)
GET  /reflections/triggers                      — Pending triggers (oldest first)
POST /reflections/triggers/refresh              — Evaluate eligibility, create missing triggers
GET  /reflections/weeks/{year}/{week}/memories  — Candidate memories for a weekly reflection
GET  /reflections/weeks/{year}/{week}/selection — The week's current selection, if any
POST /reflections/weekly                        — Generate a weekly reflection
GET  /reflections/monthly/options               — Weekly reflections available for a month
POST /reflections/monthly                       — Generate a monthly reflection
GET  /reflections/yearly/options                — Monthly reflections available for a year
POST /reflections/yearly                        — Generate a yearly reflection
GET  /reflections/{reflection_id}               — One reflection
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from daybook.models.reflection import Reflection, ReflectionTier
from daybook.models.selection import MonthlySelection
from daybook.models.trigger import ReflectionTrigger
from daybook.routers.deps import get_engine, get_user_id
from daybook.routers.memories import memory_to_response
from daybook.schemas.common import VALIDATION_RESPONSES, ErrorResponse
from daybook.schemas.reflection import (
    MonthlyReflectionRequest,
    OptionListResponse,
    OptionResponse,
    ReflectionListResponse,
    ReflectionResponse,
    RefreshTriggersRequest,
    RefreshTriggersResponse,
    TriggerListResponse,
    TriggerResponse,
    WeekMemoriesResponse,
    WeeklyReflectionRequest,
    YearlyReflectionRequest,
)
from daybook.services.reflection_engine import ReflectionEngine, ReflectionOption
from daybook.services.week_math import period_key, week_range

router = APIRouter(prefix="/reflections", tags=["reflections"], responses=VALIDATION_RESPONSES)

_NARRATOR_ERRORS = {
    429: {"model": ErrorResponse, "description": "Narrator rate limited; retry later."},
    502: {"model": ErrorResponse, "description": "Narrator auth failure or malformed response."},
    503: {"model": ErrorResponse, "description": "Narrator unreachable."},
}


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _reflection_to_response(r: Reflection) -> ReflectionResponse:
    return ReflectionResponse(
        id=r.id,
        tier=r.tier,
        seed_memory_id=r.seed_memory_id,
        narrative=r.narrative,
        tone=r.tone,
        week_number=r.week_number,
        month=r.month,
        year=r.year,
        prompt_used=r.prompt_used,
        model=r.model,
        word_count=r.word_count,
        created_at=r.created_at.isoformat() if r.created_at else "",
    )


def _trigger_to_response(t: ReflectionTrigger) -> TriggerResponse:
    return TriggerResponse(
        id=t.id,
        tier=t.tier,
        period_key=t.period_key,
        week_number=t.week_number,
        month=t.month,
        year=t.year,
        completed=t.completed,
        trigger_date=str(t.trigger_date),
    )


def _option_to_response(o: ReflectionOption) -> OptionResponse:
    sel = o.selection
    if isinstance(sel, MonthlySelection):
        key = period_key(ReflectionTier.monthly.value, sel.year, month=sel.month)
    else:
        key = period_key(ReflectionTier.weekly.value, sel.year, week_number=sel.week_number)
    return OptionResponse(
        selection_id=sel.id,
        period_key=key,
        reflection=_reflection_to_response(o.reflection),
        memory=memory_to_response(o.memory) if o.memory is not None else None,
    )


def _options_to_response(options: list[ReflectionOption]) -> OptionListResponse:
    return OptionListResponse(
        total=len(options),
        items=[_option_to_response(o) for o in options],
    )


# ---------------------------------------------------------------------------
# GET /reflections
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=ReflectionListResponse,
    summary="List the user's reflections (newest first)",
)
def list_reflections(
    tier: Optional[ReflectionTier] = Query(default=None, description="Filter by tier."),
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    items = engine.user_reflections(user_id, tier=tier)
    return ReflectionListResponse(
        total=len(items),
        items=[_reflection_to_response(r) for r in items],
    )


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

@router.get(
    "/triggers",
    response_model=TriggerListResponse,
    summary="Pending reflection triggers (oldest first)",
)
def list_pending_triggers(
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    items = engine.pending_triggers(user_id)
    return TriggerListResponse(total=len(items), items=[_trigger_to_response(t) for t in items])


@router.post(
    "/triggers/refresh",
    response_model=RefreshTriggersResponse,
    summary="Evaluate reflection eligibility",
)
def refresh_triggers(
    payload: Optional[RefreshTriggersRequest] = None,
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    """
    Check the previous and current week, the previous month (first week of
    a month only) and the previous year (week 1 of January only), and
    create any missing trigger.

    **Idempotent**: calling again creates nothing new.
    """
    today = (payload.today if payload else None) or _today()
    created = engine.refresh_triggers(user_id, today)
    pending = engine.pending_triggers(user_id)
    return RefreshTriggersResponse(
        created=[_trigger_to_response(t) for t in created],
        pending=[_trigger_to_response(t) for t in pending],
    )


# ---------------------------------------------------------------------------
# Weekly
# ---------------------------------------------------------------------------

@router.get(
    "/weeks/{year}/{week_number}/memories",
    response_model=WeekMemoriesResponse,
    summary="Memories inside a week (oldest first)",
)
def get_week_memories(
    year: int = Path(ge=1970, le=9999),
    week_number: int = Path(ge=1, le=54),
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    start, end = week_range(year, week_number)
    items = engine.get_week_memories(user_id, week_number, year)
    return WeekMemoriesResponse(
        week_number=week_number,
        year=year,
        week_start=str(start),
        week_end=str(end),
        items=[memory_to_response(m) for m in items],
    )


@router.get(
    "/weeks/{year}/{week_number}/selection",
    response_model=Optional[OptionResponse],
    summary="The week's current selection (null if none)",
    responses={500: {"model": ErrorResponse, "description": "Selection references a missing reflection."}},
)
def get_week_selection(
    year: int = Path(ge=1970, le=9999),
    week_number: int = Path(ge=1, le=54),
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    option = engine.weekly_selection(user_id, week_number, year)
    return _option_to_response(option) if option is not None else None


@router.post(
    "/weekly",
    response_model=ReflectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a weekly reflection from a chosen memory",
    responses={404: {"model": ErrorResponse, "description": "Memory not found."}, **_NARRATOR_ERRORS},
)
def create_weekly_reflection(
    payload: WeeklyReflectionRequest,
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    """
    Narrate the chosen memory, then persist the reflection and the week's
    selection together and complete the weekly trigger. Narrator failures
    write nothing.
    """
    reflection = engine.create_weekly_reflection(
        user_id, payload.week_number, payload.year, payload.memory_id, payload.tone
    )
    return _reflection_to_response(reflection)


# ---------------------------------------------------------------------------
# Monthly
# ---------------------------------------------------------------------------

@router.get(
    "/monthly/options",
    response_model=OptionListResponse,
    summary="Weekly reflections whose memory falls in the month",
)
def monthly_options(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1970, le=9999),
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    """An empty list means there is nothing to reflect on yet."""
    return _options_to_response(engine.monthly_options(user_id, month, year))


@router.post(
    "/monthly",
    response_model=ReflectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a monthly reflection from a weekly reflection",
    responses={404: {"model": ErrorResponse, "description": "Weekly reflection or memory not found."}, **_NARRATOR_ERRORS},
)
def create_monthly_reflection(
    payload: MonthlyReflectionRequest,
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    reflection = engine.create_monthly_reflection(
        user_id, payload.month, payload.year, payload.weekly_reflection_id, payload.tone
    )
    return _reflection_to_response(reflection)


# ---------------------------------------------------------------------------
# Yearly
# ---------------------------------------------------------------------------

@router.get(
    "/yearly/options",
    response_model=OptionListResponse,
    summary="Monthly reflections for the year (month ascending)",
)
def yearly_options(
    year: int = Query(ge=1970, le=9999),
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    return _options_to_response(engine.yearly_options(user_id, year))


@router.post(
    "/yearly",
    response_model=ReflectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a yearly reflection from a monthly reflection",
    responses={404: {"model": ErrorResponse, "description": "Monthly reflection or memory not found."}, **_NARRATOR_ERRORS},
)
def create_yearly_reflection(
    payload: YearlyReflectionRequest,
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    reflection = engine.create_yearly_reflection(
        user_id, payload.year, payload.monthly_reflection_id, payload.tone
    )
    return _reflection_to_response(reflection)


# ---------------------------------------------------------------------------
# GET /reflections/{reflection_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{reflection_id}",
    response_model=ReflectionResponse,
    summary="Retrieve one reflection",
    responses={404: {"model": ErrorResponse, "description": "Reflection not found."}},
)
def get_reflection(
    reflection_id: int,
    user_id: str = Depends(get_user_id),
    engine: ReflectionEngine = Depends(get_engine),
):
    return _reflection_to_response(engine.get_reflection(user_id, reflection_id))
