"""
Reflection request / response schemas.

GET  /reflections                              → ReflectionListResponse
GET  /reflections/{id}                         → ReflectionResponse
GET  /reflections/triggers                     → TriggerListResponse
POST /reflections/triggers/refresh             → RefreshTriggersRequest → RefreshTriggersResponse
GET  /reflections/weeks/{year}/{week}/memories → WeekMemoriesResponse
GET  /reflections/weeks/{year}/{week}/selection → OptionResponse | null
POST /reflections/weekly                       → WeeklyReflectionRequest  → ReflectionResponse
GET  /reflections/monthly/options              → OptionListResponse
POST /reflections/monthly                      → MonthlyReflectionRequest → ReflectionResponse
GET  /reflections/yearly/options               → OptionListResponse
POST /reflections/yearly                       → YearlyReflectionRequest  → ReflectionResponse
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from daybook.models.reflection import Tone
from daybook.schemas.memory import MemoryResponse


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class WeeklyReflectionRequest(BaseModel):
    week_number: int = Field(ge=1, le=54, examples=[10])
    year: int = Field(ge=1970, le=9999, examples=[2024])
    memory_id: int = Field(description="The memory chosen for this week.")
    tone: Tone = Field(default=Tone.therapeutic)


class MonthlyReflectionRequest(BaseModel):
    month: int = Field(ge=1, le=12, examples=[3])
    year: int = Field(ge=1970, le=9999, examples=[2024])
    weekly_reflection_id: int = Field(description="A weekly reflection from monthly options.")
    tone: Tone = Field(default=Tone.therapeutic)


class YearlyReflectionRequest(BaseModel):
    year: int = Field(ge=1970, le=9999, examples=[2024])
    monthly_reflection_id: int = Field(description="A monthly reflection from yearly options.")
    tone: Tone = Field(default=Tone.therapeutic)


class RefreshTriggersRequest(BaseModel):
    today: Optional[date] = Field(
        default=None,
        description="Caller's local date. Defaults to today (UTC).",
    )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ReflectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tier: str = Field(description='"weekly" | "monthly" | "yearly"')
    seed_memory_id: int = Field(description="Original daily memory behind this reflection.")
    narrative: str
    tone: str
    week_number: Optional[int] = None
    month: Optional[int] = None
    year: int
    prompt_used: str
    model: Optional[str] = None
    word_count: int
    created_at: str


class ReflectionListResponse(BaseModel):
    total: int
    items: list[ReflectionResponse]


class TriggerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tier: str
    period_key: str = Field(examples=["2024-W10", "2024-03", "2024"])
    week_number: Optional[int] = None
    month: Optional[int] = None
    year: int
    completed: bool
    trigger_date: str


class TriggerListResponse(BaseModel):
    total: int
    items: list[TriggerResponse]


class RefreshTriggersResponse(BaseModel):
    created: list[TriggerResponse] = Field(description="Triggers created by this call only.")
    pending: list[TriggerResponse] = Field(description="All pending triggers, oldest first.")


class WeekMemoriesResponse(BaseModel):
    week_number: int
    year: int
    week_start: str
    week_end: str
    items: list[MemoryResponse]


class OptionResponse(BaseModel):
    """A period selection with the reflection it produced and its seed memory."""
    selection_id: int
    period_key: str
    reflection: ReflectionResponse
    memory: Optional[MemoryResponse] = None


class OptionListResponse(BaseModel):
    total: int
    items: list[OptionResponse]
