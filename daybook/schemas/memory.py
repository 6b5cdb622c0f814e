"""
Memory request / response schemas.

PUT    /memories/{day}     → MemoryUpsertRequest → MemoryResponse
GET    /memories/{day}     → MemoryResponse
GET    /memories           → MemoryListResponse
GET    /memories/dates     → MemoryDatesResponse
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from daybook.models.memory import Mood


class MemoryUpsertRequest(BaseModel):
    """Write today's memory. Saving again the same day replaces the text."""
    text: str = Field(
        min_length=1,
        max_length=10_000,
        description="Free-text journal entry.",
        examples=["Walked to the lake with Sam and talked about moving."],
    )
    mood: Optional[Mood] = Field(default=None, description="Optional mood tag.")
    prompt: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Daily prompt the user answered, if any.",
    )
    today: Optional[date] = Field(
        default=None,
        description="Caller's local date. Defaults to today (UTC). Only this day is writable.",
    )

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class MemoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    day: str = Field(description="ISO date of the entry.")
    text: str
    mood: Optional[str] = None
    prompt: Optional[str] = None
    word_count: int
    created_at: str
    updated_at: str


class MemoryListResponse(BaseModel):
    total: int
    items: list[MemoryResponse]


class MemoryDatesResponse(BaseModel):
    month: int
    year: int
    dates: list[str] = Field(description="ISO dates with an entry, ascending.")
