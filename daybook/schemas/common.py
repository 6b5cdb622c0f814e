"""
Error envelope shared by every router: `{code, message, details}`.

Narrator failures use the same envelope on 429 / 502 / 503; a 429 also
carries the Retry-After header.
"""
from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error envelope returned for all 4xx/5xx responses."""
    code: str = Field(examples=["NOT_FOUND", "MEMORY_NOT_EDITABLE", "NARRATOR_NETWORK"])
    message: str
    details: Optional[dict[str, Any]] = None


class FieldError(BaseModel):
    field: str = Field(examples=["body.text", "header.x-user-id"])
    message: str
    type: str


class ValidationErrorDetails(BaseModel):
    errors: list[FieldError]


class ValidationErrorResponse(ErrorResponse):
    """422 body; `details.errors` lists every rejected field."""
    details: ValidationErrorDetails


VALIDATION_RESPONSES = {
    422: {"model": ValidationErrorResponse, "description": "Request validation failed."},
}
