"""
Custom exception hierarchy for Daybook.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages. Narrator failures also
carry `retryable` so the UI can decide between "try again" and "fix your
settings".
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class DaybookException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(DaybookException):
    """A memory or reflection id does not exist or belongs to another user."""
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource.capitalize()} {identifier} not found.",
            details={"resource": resource, "id": str(identifier)},
        )


class MemoryNotEditableError(DaybookException):
    http_status = status.HTTP_409_CONFLICT
    code = "MEMORY_NOT_EDITABLE"

    def __init__(self, day: date, today: date):
        super().__init__(
            message=f"Memory for {day} can no longer be edited; only {today} is writable.",
            details={"day": str(day), "today": str(today)},
        )


class InconsistentStateError(DaybookException):
    """A selection row points at a reflection that cannot be resolved."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INCONSISTENT_STATE"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details)


# --- Narrator failures -----------------------------------------------------

class NarratorError(DaybookException):
    """Base for classified generation failures. None of them leave store writes behind."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "NARRATOR_ERROR"


class NarratorAuthError(NarratorError):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "NARRATOR_AUTH"

    def __init__(self, message: str = "Narrator rejected the API key. Check the OpenRouter key."):
        super().__init__(message=message)


class NarratorNetworkError(NarratorError):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "NARRATOR_NETWORK"
    retryable = True

    def __init__(self, message: str = "Unable to reach the narrator service. Check your connection."):
        super().__init__(message=message)


class NarratorRateLimitedError(NarratorError):
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    code = "NARRATOR_RATE_LIMITED"
    retryable = True

    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(
            message="Narrator rate limit exceeded. Please try again in a moment.",
            details={"retry_after": retry_after} if retry_after is not None else {},
        )


class NarratorMalformedResponseError(NarratorError):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "NARRATOR_MALFORMED_RESPONSE"
    retryable = True

    def __init__(self, message: str = "Narrator returned an unusable response."):
        super().__init__(message=message)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def daybook_exception_handler(request: Request, exc: DaybookException) -> JSONResponse:
    headers = None
    if isinstance(exc, NarratorRateLimitedError) and exc.retry_after is not None:
        headers = {"Retry-After": str(int(exc.retry_after))}
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
