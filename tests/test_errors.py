"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from datetime import date

import pytest

from daybook.core.errors import (
    InconsistentStateError,
    MemoryNotEditableError,
    NarratorAuthError,
    NarratorError,
    NarratorMalformedResponseError,
    NarratorNetworkError,
    NarratorRateLimitedError,
    NotFoundError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_not_found(self):
        err = NotFoundError("reflection", 42)
        assert err.http_status == 404
        assert err.code == "NOT_FOUND"
        assert err.message == "Reflection 42 not found."
        assert err.to_dict()["details"] == {"resource": "reflection", "id": "42"}

    def test_memory_not_editable(self):
        err = MemoryNotEditableError(day=date(2024, 3, 4), today=date(2024, 3, 5))
        assert err.http_status == 409
        assert err.code == "MEMORY_NOT_EDITABLE"
        assert "2024-03-04" in err.message

    def test_inconsistent_state(self):
        err = InconsistentStateError("dangling", details={"reflection_id": 7})
        assert err.http_status == 500
        assert err.code == "INCONSISTENT_STATE"
        assert err.details["reflection_id"] == 7

    @pytest.mark.parametrize("err,status,code,retryable", [
        (NarratorAuthError(), 502, "NARRATOR_AUTH", False),
        (NarratorNetworkError(), 503, "NARRATOR_NETWORK", True),
        (NarratorRateLimitedError(retry_after=10), 429, "NARRATOR_RATE_LIMITED", True),
        (NarratorMalformedResponseError(), 502, "NARRATOR_MALFORMED_RESPONSE", True),
    ])
    def test_narrator_errors(self, err, status, code, retryable):
        assert isinstance(err, NarratorError)
        assert err.http_status == status
        assert err.code == code
        assert err.retryable is retryable

    def test_rate_limited_details(self):
        assert NarratorRateLimitedError(retry_after=10).details == {"retry_after": 10}
        assert NarratorRateLimitedError().details == {}

    def test_to_dict_without_details(self):
        d = NarratorNetworkError().to_dict()
        assert set(d) == {"code", "message"}


# ---------------------------------------------------------------------------
# Integration tests on HTTP error responses
# ---------------------------------------------------------------------------

class TestValidationErrors:
    def test_missing_user_header(self, client):
        r = client.get("/reflections")
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = [e["field"] for e in body["details"]["errors"]]
        assert any("x-user-id" in f for f in fields)

    def test_blank_memory_text(self, client, user_id):
        r = client.put(
            "/memories/2024-03-05",
            json={"text": "   ", "today": "2024-03-05"},
            headers={"X-User-ID": user_id},
        )
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_memory_text_too_long(self, client, user_id):
        r = client.put(
            "/memories/2024-03-05",
            json={"text": "x" * 10_001, "today": "2024-03-05"},
            headers={"X-User-ID": user_id},
        )
        assert r.status_code == 422

    def test_invalid_tone(self, client, user_id):
        r = client.post(
            "/reflections/weekly",
            json={"week_number": 10, "year": 2024, "memory_id": 1, "tone": "sarcastic"},
            headers={"X-User-ID": user_id},
        )
        assert r.status_code == 422
        fields = [e["field"] for e in r.json()["details"]["errors"]]
        assert any("tone" in f for f in fields)

    def test_week_out_of_range(self, client, user_id):
        r = client.get("/reflections/weeks/2024/0/memories", headers={"X-User-ID": user_id})
        assert r.status_code == 422

    def test_month_out_of_range(self, client, user_id):
        r = client.get("/reflections/monthly/options?month=13&year=2024", headers={"X-User-ID": user_id})
        assert r.status_code == 422


class TestDomainErrors:
    def test_past_day_returns_409(self, client, user_id):
        r = client.put(
            "/memories/2024-03-04",
            json={"text": "late entry", "today": "2024-03-05"},
            headers={"X-User-ID": user_id},
        )
        assert r.status_code == 409
        body = r.json()
        assert body["code"] == "MEMORY_NOT_EDITABLE"
        assert body["details"]["day"] == "2024-03-04"

    def test_unknown_reflection_returns_404(self, client, user_id):
        r = client.get("/reflections/987654321", headers={"X-User-ID": user_id})
        assert r.status_code == 404
        assert r.json()["code"] == "NOT_FOUND"

    def test_narrator_rate_limit_sets_retry_after(self, client, narrator, user_id):
        headers = {"X-User-ID": user_id}
        memory = client.put(
            "/memories/2024-03-05", json={"text": "a day", "today": "2024-03-05"}, headers=headers
        ).json()
        narrator.errors.append(NarratorRateLimitedError(retry_after=30))

        r = client.post(
            "/reflections/weekly",
            json={"week_number": 10, "year": 2024, "memory_id": memory["id"]},
            headers=headers,
        )

        assert r.status_code == 429
        assert r.headers["retry-after"] == "30"
        assert r.json()["code"] == "NARRATOR_RATE_LIMITED"

    def test_narrator_unreachable_returns_503(self, client, narrator, user_id):
        headers = {"X-User-ID": user_id}
        memory = client.put(
            "/memories/2024-03-05", json={"text": "a day", "today": "2024-03-05"}, headers=headers
        ).json()
        narrator.errors.append(NarratorNetworkError())

        r = client.post(
            "/reflections/weekly",
            json={"week_number": 10, "year": 2024, "memory_id": memory["id"]},
            headers=headers,
        )

        assert r.status_code == 503
        assert r.json()["code"] == "NARRATOR_NETWORK"
        assert client.get("/reflections", headers=headers).json()["total"] == 0
