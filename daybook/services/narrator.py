"""
Narrator: turns one memory into a reframed narrative via an
OpenRouter-compatible chat completions API.

The engine only sees `Narrator.generate(request) -> NarrationResult`.
Every failure is classified into one of the Narrator* errors in
core/errors.py; nothing here retries. Callers use `exc.retryable`.

Public API
----------
build_system_prompt(tone)            -> str
build_prompt(request)                -> str
max_tokens_for(period_scale)         -> int
OpenRouterNarrator.generate(request) -> NarrationResult
OpenRouterNarrator.check_connection() -> bool
get_narrator()                       -> Narrator   (FastAPI dependency)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Protocol

import httpx

from daybook.core.config import settings
from daybook.core.errors import (
    NarratorAuthError,
    NarratorMalformedResponseError,
    NarratorNetworkError,
    NarratorRateLimitedError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------

@dataclass
class NarrationRequest:
    text: str
    period_scale: str                   # "weekly" | "monthly" | "yearly"
    tone: str                           # "therapeutic" | "inspirational"
    memory_date: Optional[date] = None
    context_text: Optional[str] = None  # lower-tier narrative for monthly/yearly


@dataclass
class NarrationResult:
    narrative: str
    word_count: int
    prompt_used: str
    model: Optional[str] = None


class Narrator(Protocol):
    def generate(self, request: NarrationRequest) -> NarrationResult: ...


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_TONE_INSTRUCTIONS = {
    "therapeutic": (
        "Please create a therapeutic reframing of this memory. Help me see this experience "
        "in a new light that promotes healing, understanding, and personal growth. Focus on:\n"
        "- What this experience might have taught me\n"
        "- How it contributed to my resilience and strength\n"
        "- Any hidden gifts or lessons within the difficulty\n"
        "- A compassionate perspective that honors my feelings while offering hope"
    ),
    "inspirational": (
        "Please create an inspirational narrative based on this memory. Transform this "
        "experience into a source of motivation and empowerment. Focus on:\n"
        "- The courage and strength I showed during this experience\n"
        "- How this moment connects to my larger journey of growth\n"
        "- The positive impact this experience may have on my future\n"
        "- An uplifting perspective that celebrates my resilience"
    ),
}

_LENGTH_INSTRUCTIONS = {
    "weekly": "Keep the response between 200-400 words.",
    "monthly": "Keep the response between 400-600 words, providing deeper insights.",
    "yearly": "Keep the response between 600-800 words, offering profound life reflections.",
}

_MAX_TOKENS = {"weekly": 600, "monthly": 900, "yearly": 1200}

_GUIDELINES = """
Guidelines:
- Always maintain a warm, supportive, and non-judgmental tone
- Acknowledge the person's feelings and experiences as valid
- Focus on growth, resilience, and positive reframing
- Use "you" to speak directly to the person
- Avoid clinical language; write like a wise, caring friend
- Never minimize or dismiss difficult experiences
- Find genuine insights and meaning, not superficial positivity
- End with hope and encouragement for the future"""


def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def build_system_prompt(tone: str) -> str:
    return (
        f"You are a compassionate AI assistant specializing in {_ev(tone)} storytelling "
        "for personal growth and healing. Your role is to help people reframe their "
        "memories in positive, empowering ways.\n" + _GUIDELINES
    )


def build_prompt(request: NarrationRequest) -> str:
    tone = _ev(request.tone)
    scale = _ev(request.period_scale)
    if tone not in _TONE_INSTRUCTIONS:
        raise ValueError(f"unknown tone: {tone!r}")
    if scale not in _LENGTH_INSTRUCTIONS:
        raise ValueError(f"unknown period scale: {scale!r}")

    when = f" from {request.memory_date}" if request.memory_date else ""
    parts = [f'Here is a memory{when}:\n\n"{request.text}"']
    if request.context_text:
        parts.append(request.context_text)
    parts.append(_TONE_INSTRUCTIONS[tone])
    parts.append(_LENGTH_INSTRUCTIONS[scale])
    parts.append("Write in a warm, supportive tone as if speaking to a dear friend.")
    return "\n\n".join(parts)


def max_tokens_for(period_scale: str) -> int:
    return _MAX_TOKENS.get(_ev(period_scale), _MAX_TOKENS["weekly"])


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# OpenRouter client
# ---------------------------------------------------------------------------

class OpenRouterNarrator:
    """Synchronous client; FastAPI runs sync endpoints in its threadpool."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "sarvamai/sarvam-m:free",
        timeout: float = 60.0,
        temperature: float = 0.7,
        app_title: str = "Daily Memory Journal",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.model = model
        self._timeout = timeout
        self._temperature = temperature
        self._app_title = app_title
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "X-Title": self._app_title,
        }

    def generate(self, request: NarrationRequest) -> NarrationResult:
        if not self._api_key:
            raise NarratorAuthError("Narrator API key is not configured.")

        prompt = build_prompt(request)
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(request.tone)},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens_for(request.period_scale),
            "temperature": self._temperature,
            "top_p": 0.9,
        }

        data = self._post("/chat/completions", payload)
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise NarratorMalformedResponseError("Narrator response is missing choices.")
        message = (choices[0] or {}).get("message") or {}
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise NarratorMalformedResponseError("Narrator response has no narrative text.")

        narrative = content.strip()
        return NarrationResult(
            narrative=narrative,
            word_count=len(narrative.split()),
            prompt_used=prompt,
            model=data.get("model") or self.model,
        )

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        try:
            with self._client() as client:
                response = client.post(url, headers=self._headers(), json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("narrator timeout url=%s err=%s", url, exc)
            raise NarratorNetworkError("Narrator request timed out.") from exc
        except httpx.RequestError as exc:
            logger.warning("narrator network error url=%s err=%s", url, exc)
            raise NarratorNetworkError() from exc

        self._raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("narrator returned non-JSON body status=%s", response.status_code)
            raise NarratorMalformedResponseError("Narrator returned a non-JSON body.") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        code = response.status_code
        if response.is_success:
            return
        logger.warning("narrator http error status=%s body=%s", code, response.text[:400])
        if code in (401, 403):
            raise NarratorAuthError()
        if code == 429:
            raise NarratorRateLimitedError(_parse_retry_after(response.headers.get("retry-after")))
        if code >= 500:
            raise NarratorNetworkError(f"Narrator service unavailable ({code}).")
        raise NarratorMalformedResponseError(f"Narrator rejected the request ({code}).")

    def check_connection(self) -> bool:
        """GET /models with the configured key; False on any failure."""
        if not self._api_key:
            return False
        try:
            with self._client() as client:
                response = client.get(f"{self._base_url}/models", headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("narrator connection check failed err=%s", exc)
            return False
        return response.is_success


def get_narrator() -> Narrator:
    """FastAPI dependency; tests override it with a scripted narrator."""
    return OpenRouterNarrator(
        settings.OPENROUTER_API_KEY,
        base_url=settings.OPENROUTER_BASE_URL,
        model=settings.NARRATOR_MODEL,
        timeout=settings.NARRATOR_TIMEOUT_SECONDS,
        temperature=settings.NARRATOR_TEMPERATURE,
        app_title=settings.NARRATOR_APP_TITLE,
    )
