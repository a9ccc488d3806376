# src/taskbook/llm/client.py

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from ..core.errors import (
    InvalidCredential,
    NotConfiguredError,
    ProviderError,
    QuotaExceeded,
    SuggestionError,
)

logger = logging.getLogger(__name__)

MAX_TASK_SUGGESTIONS = 7
MAX_PROJECT_IDEAS = 5

TASKS_SYSTEM_PROMPT = (
    "You are a project management assistant. Generate 5-7 specific, actionable tasks "
    "for the given project. Return only the task titles, one per line."
)

IMPROVE_SYSTEM_PROMPT = (
    "You are a project management assistant. Improve the given task description to be "
    "more specific, actionable, and clear. Keep it concise but detailed."
)

IDEAS_SYSTEM_PROMPT = (
    "You are a business consultant. Generate 5 specific project ideas based on the "
    "industry and goals provided. Return only the project titles, one per line."
)

_QUOTA_CODES = {"insufficient_quota", "billing_hard_limit_reached", "billing_not_active"}


def _status_code(exc: Exception) -> int | None:
    code = getattr(exc, "status_code", None)
    return code if isinstance(code, int) else None


def _error_code(exc: Exception) -> str | None:
    """Structured error code from an OpenAI-style body: {"error": {"code": ...}}."""
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return code
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict):
            raw = inner.get("code") or inner.get("type")
            if isinstance(raw, str):
                return raw
    return None


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return _status_code(exc) in (401, 403)


def _is_quota_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    if _status_code(exc) == 429:
        return True
    return _error_code(exc) in _QUOTA_CODES


def normalize_provider_error(exc: Exception) -> SuggestionError:
    """Map a provider exception to the stable taskbook error contract."""
    if isinstance(exc, SuggestionError):
        return exc
    if _is_auth_error(exc):
        return InvalidCredential("The suggestion provider rejected the API key.")
    if _is_quota_error(exc):
        return QuotaExceeded("The suggestion provider quota or rate limit was exceeded.")
    return ProviderError("The suggestion provider request failed.")


def split_lines(content: str, limit: int) -> list[str]:
    return [line for line in (content or "").split("\n") if line.strip()][:limit]


class OpenAISuggestionProvider:
    """
    Suggestion adapter over an OpenAI-compatible chat completion API.

    The client is built on configure(); no request is made until the first
    generation call, so a wrong key only shows up as InvalidCredential then.
    """

    def __init__(
        self,
        *,
        model: str = "gpt-3.5-turbo",
        base_url: str | None = None,
        timeout_seconds: float = 15.0,
        temperature: float = 0.7,
        max_tokens: int = 300,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = model
        self._base_url = base_url
        self._timeout = httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds))
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._http_client = http_client
        self._client: AsyncOpenAI | None = None

    @classmethod
    def from_settings(cls, settings: Any, *, http_client: httpx.AsyncClient | None = None) -> "OpenAISuggestionProvider":
        return cls(
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.http_timeout_seconds,
            temperature=settings.suggestion_temperature,
            max_tokens=settings.suggestion_max_tokens,
            http_client=http_client,
        )

    def configure(self, secret: str) -> None:
        # Retries are disabled: a 429 must surface as QuotaExceeded right away.
        self._client = AsyncOpenAI(
            api_key=secret,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
            http_client=self._http_client,
        )
        logger.info("Suggestion provider configured (model=%s)", self._model)

    def clear(self) -> None:
        self._client = None
        logger.info("Suggestion provider cleared")

    def is_configured(self) -> bool:
        return self._client is not None

    async def _complete(self, system_prompt: str, user_prompt: str, *, max_tokens: int, temperature: float) -> str:
        client = self._client
        if client is None:
            raise NotConfiguredError("Suggestion provider API key not configured.")
        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            err = normalize_provider_error(e)
            logger.warning("Suggestion request failed (%s): %s", err.code, e.__class__.__name__)
            raise err from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError):
            content = None
        return content or ""

    async def generate_task_suggestions(self, title: str, description: str) -> list[str]:
        content = await self._complete(
            TASKS_SYSTEM_PROMPT,
            f"Project: {title}\nDescription: {description}\n\nGenerate specific tasks for this project:",
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )
        suggestions = split_lines(content, MAX_TASK_SUGGESTIONS)
        logger.info("Generated %d task suggestions", len(suggestions))
        return suggestions

    async def improve_task_description(self, title: str, current_description: str) -> str:
        content = await self._complete(
            IMPROVE_SYSTEM_PROMPT,
            f"Task: {title}\nCurrent Description: {current_description}\n\nImprove this task description:",
            max_tokens=200,
            temperature=0.5,
        )
        return content.strip() or current_description

    async def generate_project_ideas(self, industry: str, goals: str) -> list[str]:
        content = await self._complete(
            IDEAS_SYSTEM_PROMPT,
            f"Industry: {industry}\nGoals: {goals}\n\nGenerate project ideas:",
            max_tokens=250,
            temperature=0.8,
        )
        return split_lines(content, MAX_PROJECT_IDEAS)
