# src/taskbook/core/errors.py

"""
Error taxonomy shared by the coordinator and its adapters.

Only ValidationError and PersistenceError may fail a coordinator operation.
Suggestion errors reach the caller of the generation flow; DeliveryError
never leaves the coordinator.
"""

from __future__ import annotations


class TaskbookError(Exception):
    """Base class for all taskbook errors."""


class ValidationError(TaskbookError):
    """Caller-supplied input failed a precondition."""


class PersistenceError(TaskbookError):
    """The remote (or local fallback) project store failed."""


class SuggestionError(TaskbookError):
    """Base for normalized suggestion-backend failures."""

    code = "API_ERROR"


class InvalidCredential(SuggestionError):
    code = "INVALID_API_KEY"


class QuotaExceeded(SuggestionError):
    code = "QUOTA_EXCEEDED"


class ProviderError(SuggestionError):
    code = "API_ERROR"


class NotConfiguredError(SuggestionError):
    code = "NOT_CONFIGURED"


class DeliveryError(TaskbookError):
    """A webhook POST did not succeed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def friendly_error_message(err: Exception) -> str:
    if isinstance(err, InvalidCredential):
        return "The AI provider rejected the API key. Check it with /key <secret>."
    if isinstance(err, QuotaExceeded):
        return "The AI provider quota is exhausted or rate-limited. Try again later."
    if isinstance(err, NotConfiguredError):
        return "AI suggestions are not configured. Set an API key with /key <secret>."
    if isinstance(err, SuggestionError):
        return "The AI provider failed to generate a response."
    if isinstance(err, PersistenceError):
        return f"Storage error: {err}"
    msg = str(err).strip()
    return msg or err.__class__.__name__
