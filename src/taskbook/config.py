# src/taskbook/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Every remote collaborator is optional: missing URLs select local fallbacks.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "TASKBOOK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _with_trailing_slash(url: str) -> str:
    url = url.strip()
    if url and not url.endswith("/"):
        return url + "/"
    return url


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Remote project store (Supabase / PostgREST) ----
    supabase_url: str
    supabase_key: Optional[str]
    supabase_access_token: Optional[str]
    projects_table: str
    projects_db_path: Path

    # ---- Suggestions (OpenAI-compatible) ----
    openai_api_key: Optional[str]
    openai_base_url: Optional[str]
    openai_model: str
    suggestion_temperature: float
    suggestion_max_tokens: int

    # ---- Notifications (workflow automation webhooks) ----
    webhook_base_url: str
    workflow_api_url: str

    # ---- Transport ----
    http_timeout_seconds: float

    # ---- Session ----
    credential_path: Path
    user_id: Optional[str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskbook") or "taskbook"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskbook"))

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip()
        supabase_key = _first_env(_k("SUPABASE_ANON_KEY"), "SUPABASE_ANON_KEY", default=None)
        supabase_access_token = _first_env(_k("SUPABASE_ACCESS_TOKEN"), default=None)
        projects_table = _env(_k("PROJECTS_TABLE"), "threads").strip() or "threads"
        projects_db_path = _env_path(_k("PROJECTS_DB_PATH"), data_dir / "projects.sqlite3")

        openai_api_key = _first_env(_k("OPENAI_API_KEY"), "OPENAI_API_KEY", default=None)
        openai_base_url = _first_env(_k("OPENAI_BASE_URL"), default=None)
        openai_model = _env(_k("OPENAI_MODEL"), "gpt-3.5-turbo").strip() or "gpt-3.5-turbo"
        suggestion_temperature = _env_float(_k("SUGGESTION_TEMPERATURE"), 0.7)
        suggestion_max_tokens = _env_int(_k("SUGGESTION_MAX_TOKENS"), 300)

        webhook_base_url = _with_trailing_slash(_env(_k("WEBHOOK_URL"), ""))
        workflow_api_url = _with_trailing_slash(_env(_k("WORKFLOW_API_URL"), ""))

        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0))

        credential_path = _env_path(_k("CREDENTIAL_PATH"), data_dir / "credentials.json")
        user_id = (_first_env(_k("USER_ID"), default="") or "").strip() or None

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            supabase_url=supabase_url,
            supabase_key=supabase_key,
            supabase_access_token=supabase_access_token,
            projects_table=projects_table,
            projects_db_path=projects_db_path,
            openai_api_key=openai_api_key,
            openai_base_url=openai_base_url,
            openai_model=openai_model,
            suggestion_temperature=suggestion_temperature,
            suggestion_max_tokens=suggestion_max_tokens,
            webhook_base_url=webhook_base_url,
            workflow_api_url=workflow_api_url,
            http_timeout_seconds=http_timeout_seconds,
            credential_path=credential_path,
            user_id=user_id,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
