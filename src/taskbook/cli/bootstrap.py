# src/taskbook/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into a SessionContext
  (project store, suggestion provider, webhook dispatcher, credentials).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.coordinator import ProjectTaskCoordinator
from ..core.ports import Notifier, ProjectRepo
from ..core.state import SessionContext
from ..llm.client import OpenAISuggestionProvider
from ..notify.dispatcher import NullDispatcher, WebhookDispatcher
from ..store.credential_store import FileCredentialStore
from ..store.project_store import SupabaseProjectStore
from ..store.sqlite_store import SqliteProjectStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.projects_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.credential_path.parent.mkdir(parents=True, exist_ok=True)


def build_project_store(settings) -> ProjectRepo:
    if settings.supabase_url and settings.supabase_key:
        logger.info("Project store: Supabase table=%s", settings.projects_table)
        return SupabaseProjectStore(
            settings.supabase_url,
            settings.supabase_key,
            table=settings.projects_table,
            access_token=settings.supabase_access_token,
            timeout_seconds=settings.http_timeout_seconds,
        )
    if settings.supabase_url:
        logger.warning("Supabase URL set without an anon key; using the local SQLite store.")
    logger.info("Project store: SQLite db=%s", settings.projects_db_path)
    return SqliteProjectStore(settings.projects_db_path, table=settings.projects_table)


def build_notifier(settings) -> Notifier:
    if settings.webhook_base_url:
        logger.info("Webhook notifications enabled base=%s", settings.webhook_base_url)
        return WebhookDispatcher(
            settings.webhook_base_url,
            api_url=settings.workflow_api_url or None,
            timeout_seconds=settings.http_timeout_seconds,
        )
    logger.info("Webhook notifications disabled (no TASKBOOK_WEBHOOK_URL).")
    return NullDispatcher()


def create_session(*, settings=None) -> SessionContext:
    """
    Create a SessionContext from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = build_project_store(settings)
    notifier = build_notifier(settings)
    credentials = FileCredentialStore(settings.credential_path)
    suggestions = OpenAISuggestionProvider.from_settings(settings)

    # A key saved from the console wins over the environment.
    secret = credentials.load() or (settings.openai_api_key or "").strip()
    if secret:
        suggestions.configure(secret)
    else:
        logger.info("AI suggestions disabled until an API key is set (/key <secret>).")

    coordinator = ProjectTaskCoordinator(store, notifier, suggestions)

    return SessionContext(
        settings=settings,
        store=store,
        suggestions=suggestions,
        notifier=notifier,
        credentials=credentials,
        coordinator=coordinator,
    )
