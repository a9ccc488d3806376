# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbook.core.coordinator import ProjectTaskCoordinator
from taskbook.core.state import SessionContext

from .fakes import FakeNotifier, FakeProjectStore, FakeSuggestions, MemorySecretStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and adapters.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment.
    """
    return SimpleNamespace(
        app_name="taskbook-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        supabase_url="",
        supabase_key=None,
        supabase_access_token=None,
        projects_table="threads",
        projects_db_path=tmp_path / "projects.sqlite3",
        openai_api_key=None,
        openai_base_url="https://llm.test/v1",
        openai_model="gpt-3.5-turbo",
        suggestion_temperature=0.7,
        suggestion_max_tokens=300,
        webhook_base_url="",
        workflow_api_url="",
        http_timeout_seconds=5.0,
        credential_path=tmp_path / "credentials.json",
        user_id=None,
    )


@pytest.fixture()
def store() -> FakeProjectStore:
    return FakeProjectStore()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def suggestions() -> FakeSuggestions:
    return FakeSuggestions(["1. Design schema", "2. Write tests", "Deploy"])


@pytest.fixture()
def coordinator(
    store: FakeProjectStore,
    notifier: FakeNotifier,
    suggestions: FakeSuggestions,
) -> ProjectTaskCoordinator:
    coord = ProjectTaskCoordinator(store, notifier, suggestions)
    coord.sign_in("user-1")
    return coord


@pytest.fixture()
def ctx(
    settings: SimpleNamespace,
    store: FakeProjectStore,
    notifier: FakeNotifier,
    suggestions: FakeSuggestions,
    coordinator: ProjectTaskCoordinator,
) -> SessionContext:
    """SessionContext wired with deterministic fakes."""
    return SessionContext(
        settings=settings,
        store=store,
        suggestions=suggestions,
        notifier=notifier,
        credentials=MemorySecretStore(),
        coordinator=coordinator,
    )
