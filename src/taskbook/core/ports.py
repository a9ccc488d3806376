# src/taskbook/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The coordinator depends on Protocols instead of concrete implementations.
This keeps the project store, AI provider and webhook transport swappable
and makes testing easier.
"""

from typing import Any, Protocol

from .models import Project


class ProjectRepo(Protocol):
    """Authoritative store for projects (Supabase table or local SQLite)."""

    async def create(self, title: str, description: str, owner_id: str) -> Project: ...

    async def list_by_owner(self, owner_id: str) -> list[Project]: ...


class SuggestionClient(Protocol):
    """Text-generation adapter. Raises SuggestionError subclasses only."""

    def configure(self, secret: str) -> None: ...
    def clear(self) -> None: ...
    def is_configured(self) -> bool: ...

    async def generate_task_suggestions(self, title: str, description: str) -> list[str]: ...
    async def improve_task_description(self, title: str, current_description: str) -> str: ...
    async def generate_project_ideas(self, industry: str, goals: str) -> list[str]: ...


class Notifier(Protocol):
    """
    Outbound event delivery. Every method raises DeliveryError on failure;
    the coordinator catches and logs it.
    """

    async def notify_project_created(
            self,
            *,
            project_id: str,
            title: str,
            description: str,
            created_by: str,
            team_members: list[str] | None = None,
    ) -> Any: ...

    async def notify_task_created(
            self,
            *,
            project_id: str,
            task_id: str,
            title: str,
            description: str,
            user_id: str,
    ) -> Any: ...

    async def notify_task_status_changed(
            self,
            *,
            project_id: str,
            task_id: str,
            old_status: str,
            new_status: str,
            user_id: str,
    ) -> Any: ...

    async def notify_ai_tasks_generated(
            self,
            *,
            project_id: str,
            project_title: str,
            project_description: str,
            user_id: str,
            generated_tasks: list[str],
    ) -> Any: ...

    async def send_notification(
            self,
            *,
            channel: str,
            recipient: str,
            subject: str,
            message: str,
            priority: str | None = None,
            metadata: dict[str, Any] | None = None,
    ) -> Any: ...

    async def get_workflow_status(self, execution_id: str) -> Any: ...


class SecretStore(Protocol):
    """Persistence for exactly one secret (the provider API key)."""

    def save(self, secret: str) -> None: ...
    def load(self) -> str | None: ...
    def clear(self) -> None: ...
    def exists(self) -> bool: ...
