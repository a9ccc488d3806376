# src/taskbook/core/coordinator.py

"""
Project/task coordinator.

Owns the session's in-memory projects and applies every mutation:
- validates input before any side effect,
- persists projects through the ProjectRepo (tasks stay session-local),
- replaces the projects tuple on every change (copy-on-write),
- fires webhook notifications only after the state change is final.

Notifications are launched as background asyncio tasks. Their outcome never
reaches the caller; failures are logged. Use drain() to wait for them.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from .errors import DeliveryError, NotConfiguredError, PersistenceError, ValidationError
from .models import Project, Task, TaskStatus, new_task_id
from .ports import Notifier, ProjectRepo, SuggestionClient

logger = logging.getLogger(__name__)

ORDINAL_PREFIX = re.compile(r"^\d+\.\s*")


def strip_ordinal_prefix(title: str) -> str:
    """'1. Design schema' -> 'Design schema'."""
    return ORDINAL_PREFIX.sub("", (title or "").strip(), count=1).strip()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProjectTaskCoordinator:
    def __init__(
        self,
        store: ProjectRepo,
        notifier: Notifier,
        suggestions: SuggestionClient,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._suggestions = suggestions
        self._clock = clock or _utcnow

        self._active_user: str | None = None
        self._projects: tuple[Project, ...] = ()
        self._pending: set[asyncio.Task[None]] = set()

    # ---- session ----

    @property
    def active_user(self) -> str | None:
        return self._active_user

    @property
    def projects(self) -> tuple[Project, ...]:
        return self._projects

    @property
    def suggestions_enabled(self) -> bool:
        return self._suggestions.is_configured()

    def sign_in(self, user_id: str) -> None:
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValidationError("User id must not be empty.")
        if user_id != self._active_user:
            self._projects = ()
        self._active_user = user_id
        logger.info("Signed in user=%s", user_id)

    def sign_out(self) -> None:
        if self._active_user is not None:
            logger.info("Signed out user=%s", self._active_user)
        self._active_user = None
        self._projects = ()

    def get_project(self, project_id: str) -> Project | None:
        for p in self._projects:
            if p.id == project_id:
                return p
        return None

    # ---- mutations ----

    async def create_project(self, title: str, description: str = "") -> Project:
        if not (title or "").strip():
            raise ValidationError("Project title must not be empty.")
        user_id = self._active_user
        if not user_id:
            raise ValidationError("No active user. Sign in before creating projects.")

        try:
            project = await self._store.create(title, description or "", user_id)
        except PersistenceError as e:
            logger.warning("create_project failed user=%s: %s", user_id, e)
            raise

        # The session may have changed while the store was busy.
        if self._active_user == user_id:
            self._projects = (project, *self._projects)
        logger.info("Project created id=%s user=%s", project.id, user_id)

        self._fire(
            "project.created",
            lambda: self._notifier.notify_project_created(
                project_id=project.id,
                title=project.title,
                description=project.description,
                created_by=user_id,
                team_members=[],
            ),
        )
        return project

    async def add_task(self, project_id: str, title: str, description: str = "") -> Task | None:
        if not (title or "").strip():
            raise ValidationError("Task title must not be empty.")

        project = self.get_project(project_id)
        if project is None:
            logger.debug("add_task: unknown project_id=%s (ignored)", project_id)
            return None

        task = Task(
            id=new_task_id(),
            title=title,
            description=description or "",
            status=TaskStatus.PENDING,
            created_at=self._clock(),
        )
        self._put(replace(project, tasks=(*project.tasks, task)))
        logger.info("Task added id=%s project=%s", task.id, project_id)

        user_id = self._active_user
        if user_id:
            self._fire(
                "task.created",
                lambda: self._notifier.notify_task_created(
                    project_id=project_id,
                    task_id=task.id,
                    title=task.title,
                    description=task.description,
                    user_id=user_id,
                ),
            )
        return task

    async def update_task_status(
        self,
        project_id: str,
        task_id: str,
        new_status: TaskStatus | str,
    ) -> Task | None:
        status = TaskStatus.parse(new_status)

        project = self.get_project(project_id)
        old_task = project.find_task(task_id) if project is not None else None
        if project is None or old_task is None:
            logger.debug("update_task_status: unknown project=%s task=%s (ignored)", project_id, task_id)
            return None

        old_status = old_task.status
        updated = replace(old_task, status=status)
        tasks = tuple(updated if t.id == task_id else t for t in project.tasks)
        self._put(replace(project, tasks=tasks))
        logger.info("Task %s: %s -> %s", task_id, old_status.value, status.value)

        user_id = self._active_user
        if user_id:
            self._fire(
                "task.status_changed",
                lambda: self._notifier.notify_task_status_changed(
                    project_id=project_id,
                    task_id=task_id,
                    old_status=old_status.value,
                    new_status=status.value,
                    user_id=user_id,
                ),
            )
        return updated

    async def apply_generated_tasks(self, project_id: str, titles: Iterable[str]) -> list[Task]:
        """
        Turn generated titles into pending tasks.

        Stored titles lose their "1. " numbering; the notification carries
        the titles exactly as generated.
        """
        raw_titles = [str(t) for t in titles]

        project = self.get_project(project_id)
        if project is None:
            logger.debug("apply_generated_tasks: unknown project_id=%s (ignored)", project_id)
            return []

        now = self._clock()
        description = f"AI-generated task for {project.title}"
        new_tasks: list[Task] = []
        for raw in raw_titles:
            title = strip_ordinal_prefix(raw)
            if not title:
                continue
            new_tasks.append(
                Task(
                    id=new_task_id(),
                    title=title,
                    description=description,
                    status=TaskStatus.PENDING,
                    created_at=now,
                )
            )

        if new_tasks:
            self._put(replace(project, tasks=(*project.tasks, *new_tasks)))
        logger.info("Applied %d generated tasks to project=%s", len(new_tasks), project_id)

        user_id = self._active_user
        if user_id:
            self._fire(
                "ai.tasks_generated",
                lambda: self._notifier.notify_ai_tasks_generated(
                    project_id=project.id,
                    project_title=project.title,
                    project_description=project.description,
                    user_id=user_id,
                    generated_tasks=raw_titles,
                ),
            )
        return new_tasks

    async def generate_tasks(self, project_id: str) -> list[Task]:
        """
        Ask the suggestion provider for tasks and apply them.

        Suggestion errors propagate unchanged; nothing is mutated in that case.
        """
        if not self._suggestions.is_configured():
            raise NotConfiguredError("AI suggestions are not configured.")

        project = self.get_project(project_id)
        if project is None:
            return []

        titles = await self._suggestions.generate_task_suggestions(project.title, project.description)
        return await self.apply_generated_tasks(project_id, titles)

    async def refine_task_description(self, project_id: str, task_id: str) -> Task | None:
        if not self._suggestions.is_configured():
            raise NotConfiguredError("AI suggestions are not configured.")

        project = self.get_project(project_id)
        task = project.find_task(task_id) if project is not None else None
        if task is None:
            return None

        text = await self._suggestions.improve_task_description(task.title, task.description)

        # Re-read: the session may have changed while the provider was busy.
        project = self.get_project(project_id)
        current = project.find_task(task_id) if project is not None else None
        if project is None or current is None:
            return None

        updated = replace(current, description=text)
        self._put(replace(project, tasks=tuple(updated if t.id == task_id else t for t in project.tasks)))
        logger.info("Task %s description refined", task_id)
        return updated

    async def load_projects(self, owner_id: str | None = None) -> tuple[Project, ...]:
        """
        Replace the in-memory projects with the owner's stored projects.

        Tasks are not stored remotely, so every loaded project starts with
        no tasks. A store failure keeps the previous (stale) projects.
        """
        owner = (owner_id or self._active_user or "").strip()
        if not owner:
            logger.debug("load_projects: no owner and no active user (ignored)")
            return self._projects

        try:
            rows = await self._store.list_by_owner(owner)
        except PersistenceError as e:
            logger.warning(
                "load_projects failed owner=%s: %s (keeping %d cached projects)",
                owner,
                e,
                len(self._projects),
            )
            return self._projects

        self._projects = tuple(sorted(rows, key=lambda p: p.created_at, reverse=True))
        logger.info("Loaded %d projects owner=%s", len(self._projects), owner)
        return self._projects

    # ---- notifications ----

    async def drain(self) -> None:
        """Wait until every in-flight notification has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _fire(self, event: str, send: Callable[[], Awaitable[Any]]) -> None:
        task = asyncio.create_task(self._deliver(event, send))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: str, send: Callable[[], Awaitable[Any]]) -> None:
        try:
            await send()
            logger.debug("Notification delivered event=%s", event)
        except DeliveryError as e:
            logger.warning("Notification failed event=%s: %s", event, e)
        except Exception:
            logger.exception("Notification crashed event=%s", event)

    # ---- internals ----

    def _put(self, project: Project) -> None:
        self._projects = tuple(project if p.id == project.id else p for p in self._projects)
