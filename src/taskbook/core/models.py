# src/taskbook/core/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from .errors import ValidationError

DEFAULT_PROJECT_TITLE = "Untitled Project"


class TaskStatus(StrEnum):
    """
    Task status.

    Any state is reachable from any state; transitions only happen through
    an explicit status update.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, raw: TaskStatus | str) -> TaskStatus:
        if isinstance(raw, cls):
            return raw
        value = str(raw or "").strip().lower()
        # Console users tend to type "in_progress" / "in progress".
        value = value.replace("_", "-").replace(" ", "-")
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown task status {raw!r} (expected one of: {allowed})") from None


def new_task_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    description: str
    status: TaskStatus
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    title: str
    description: str
    created_at: datetime
    owner_id: str
    # Session-local: never fetched from or written to the project store.
    tasks: tuple[Task, ...] = field(default_factory=tuple)

    def find_task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tasks": [t.to_dict() for t in self.tasks],
            "createdAt": self.created_at,
        }
