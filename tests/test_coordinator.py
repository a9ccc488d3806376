# tests/test_coordinator.py

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from taskbook.core.coordinator import ProjectTaskCoordinator, strip_ordinal_prefix
from taskbook.core.errors import (
    NotConfiguredError,
    PersistenceError,
    QuotaExceeded,
    ValidationError,
)
from taskbook.core.models import Project, TaskStatus

from .fakes import T0, FakeNotifier, FakeProjectStore, FakeSuggestions

BLANK_TITLES = ["", "   ", "\t\n "]


async def _project_with_task(coordinator: ProjectTaskCoordinator, notifier: FakeNotifier):
    project = await coordinator.create_project("Foo", "bar")
    task = await coordinator.add_task(project.id, "First", "do it")
    await coordinator.drain()
    notifier.events.clear()
    return project, task


# ---- create_project ----

@pytest.mark.asyncio
async def test_create_project_end_to_end(coordinator, store, notifier) -> None:
    store.next_id = 42
    store.next_created_at = T0

    project = await coordinator.create_project("Launch")
    await coordinator.drain()

    assert coordinator.projects[0] == project
    assert coordinator.projects[0].to_dict() == {
        "id": "42",
        "title": "Launch",
        "description": "",
        "tasks": [],
        "createdAt": T0,
    }
    assert store.create_calls == [("Launch", "", "user-1")]
    assert notifier.names() == ["project.created"]
    assert notifier.events[0].data == {
        "project_id": "42",
        "title": "Launch",
        "description": "",
        "created_by": "user-1",
        "team_members": [],
    }


@pytest.mark.asyncio
async def test_create_project_prepends_newest_first(coordinator) -> None:
    first = await coordinator.create_project("One")
    second = await coordinator.create_project("Two")
    assert [p.id for p in coordinator.projects] == [second.id, first.id]
    await coordinator.drain()


@pytest.mark.asyncio
@pytest.mark.parametrize("title", BLANK_TITLES)
async def test_create_project_rejects_blank_title(coordinator, store, notifier, title) -> None:
    with pytest.raises(ValidationError):
        await coordinator.create_project(title, "desc")
    await coordinator.drain()

    assert coordinator.projects == ()
    assert store.create_calls == []
    assert notifier.events == []


@pytest.mark.asyncio
async def test_create_project_requires_active_user(store, notifier, suggestions) -> None:
    coord = ProjectTaskCoordinator(store, notifier, suggestions)
    with pytest.raises(ValidationError):
        await coord.create_project("Launch")
    await coord.drain()
    assert store.create_calls == []
    assert notifier.events == []


@pytest.mark.asyncio
async def test_create_project_persistence_failure_leaves_state(coordinator, store, notifier) -> None:
    await coordinator.create_project("Existing")
    await coordinator.drain()
    notifier.events.clear()
    before = coordinator.projects

    store.fail = True
    with pytest.raises(PersistenceError):
        await coordinator.create_project("Doomed")
    await coordinator.drain()

    assert coordinator.projects is before
    assert len(coordinator.projects) == 1
    assert notifier.events == []


@pytest.mark.asyncio
async def test_create_project_survives_notification_failure(coordinator, notifier) -> None:
    notifier.fail = True
    project = await coordinator.create_project("Launch")
    await coordinator.drain()

    assert coordinator.projects == (project,)
    assert notifier.names() == ["project.created"]


@pytest.mark.asyncio
@pytest.mark.parametrize("next_user", [None, "user-2"])
async def test_create_project_after_session_switch_stays_out_of_new_session(
    coordinator, store, notifier, next_user
) -> None:
    store.gate = asyncio.Event()
    pending = asyncio.create_task(coordinator.create_project("Mine"))
    await asyncio.sleep(0)
    assert store.create_calls == [("Mine", "", "user-1")]

    if next_user is None:
        coordinator.sign_out()
    else:
        coordinator.sign_in(next_user)
    store.gate.set()

    project = await pending
    await coordinator.drain()

    assert project.owner_id == "user-1"
    assert coordinator.projects == ()
    assert notifier.names() == ["project.created"]
    assert notifier.events[0].data["created_by"] == "user-1"


# ---- add_task ----

@pytest.mark.asyncio
@pytest.mark.parametrize("title", BLANK_TITLES)
async def test_add_task_rejects_blank_title(coordinator, notifier, title) -> None:
    project = await coordinator.create_project("Foo")
    await coordinator.drain()
    notifier.events.clear()
    before = coordinator.projects

    with pytest.raises(ValidationError):
        await coordinator.add_task(project.id, title, "desc")
    await coordinator.drain()

    assert coordinator.projects == before
    assert notifier.events == []


@pytest.mark.asyncio
async def test_add_task_appends_pending_task_and_notifies(coordinator, notifier) -> None:
    project = await coordinator.create_project("Foo")
    t1 = await coordinator.add_task(project.id, "First", "a")
    t2 = await coordinator.add_task(project.id, "Second")
    await coordinator.drain()

    stored = coordinator.get_project(project.id)
    assert stored is not None
    assert [t.title for t in stored.tasks] == ["First", "Second"]
    assert all(t.status == TaskStatus.PENDING for t in stored.tasks)
    assert t1 is not None and t2 is not None
    assert t1.id != t2.id
    assert notifier.names() == ["project.created", "task.created", "task.created"]
    assert notifier.events[1].data["task_id"] == t1.id
    assert notifier.events[1].data["user_id"] == "user-1"


@pytest.mark.asyncio
async def test_add_task_unknown_project_is_noop(coordinator, notifier) -> None:
    await coordinator.create_project("Foo")
    await coordinator.drain()
    notifier.events.clear()
    before = coordinator.projects

    assert await coordinator.add_task("missing", "Task") is None
    await coordinator.drain()

    assert coordinator.projects is before
    assert notifier.events == []


@pytest.mark.asyncio
async def test_add_task_notification_failure_keeps_task(coordinator, notifier) -> None:
    project = await coordinator.create_project("Foo")
    await coordinator.drain()
    notifier.fail = True

    task = await coordinator.add_task(project.id, "Survives")
    await coordinator.drain()

    assert task is not None
    stored = coordinator.get_project(project.id)
    assert stored is not None
    assert [t.id for t in stored.tasks] == [task.id]
    assert notifier.names()[-1] == "task.created"


@pytest.mark.asyncio
async def test_add_task_without_user_skips_notification(store, notifier, suggestions) -> None:
    coord = ProjectTaskCoordinator(store, notifier, suggestions)
    coord.sign_in("user-1")
    project = await coord.create_project("Foo")
    await coord.drain()
    notifier.events.clear()

    # Simulate an expired session that still holds projects in memory.
    coord._active_user = None
    task = await coord.add_task(project.id, "Quiet")
    await coord.drain()

    assert task is not None
    assert notifier.events == []


@pytest.mark.asyncio
async def test_mutations_replace_the_projects_tuple(coordinator) -> None:
    project = await coordinator.create_project("Foo")
    snapshot = coordinator.projects

    await coordinator.add_task(project.id, "New")

    assert coordinator.projects is not snapshot
    assert snapshot[0].tasks == ()
    await coordinator.drain()


# ---- update_task_status ----

@pytest.mark.asyncio
async def test_update_task_status_replaces_in_place(coordinator, notifier) -> None:
    project, task = await _project_with_task(coordinator, notifier)

    updated = await coordinator.update_task_status(project.id, task.id, "in-progress")
    await coordinator.drain()

    assert updated is not None
    assert updated.status == TaskStatus.IN_PROGRESS
    assert (updated.id, updated.title, updated.description, updated.created_at) == (
        task.id,
        task.title,
        task.description,
        task.created_at,
    )
    assert notifier.names() == ["task.status_changed"]
    assert notifier.events[0].data == {
        "project_id": project.id,
        "task_id": task.id,
        "old_status": "pending",
        "new_status": "in-progress",
        "user_id": "user-1",
    }


@pytest.mark.asyncio
async def test_update_task_status_any_transition_allowed(coordinator, notifier) -> None:
    project, task = await _project_with_task(coordinator, notifier)

    for status in (TaskStatus.COMPLETED, TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED):
        updated = await coordinator.update_task_status(project.id, task.id, status)
        assert updated is not None and updated.status == status
    await coordinator.drain()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("project_ref", "task_ref"),
    [("missing", "missing"), ("real", "missing"), ("missing", "real")],
)
async def test_update_task_status_unknown_pair_is_noop(coordinator, notifier, project_ref, task_ref) -> None:
    project, task = await _project_with_task(coordinator, notifier)
    before = coordinator.projects

    pid = project.id if project_ref == "real" else "nope"
    tid = task.id if task_ref == "real" else "nope"
    assert await coordinator.update_task_status(pid, tid, "completed") is None
    await coordinator.drain()

    assert coordinator.projects is before
    assert notifier.events == []


@pytest.mark.asyncio
async def test_update_task_status_rejects_unknown_status(coordinator, notifier) -> None:
    project, task = await _project_with_task(coordinator, notifier)
    with pytest.raises(ValidationError):
        await coordinator.update_task_status(project.id, task.id, "archived")


# ---- apply_generated_tasks / generate_tasks ----

@pytest.mark.asyncio
async def test_apply_generated_tasks_strips_numbering(coordinator, notifier) -> None:
    project = await coordinator.create_project("Foo")
    await coordinator.drain()
    notifier.events.clear()

    titles = ["1. Design schema", "2. Write tests", "Deploy"]
    tasks = await coordinator.apply_generated_tasks(project.id, titles)
    await coordinator.drain()

    assert [t.title for t in tasks] == ["Design schema", "Write tests", "Deploy"]
    assert all(t.status == TaskStatus.PENDING for t in tasks)
    assert all(t.description == "AI-generated task for Foo" for t in tasks)

    stored = coordinator.get_project(project.id)
    assert stored is not None
    assert [t.title for t in stored.tasks] == ["Design schema", "Write tests", "Deploy"]

    assert notifier.names() == ["ai.tasks_generated"]
    assert notifier.events[0].data["generated_tasks"] == titles
    assert notifier.events[0].data["project_title"] == "Foo"


@pytest.mark.asyncio
async def test_apply_generated_tasks_unknown_project(coordinator, notifier) -> None:
    assert await coordinator.apply_generated_tasks("missing", ["1. A"]) == []
    await coordinator.drain()
    assert notifier.events == []


def test_strip_ordinal_prefix() -> None:
    assert strip_ordinal_prefix("12.Ship it") == "Ship it"
    assert strip_ordinal_prefix("3.   Plan") == "Plan"
    assert strip_ordinal_prefix("- Bullet") == "- Bullet"
    assert strip_ordinal_prefix("2024 roadmap") == "2024 roadmap"
    assert strip_ordinal_prefix("1.") == ""


@pytest.mark.asyncio
async def test_generate_tasks_uses_project_and_applies(coordinator, suggestions, notifier) -> None:
    project = await coordinator.create_project("Foo", "A shop")

    tasks = await coordinator.generate_tasks(project.id)
    await coordinator.drain()

    assert suggestions.calls == [("Foo", "A shop")]
    assert [t.title for t in tasks] == ["Design schema", "Write tests", "Deploy"]
    assert notifier.names() == ["project.created", "ai.tasks_generated"]


@pytest.mark.asyncio
async def test_generate_tasks_error_leaves_state(coordinator, suggestions, notifier) -> None:
    project = await coordinator.create_project("Foo")
    await coordinator.drain()
    notifier.events.clear()
    before = coordinator.projects

    suggestions.error = QuotaExceeded("quota")
    with pytest.raises(QuotaExceeded):
        await coordinator.generate_tasks(project.id)
    await coordinator.drain()

    assert coordinator.projects is before
    assert notifier.events == []


@pytest.mark.asyncio
async def test_generate_tasks_requires_configured_provider(store, notifier) -> None:
    coord = ProjectTaskCoordinator(store, notifier, FakeSuggestions(configured=False))
    coord.sign_in("user-1")
    project = await coord.create_project("Foo")
    with pytest.raises(NotConfiguredError):
        await coord.generate_tasks(project.id)
    await coord.drain()


@pytest.mark.asyncio
async def test_refine_task_description_only_touches_description(coordinator, notifier, suggestions) -> None:
    project, task = await _project_with_task(coordinator, notifier)
    await coordinator.update_task_status(project.id, task.id, "completed")

    updated = await coordinator.refine_task_description(project.id, task.id)

    assert updated is not None
    assert updated.description == "Improved description"
    assert updated.status == TaskStatus.COMPLETED
    assert updated.title == task.title
    await coordinator.drain()


# ---- load_projects ----

@pytest.mark.asyncio
async def test_load_projects_orders_newest_first_and_drops_tasks(notifier, suggestions) -> None:
    rows = [
        Project(id="1", title="Old", description="", created_at=T0, owner_id="user-1"),
        Project(id="2", title="New", description="", created_at=T0 + timedelta(days=1), owner_id="user-1"),
        Project(id="3", title="Other", description="", created_at=T0, owner_id="user-2"),
    ]
    store = FakeProjectStore(rows)
    coord = ProjectTaskCoordinator(store, notifier, suggestions)
    coord.sign_in("user-1")

    loaded = await coord.load_projects("user-1")
    assert [p.id for p in loaded] == ["2", "1"]

    await coord.add_task("2", "Local only")
    reloaded = await coord.load_projects("user-1")
    assert all(p.tasks == () for p in reloaded)
    await coord.drain()


@pytest.mark.asyncio
async def test_load_projects_is_idempotent(coordinator) -> None:
    await coordinator.create_project("A")
    await coordinator.create_project("B")

    first = await coordinator.load_projects("user-1")
    second = await coordinator.load_projects("user-1")
    assert first == second
    assert [p.title for p in first] == ["B", "A"]
    await coordinator.drain()


@pytest.mark.asyncio
async def test_load_projects_failure_keeps_stale_state(coordinator, store) -> None:
    await coordinator.create_project("A")
    before = coordinator.projects

    store.fail = True
    result = await coordinator.load_projects("user-1")

    assert result is before
    assert coordinator.projects is before
    await coordinator.drain()


@pytest.mark.asyncio
async def test_load_projects_empty_owner(coordinator, store) -> None:
    assert await coordinator.load_projects("nobody") == ()
    assert store.list_calls == ["nobody"]


@pytest.mark.asyncio
async def test_load_projects_defaults_to_active_user(coordinator, store) -> None:
    await coordinator.load_projects()
    assert store.list_calls == ["user-1"]


# ---- session ----

def test_sign_out_clears_projects(coordinator) -> None:
    coordinator._projects = (
        Project(id="1", title="A", description="", created_at=T0, owner_id="user-1"),
    )
    coordinator.sign_out()
    assert coordinator.active_user is None
    assert coordinator.projects == ()


def test_sign_in_rejects_blank_user(store, notifier, suggestions) -> None:
    coord = ProjectTaskCoordinator(store, notifier, suggestions)
    with pytest.raises(ValidationError):
        coord.sign_in("  ")
    assert coord.active_user is None
