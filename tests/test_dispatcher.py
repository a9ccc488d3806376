# tests/test_dispatcher.py

from __future__ import annotations

import json
from datetime import datetime

import httpx
import pytest

from taskbook.core.errors import DeliveryError
from taskbook.notify.dispatcher import NullDispatcher, WebhookDispatcher, iso_now

BASE = "https://hooks.test/webhook/"


class Recorder:
    def __init__(self, status: int = 200, body: object | None = None) -> None:
        self.status = status
        self.body = {"ok": True} if body is None else body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def _dispatcher(recorder: Recorder, **kwargs) -> WebhookDispatcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return WebhookDispatcher(BASE, client=client, **kwargs)


@pytest.mark.asyncio
async def test_task_status_changed_envelope() -> None:
    rec = Recorder()
    dispatcher = _dispatcher(rec)

    result = await dispatcher.notify_task_status_changed(
        project_id="42",
        task_id="t1",
        old_status="pending",
        new_status="completed",
        user_id="u1",
    )

    assert result == {"ok": True}
    request = rec.requests[0]
    assert request.method == "POST"
    assert str(request.url) == BASE + "task-status-changed"
    assert request.headers["content-type"] == "application/json"

    envelope = rec.last_json()
    assert envelope["event"] == "task.status_changed"
    assert envelope["data"] == {
        "taskId": "t1",
        "projectId": "42",
        "oldStatus": "pending",
        "newStatus": "completed",
        "userId": "u1",
    }
    assert envelope["timestamp"].endswith("Z")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "kwargs", "path", "event"),
    [
        (
            "notify_project_created",
            {"project_id": "1", "title": "T", "description": "", "created_by": "u"},
            "project-created",
            "project.created",
        ),
        (
            "notify_task_created",
            {"project_id": "1", "task_id": "t", "title": "T", "description": "", "user_id": "u"},
            "task-created",
            "task.created",
        ),
        (
            "notify_ai_tasks_generated",
            {
                "project_id": "1",
                "project_title": "P",
                "project_description": "",
                "user_id": "u",
                "generated_tasks": ["1. A"],
            },
            "ai-tasks-generated",
            "ai.tasks_generated",
        ),
        (
            "send_notification",
            {"channel": "email", "recipient": "a@b.c", "subject": "S", "message": "M"},
            "send-notification",
            "notification.send",
        ),
    ],
)
async def test_event_paths(method, kwargs, path, event) -> None:
    rec = Recorder()
    dispatcher = _dispatcher(rec)

    await getattr(dispatcher, method)(**kwargs)

    assert str(rec.requests[0].url) == BASE + path
    assert rec.last_json()["event"] == event


@pytest.mark.asyncio
async def test_project_created_defaults_team_members() -> None:
    rec = Recorder()
    await _dispatcher(rec).notify_project_created(project_id="1", title="T", description="d", created_by="u")
    assert rec.last_json()["data"]["teamMembers"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 404, 500, 503])
async def test_non_success_raises_delivery_error(status) -> None:
    dispatcher = _dispatcher(Recorder(status=status))
    with pytest.raises(DeliveryError) as exc_info:
        await dispatcher.notify_task_created(
            project_id="1", task_id="t", title="T", description="", user_id="u"
        )
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_transport_error_raises_delivery_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    dispatcher = WebhookDispatcher(BASE, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    with pytest.raises(DeliveryError):
        await dispatcher.send_notification(channel="slack", recipient="#ops", subject="s", message="m")


@pytest.mark.asyncio
async def test_non_json_body_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="Workflow was started")

    dispatcher = WebhookDispatcher(BASE, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    assert await dispatcher.notify_project_created(
        project_id="1", title="T", description="", created_by="u"
    ) is None


@pytest.mark.asyncio
async def test_workflow_status() -> None:
    rec = Recorder(body={"id": "99", "finished": True})
    dispatcher = _dispatcher(rec, api_url="https://hooks.test/api/v1/")

    assert await dispatcher.get_workflow_status("99") == {"id": "99", "finished": True}
    assert rec.requests[0].method == "GET"
    assert str(rec.requests[0].url) == "https://hooks.test/api/v1/executions/99"


@pytest.mark.asyncio
async def test_workflow_status_requires_api_url() -> None:
    with pytest.raises(DeliveryError):
        await _dispatcher(Recorder()).get_workflow_status("1")


@pytest.mark.asyncio
async def test_null_dispatcher_accepts_events() -> None:
    dispatcher = NullDispatcher()
    assert await dispatcher.notify_task_created(
        project_id="1", task_id="t", title="T", description="", user_id="u"
    ) is None
    with pytest.raises(DeliveryError):
        await dispatcher.get_workflow_status("1")


def test_iso_now_is_utc_with_milliseconds() -> None:
    stamp = iso_now()
    assert stamp.endswith("Z")
    parsed = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    assert parsed.utcoffset().total_seconds() == 0
    assert len(stamp.split(".")[1]) == 4  # "123Z"
