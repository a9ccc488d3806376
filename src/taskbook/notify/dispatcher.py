# src/taskbook/notify/dispatcher.py

"""
Webhook notifications for the workflow-automation endpoint.

Every event is wrapped as {"event": ..., "data": ..., "timestamp": ...} and
POSTed to "<base_url><path>". Any non-2xx answer or transport error raises
DeliveryError; retrying is never attempted here.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from ..core.errors import DeliveryError

logger = logging.getLogger(__name__)

EVENT_PATHS: dict[str, str] = {
    "project.created": "project-created",
    "task.created": "task-created",
    "task.status_changed": "task-status-changed",
    "ai.tasks_generated": "ai-tasks-generated",
    "notification.send": "send-notification",
}


def iso_now() -> str:
    """UTC timestamp with millisecond precision and a 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_envelope(event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"event": event, "data": data, "timestamp": iso_now()}


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class WebhookDispatcher:
    def __init__(
        self,
        base_url: str,
        *,
        api_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._base_url = base_url
        self._api_url = api_url or ""
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, event: str, data: dict[str, Any]) -> Any:
        url = f"{self._base_url}{EVENT_PATHS[event]}"
        try:
            response = await self._client.post(url, json=build_envelope(event, data))
        except httpx.HTTPError as e:
            raise DeliveryError(f"Webhook {event} failed: {e.__class__.__name__}") from e

        if not response.is_success:
            raise DeliveryError(
                f"Webhook {event} failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        logger.info("Webhook delivered event=%s status=%s", event, response.status_code)
        return _decode_body(response)

    async def notify_project_created(
        self,
        *,
        project_id: str,
        title: str,
        description: str,
        created_by: str,
        team_members: list[str] | None = None,
    ) -> Any:
        return await self._post(
            "project.created",
            {
                "projectId": project_id,
                "title": title,
                "description": description,
                "createdBy": created_by,
                "teamMembers": list(team_members or []),
            },
        )

    async def notify_task_created(
        self,
        *,
        project_id: str,
        task_id: str,
        title: str,
        description: str,
        user_id: str,
    ) -> Any:
        return await self._post(
            "task.created",
            {
                "projectId": project_id,
                "taskId": task_id,
                "title": title,
                "description": description,
                "userId": user_id,
            },
        )

    async def notify_task_status_changed(
        self,
        *,
        project_id: str,
        task_id: str,
        old_status: str,
        new_status: str,
        user_id: str,
    ) -> Any:
        return await self._post(
            "task.status_changed",
            {
                "taskId": task_id,
                "projectId": project_id,
                "oldStatus": old_status,
                "newStatus": new_status,
                "userId": user_id,
            },
        )

    async def notify_ai_tasks_generated(
        self,
        *,
        project_id: str,
        project_title: str,
        project_description: str,
        user_id: str,
        generated_tasks: list[str],
    ) -> Any:
        return await self._post(
            "ai.tasks_generated",
            {
                "projectId": project_id,
                "projectTitle": project_title,
                "projectDescription": project_description,
                "userId": user_id,
                "generatedTasks": list(generated_tasks),
            },
        )

    async def send_notification(
        self,
        *,
        channel: str,
        recipient: str,
        subject: str,
        message: str,
        priority: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        data: dict[str, Any] = {
            "type": channel,
            "recipient": recipient,
            "subject": subject,
            "message": message,
        }
        if priority is not None:
            data["priority"] = priority
        if metadata is not None:
            data["metadata"] = metadata
        return await self._post("notification.send", data)

    async def get_workflow_status(self, execution_id: str) -> Any:
        """Look up a workflow execution on the automation platform's API."""
        if not self._api_url:
            raise DeliveryError("Workflow API URL is not configured.")
        url = f"{self._api_url}executions/{execution_id}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Workflow status request failed: {e.__class__.__name__}") from e
        if not response.is_success:
            raise DeliveryError(
                f"Workflow status request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return _decode_body(response)


class NullDispatcher:
    """Used when no webhook URL is configured: events are logged and dropped."""

    async def aclose(self) -> None:
        return

    async def _drop(self, event: str, data: dict[str, Any]) -> None:
        logger.debug("Webhook disabled; dropping event=%s data=%s", event, data)
        return None

    async def notify_project_created(self, *, project_id: str, title: str, description: str,
                                     created_by: str, team_members: list[str] | None = None) -> Any:
        return await self._drop("project.created", {"projectId": project_id})

    async def notify_task_created(self, *, project_id: str, task_id: str, title: str,
                                  description: str, user_id: str) -> Any:
        return await self._drop("task.created", {"projectId": project_id, "taskId": task_id})

    async def notify_task_status_changed(self, *, project_id: str, task_id: str, old_status: str,
                                         new_status: str, user_id: str) -> Any:
        return await self._drop("task.status_changed", {"taskId": task_id, "newStatus": new_status})

    async def notify_ai_tasks_generated(self, *, project_id: str, project_title: str,
                                        project_description: str, user_id: str,
                                        generated_tasks: list[str]) -> Any:
        return await self._drop("ai.tasks_generated", {"projectId": project_id, "count": len(generated_tasks)})

    async def send_notification(self, *, channel: str, recipient: str, subject: str, message: str,
                                priority: str | None = None, metadata: dict[str, Any] | None = None) -> Any:
        return await self._drop("notification.send", {"type": channel, "recipient": recipient})

    async def get_workflow_status(self, execution_id: str) -> Any:
        raise DeliveryError("Workflow API URL is not configured.")
