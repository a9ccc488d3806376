# src/taskbook/store/project_store.py

"""
Remote project store over a Supabase (PostgREST) table.

Schema: id, title, metadata (json), created_by, created_at.
The project description lives in metadata["description"].
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from ..core.errors import PersistenceError
from ..core.models import DEFAULT_PROJECT_TITLE, Project

logger = logging.getLogger(__name__)


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw or "").strip()
        if not s:
            raise PersistenceError("Stored project row has no created_at.")
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError as e:
            raise PersistenceError(f"Invalid created_at value: {s!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def row_to_project(row: Mapping[str, Any]) -> Project:
    """Map a stored row to a Project (tasks are never stored)."""
    if row.get("id") is None:
        raise PersistenceError("Stored project row has no id.")

    meta = row.get("metadata")
    if not isinstance(meta, Mapping):
        meta = {}

    return Project(
        id=str(row["id"]),
        title=str(row.get("title") or "") or DEFAULT_PROJECT_TITLE,
        description=str(meta.get("description") or ""),
        created_at=parse_timestamp(row.get("created_at")),
        owner_id=str(row.get("created_by") or ""),
    )


class SupabaseProjectStore:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = "threads",
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        if not base_url.strip():
            raise ValueError("Supabase URL must not be empty.")
        if not (api_key or "").strip():
            raise ValueError("Supabase API key must not be empty.")

        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, **kwargs: Any) -> Any:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, self._endpoint, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Project store unreachable: {e.__class__.__name__}") from e

        if not response.is_success:
            detail = ""
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = str(body.get("message") or body.get("error") or "")
            except ValueError:
                pass
            raise PersistenceError(
                f"Project store returned {response.status_code}" + (f": {detail}" if detail else "")
            )

        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError("Project store returned a non-JSON body.") from e

    async def create(self, title: str, description: str, owner_id: str) -> Project:
        data = await self._request(
            "POST",
            json=[
                {
                    "title": title,
                    "metadata": {"description": description},
                    "created_by": owner_id,
                }
            ],
            headers={"Prefer": "return=representation"},
        )
        rows = data if isinstance(data, list) else [data]
        if not rows or not isinstance(rows[0], Mapping):
            raise PersistenceError("Project store did not return the inserted row.")

        project = row_to_project(rows[0])
        logger.debug("Inserted project id=%s owner=%s", project.id, owner_id)
        return project

    async def list_by_owner(self, owner_id: str) -> list[Project]:
        data = await self._request(
            "GET",
            params={
                "select": "*",
                "created_by": f"eq.{owner_id}",
                "order": "created_at.desc",
            },
        )
        if not isinstance(data, list):
            raise PersistenceError("Project store returned an unexpected list payload.")

        projects = [row_to_project(row) for row in data if isinstance(row, Mapping)]
        logger.debug("Fetched %d projects owner=%s", len(projects), owner_id)
        return projects
