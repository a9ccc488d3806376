# src/taskbook/store/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceError
from ..core.models import Project
from .project_store import row_to_project

logger = logging.getLogger(__name__)


class SqliteProjectStore:
    """
    Local SQLite project store, used when no Supabase URL is configured.

    Mirrors the remote table layout (id, title, metadata, created_by,
    created_at) so rows map through the same row_to_project().

    Thread-safety:
    - each call opens its own SQLite connection
    - blocking work runs in a worker thread (asyncio.to_thread)
    """

    def __init__(self, db_path: str | Path = "projects.sqlite3", *, table: str = "threads") -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self._db_path = Path(db_path)
        self._table = table
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteProjectStore ready db=%s table=%s", self._db_path, self._table)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT,
                    metadata TEXT NOT NULL DEFAULT '{{}}',
                    created_by TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self._table}_owner "
                f"ON {self._table}(created_by, created_at)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_dict(row: sqlite3.Row) -> dict[str, Any]:
        try:
            meta = json.loads(row["metadata"] or "{}")
        except ValueError:
            meta = {}
        return {
            "id": row["id"],
            "title": row["title"],
            "metadata": meta if isinstance(meta, dict) else {},
            "created_by": row["created_by"],
            "created_at": row["created_at"],
        }

    # ---- blocking implementations ----

    def _insert(self, title: str, description: str, owner_id: str) -> Project:
        created_at = datetime.now(UTC).isoformat()
        meta = json.dumps({"description": description}, ensure_ascii=False)
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"INSERT INTO {self._table}(title, metadata, created_by, created_at) VALUES (?, ?, ?, ?)",
                (title, meta, owner_id, created_at),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise PersistenceError("SQLite did not return lastrowid for project insert")
            cur.execute(f"SELECT * FROM {self._table} WHERE id = ?", (int(rowid),))
            row = cur.fetchone()
        finally:
            conn.close()
        if row is None:
            raise PersistenceError("Inserted project row disappeared.")
        return row_to_project(self._row_dict(row))

    def _select(self, owner_id: str) -> list[Project]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"SELECT * FROM {self._table} WHERE created_by = ? ORDER BY created_at DESC, id DESC",
                (owner_id,),
            )
            rows = cur.fetchall()
        finally:
            conn.close()
        return [row_to_project(self._row_dict(r)) for r in rows]

    # ---- public API ----

    async def create(self, title: str, description: str, owner_id: str) -> Project:
        try:
            project = await asyncio.to_thread(self._insert, title, description, owner_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite insert failed: {e}") from e
        logger.debug("Project inserted id=%s owner=%s", project.id, owner_id)
        return project

    async def list_by_owner(self, owner_id: str) -> list[Project]:
        try:
            return await asyncio.to_thread(self._select, owner_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite select failed: {e}") from e

    async def aclose(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return
