"""SQLite implementation of the workflow store."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Optional

from ..models import AwaitingActivityEntry, WorkflowDefinition, WorkflowInstance
from .repository import WorkflowStore, awaiting_entries, check_version


class SQLiteWorkflowStore(WorkflowStore):
    """Persist workflow definitions and paused instances using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_definitions (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                is_enabled INTEGER NOT NULL,
                has_start INTEGER NOT NULL,
                start_activity_name TEXT,
                document TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                id TEXT PRIMARY KEY,
                definition_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                document TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS awaiting_activities (
                instance_id TEXT NOT NULL,
                activity_id TEXT NOT NULL,
                activity_name TEXT NOT NULL,
                activity_is_start INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS ix_awaiting_activity_name ON awaiting_activities (activity_name)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _to_instance(row: sqlite3.Row) -> WorkflowInstance:
        instance = WorkflowInstance.model_validate_json(row["document"])
        instance.version = row["version"]
        return instance

    def _stored_version(self, instance_id: str) -> Optional[int]:
        row = self._fetchone(
            "SELECT version FROM workflow_instances WHERE id = ?", instance_id
        )
        return row["version"] if row else None

    def _write_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int]
    ) -> int:
        with self._conn:
            check_version(instance.id, expected_version, self._stored_version(instance.id))
            version = instance.version + 1
            document = instance.model_copy(update={"version": version})
            self._conn.execute(
                """
                INSERT INTO workflow_instances (id, definition_id, version, document)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    definition_id = excluded.definition_id,
                    version = excluded.version,
                    document = excluded.document
                """,
                (instance.id, instance.definition_id, version, document.model_dump_json()),
            )
            self._conn.execute(
                "DELETE FROM awaiting_activities WHERE instance_id = ?", (instance.id,)
            )
            self._conn.executemany(
                """
                INSERT INTO awaiting_activities
                    (instance_id, activity_id, activity_name, activity_is_start)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (e.instance_id, e.activity_id, e.activity_name, int(e.activity_is_start))
                    for e in awaiting_entries(instance)
                ],
            )
        return version

    def _remove_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int]
    ) -> None:
        with self._conn:
            check_version(instance.id, expected_version, self._stored_version(instance.id))
            self._conn.execute(
                "DELETE FROM awaiting_activities WHERE instance_id = ?", (instance.id,)
            )
            self._conn.execute(
                "DELETE FROM workflow_instances WHERE id = ?", (instance.id,)
            )

    # ------------------------------------------------------------------
    # Store API
    async def find_definitions_by_start_activity(
        self, activity_name: str
    ) -> list[WorkflowDefinition]:
        rows = await asyncio.to_thread(
            self._fetchall,
            """
            SELECT document FROM workflow_definitions
            WHERE has_start = 1 AND start_activity_name = ? AND is_enabled = 1
            """,
            activity_name,
        )
        return [WorkflowDefinition.model_validate_json(r["document"]) for r in rows]

    async def find_awaiting_activities(
        self, activity_name: str, exclude_start: bool = True
    ) -> list[AwaitingActivityEntry]:
        query = (
            "SELECT instance_id, activity_id, activity_name, activity_is_start "
            "FROM awaiting_activities WHERE activity_name = ?"
        )
        if exclude_start:
            query += " AND activity_is_start = 0"
        rows = await asyncio.to_thread(self._fetchall, query + " ORDER BY rowid", activity_name)
        return [
            AwaitingActivityEntry(
                instance_id=r["instance_id"],
                activity_id=r["activity_id"],
                activity_name=r["activity_name"],
                activity_is_start=bool(r["activity_is_start"]),
            )
            for r in rows
        ]

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT document FROM workflow_definitions WHERE id = ?",
            definition_id,
        )
        if not row:
            return None
        return WorkflowDefinition.model_validate_json(row["document"])

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT version, document FROM workflow_instances WHERE id = ?",
            instance_id,
        )
        return self._to_instance(row) if row else None

    async def get_instances(
        self, instance_ids: Iterable[str]
    ) -> dict[str, WorkflowInstance]:
        ids = list(dict.fromkeys(instance_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT version, document FROM workflow_instances WHERE id IN ({placeholders})",
            *ids,
        )
        instances = [self._to_instance(r) for r in rows]
        return {i.id: i for i in instances}

    async def save_definition(self, definition: WorkflowDefinition) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_definitions
                (id, name, is_enabled, has_start, start_activity_name, document)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                is_enabled = excluded.is_enabled,
                has_start = excluded.has_start,
                start_activity_name = excluded.start_activity_name,
                document = excluded.document
            """,
            definition.id,
            definition.name,
            int(definition.is_enabled),
            int(definition.has_start),
            definition.start_activity_name,
            definition.model_dump_json(),
        )

    async def delete_definition(self, definition_id: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM workflow_definitions WHERE id = ?", definition_id
        )

    async def save_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        instance.version = await asyncio.to_thread(
            self._write_instance, instance, expected_version
        )

    async def delete_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        await asyncio.to_thread(self._remove_instance, instance, expected_version)

    async def list_definitions(self) -> list[WorkflowDefinition]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT document FROM workflow_definitions ORDER BY name"
        )
        return [WorkflowDefinition.model_validate_json(r["document"]) for r in rows]

    async def list_instances(self) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT version, document FROM workflow_instances"
        )
        return [self._to_instance(r) for r in rows]

    def close(self) -> None:
        self._conn.close()
