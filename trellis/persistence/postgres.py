"""PostgreSQL implementation of the workflow store."""

from __future__ import annotations

from typing import Iterable, Optional

import asyncpg

from ..models import AwaitingActivityEntry, WorkflowDefinition, WorkflowInstance
from .repository import WorkflowStore, awaiting_entries, check_version


class PostgresWorkflowStore(WorkflowStore):
    """Persist workflow definitions and paused instances using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_definitions (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                is_enabled BOOLEAN NOT NULL,
                has_start BOOLEAN NOT NULL,
                start_activity_name TEXT,
                document JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_instances (
                id TEXT PRIMARY KEY,
                definition_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                document JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS awaiting_activities (
                id SERIAL PRIMARY KEY,
                instance_id TEXT NOT NULL,
                activity_id TEXT NOT NULL,
                activity_name TEXT NOT NULL,
                activity_is_start BOOLEAN NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_awaiting_activity_name ON awaiting_activities (activity_name)"
        )

    @staticmethod
    def _to_instance(row: asyncpg.Record) -> WorkflowInstance:
        instance = WorkflowInstance.model_validate_json(row["document"])
        instance.version = row["version"]
        return instance

    async def _stored_version(
        self, conn: asyncpg.Connection, instance_id: str
    ) -> Optional[int]:
        return await conn.fetchval(
            "SELECT version FROM workflow_instances WHERE id = $1 FOR UPDATE",
            instance_id,
        )

    # ------------------------------------------------------------------
    async def find_definitions_by_start_activity(
        self, activity_name: str
    ) -> list[WorkflowDefinition]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                """
                SELECT document::text AS document FROM workflow_definitions
                WHERE has_start AND start_activity_name = $1 AND is_enabled
                """,
                activity_name,
            )
        finally:
            await conn.close()
        return [WorkflowDefinition.model_validate_json(r["document"]) for r in rows]

    async def find_awaiting_activities(
        self, activity_name: str, exclude_start: bool = True
    ) -> list[AwaitingActivityEntry]:
        query = (
            "SELECT instance_id, activity_id, activity_name, activity_is_start "
            "FROM awaiting_activities WHERE activity_name = $1"
        )
        if exclude_start:
            query += " AND NOT activity_is_start"
        conn = await self._connect()
        try:
            rows = await conn.fetch(query + " ORDER BY id", activity_name)
        finally:
            await conn.close()
        return [AwaitingActivityEntry(**dict(r)) for r in rows]

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        conn = await self._connect()
        try:
            document = await conn.fetchval(
                "SELECT document::text FROM workflow_definitions WHERE id = $1",
                definition_id,
            )
        finally:
            await conn.close()
        return WorkflowDefinition.model_validate_json(document) if document else None

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT version, document::text AS document FROM workflow_instances WHERE id = $1",
                instance_id,
            )
        finally:
            await conn.close()
        return self._to_instance(row) if row else None

    async def get_instances(
        self, instance_ids: Iterable[str]
    ) -> dict[str, WorkflowInstance]:
        ids = list(dict.fromkeys(instance_ids))
        if not ids:
            return {}
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT version, document::text AS document FROM workflow_instances WHERE id = ANY($1::text[])",
                ids,
            )
        finally:
            await conn.close()
        instances = [self._to_instance(r) for r in rows]
        return {i.id: i for i in instances}

    async def save_definition(self, definition: WorkflowDefinition) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflow_definitions
                    (id, name, is_enabled, has_start, start_activity_name, document)
                VALUES ($1, $2, $3, $4, $5, $6::jsonb)
                ON CONFLICT (id) DO UPDATE SET
                    name = EXCLUDED.name,
                    is_enabled = EXCLUDED.is_enabled,
                    has_start = EXCLUDED.has_start,
                    start_activity_name = EXCLUDED.start_activity_name,
                    document = EXCLUDED.document
                """,
                definition.id,
                definition.name,
                definition.is_enabled,
                definition.has_start,
                definition.start_activity_name,
                definition.model_dump_json(),
            )
        finally:
            await conn.close()

    async def delete_definition(self, definition_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM workflow_definitions WHERE id = $1", definition_id
            )
        finally:
            await conn.close()

    async def save_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        conn = await self._connect()
        try:
            async with conn.transaction():
                stored = await self._stored_version(conn, instance.id)
                check_version(instance.id, expected_version, stored)
                version = instance.version + 1
                document = instance.model_copy(update={"version": version})
                await conn.execute(
                    """
                    INSERT INTO workflow_instances (id, definition_id, version, document)
                    VALUES ($1, $2, $3, $4::jsonb)
                    ON CONFLICT (id) DO UPDATE SET
                        definition_id = EXCLUDED.definition_id,
                        version = EXCLUDED.version,
                        document = EXCLUDED.document
                    """,
                    instance.id,
                    instance.definition_id,
                    version,
                    document.model_dump_json(),
                )
                await conn.execute(
                    "DELETE FROM awaiting_activities WHERE instance_id = $1", instance.id
                )
                await conn.executemany(
                    """
                    INSERT INTO awaiting_activities
                        (instance_id, activity_id, activity_name, activity_is_start)
                    VALUES ($1, $2, $3, $4)
                    """,
                    [
                        (e.instance_id, e.activity_id, e.activity_name, e.activity_is_start)
                        for e in awaiting_entries(instance)
                    ],
                )
        finally:
            await conn.close()
        instance.version = version

    async def delete_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        conn = await self._connect()
        try:
            async with conn.transaction():
                stored = await self._stored_version(conn, instance.id)
                check_version(instance.id, expected_version, stored)
                await conn.execute(
                    "DELETE FROM awaiting_activities WHERE instance_id = $1", instance.id
                )
                await conn.execute(
                    "DELETE FROM workflow_instances WHERE id = $1", instance.id
                )
        finally:
            await conn.close()

    async def list_definitions(self) -> list[WorkflowDefinition]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT document::text AS document FROM workflow_definitions ORDER BY name"
            )
        finally:
            await conn.close()
        return [WorkflowDefinition.model_validate_json(r["document"]) for r in rows]

    async def list_instances(self) -> list[WorkflowInstance]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT version, document::text AS document FROM workflow_instances"
            )
        finally:
            await conn.close()
        return [self._to_instance(r) for r in rows]
