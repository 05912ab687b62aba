"""In-memory implementation of the workflow store."""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from ..models import AwaitingActivityEntry, WorkflowDefinition, WorkflowInstance
from .repository import WorkflowStore, awaiting_entries, check_version


class InMemoryWorkflowStore(WorkflowStore):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._definitions: Dict[str, WorkflowDefinition] = {}
        self._instances: Dict[str, WorkflowInstance] = {}

    # ------------------------------------------------------------------
    async def find_definitions_by_start_activity(
        self, activity_name: str
    ) -> list[WorkflowDefinition]:
        return [
            d.model_copy(deep=True)
            for d in self._definitions.values()
            if d.has_start and d.start_activity_name == activity_name and d.is_enabled
        ]

    async def find_awaiting_activities(
        self, activity_name: str, exclude_start: bool = True
    ) -> list[AwaitingActivityEntry]:
        entries = []
        for instance in self._instances.values():
            for entry in awaiting_entries(instance):
                if entry.activity_name != activity_name:
                    continue
                if exclude_start and entry.activity_is_start:
                    continue
                entries.append(entry)
        return entries

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        definition = self._definitions.get(definition_id)
        return definition.model_copy(deep=True) if definition else None

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        instance = self._instances.get(instance_id)
        return instance.model_copy(deep=True) if instance else None

    async def get_instances(
        self, instance_ids: Iterable[str]
    ) -> dict[str, WorkflowInstance]:
        return {
            i: self._instances[i].model_copy(deep=True)
            for i in instance_ids
            if i in self._instances
        }

    async def save_definition(self, definition: WorkflowDefinition) -> None:
        self._definitions[definition.id] = definition.model_copy(deep=True)

    async def delete_definition(self, definition_id: str) -> None:
        self._definitions.pop(definition_id, None)

    async def save_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        stored = self._instances.get(instance.id)
        check_version(instance.id, expected_version, stored.version if stored else None)
        instance.version += 1
        self._instances[instance.id] = instance.model_copy(deep=True)

    async def delete_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        stored = self._instances.get(instance.id)
        check_version(instance.id, expected_version, stored.version if stored else None)
        self._instances.pop(instance.id, None)

    async def list_definitions(self) -> list[WorkflowDefinition]:
        return [d.model_copy(deep=True) for d in self._definitions.values()]

    async def list_instances(self) -> list[WorkflowInstance]:
        return [i.model_copy(deep=True) for i in self._instances.values()]
