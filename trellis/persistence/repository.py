"""Store abstraction for workflow definitions and paused instances."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from ..errors import ConcurrencyConflictError
from ..models import AwaitingActivityEntry, WorkflowDefinition, WorkflowInstance


class WorkflowStore(Protocol):
    """Protocol for workflow persistence backends.

    Stores return copies: mutating a loaded object has no effect until it is
    saved again. Saving an instance increments its ``version``.
    """

    async def find_definitions_by_start_activity(
        self, activity_name: str
    ) -> list[WorkflowDefinition]:
        """Enabled definitions whose start activity is of kind ``activity_name``."""

    async def find_awaiting_activities(
        self, activity_name: str, exclude_start: bool = True
    ) -> list[AwaitingActivityEntry]:
        """Index entries of instances halted on an activity of kind ``activity_name``."""

    async def get_definition(self, definition_id: str) -> WorkflowDefinition | None:
        """Retrieve a definition by id."""

    async def get_instance(self, instance_id: str) -> WorkflowInstance | None:
        """Retrieve an instance by id."""

    async def get_instances(
        self, instance_ids: Iterable[str]
    ) -> dict[str, WorkflowInstance]:
        """Retrieve several instances, keyed by id; missing ids are left out."""

    async def save_definition(self, definition: WorkflowDefinition) -> None:
        """Insert or replace a definition."""

    async def delete_definition(self, definition_id: str) -> None:
        """Remove a definition."""

    async def save_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        """Insert or replace an instance and its awaiting activity index."""

    async def delete_instance(
        self, instance: WorkflowInstance, expected_version: Optional[int] = None
    ) -> None:
        """Remove an instance and its awaiting activity index."""

    async def list_definitions(self) -> list[WorkflowDefinition]:
        """Return all definitions."""

    async def list_instances(self) -> list[WorkflowInstance]:
        """Return all paused instances."""


def check_version(
    instance_id: str, expected_version: Optional[int], stored_version: Optional[int]
) -> None:
    """Raise when ``expected_version`` is given and differs from the stored one.

    A never saved instance counts as version 0.
    """
    if expected_version is None:
        return
    if (stored_version or 0) != expected_version:
        raise ConcurrencyConflictError(instance_id, expected_version, stored_version)


def awaiting_entries(instance: WorkflowInstance) -> list[AwaitingActivityEntry]:
    return [
        AwaitingActivityEntry(
            instance_id=instance.id,
            activity_id=awaiting.activity_id,
            activity_name=awaiting.name,
            activity_is_start=awaiting.is_start,
        )
        for awaiting in instance.awaiting_activities
    ]
