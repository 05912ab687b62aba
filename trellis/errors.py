"""Exceptions raised by the trellis workflow engine."""

from __future__ import annotations


class TrellisError(Exception):
    """Base class for all trellis errors."""


class UnknownActivityError(TrellisError):
    """An activity kind name has no registered behaviour."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Activity {name} was not found")
        self.name = name


class WorkflowIntegrityError(TrellisError):
    """Persisted workflow data contradicts its definition."""


class AwaitingActivityNotFoundError(WorkflowIntegrityError):
    """A resume targeted an activity the instance is not awaiting."""

    def __init__(self, instance_id: str, activity_id: str) -> None:
        super().__init__(
            f"Workflow instance {instance_id} is not awaiting activity {activity_id}"
        )
        self.instance_id = instance_id
        self.activity_id = activity_id


class ConcurrencyConflictError(TrellisError):
    """A workflow instance was modified by someone else since it was loaded."""

    def __init__(
        self, instance_id: str, expected_version: int, actual_version: int | None
    ) -> None:
        super().__init__(
            f"Workflow instance {instance_id} expected version {expected_version}, "
            f"found {actual_version}"
        )
        self.instance_id = instance_id
        self.expected_version = expected_version
        self.actual_version = actual_version
