"""Base classes for activity kinds."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, ClassVar, List, Optional, Type

from pydantic import BaseModel

if TYPE_CHECKING:
    from ..context import ActivityContext, CancellationSignal, WorkflowContext


class Activity(metaclass=abc.ABCMeta):
    """Behaviour shared by every activity record of one kind.

    Activity kinds are looked up by ``name``. They are registered once and
    receive every lifecycle notification of every workflow, so hooks must not
    assume the notification concerns a record of their own kind.
    """

    name: ClassVar[str]
    is_event: ClassVar[bool] = False
    can_start: ClassVar[bool] = False
    state_model: ClassVar[Optional[Type[BaseModel]]] = None

    def can_execute(
        self, context: "WorkflowContext", activity_context: "ActivityContext"
    ) -> bool:
        """Guard evaluated before starting or resuming on this activity."""
        return True

    @abc.abstractmethod
    async def execute(
        self, context: "WorkflowContext", activity_context: "ActivityContext"
    ) -> List[str]:
        """Run the activity and return the outcome labels it produced."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Lifecycle hooks (no-op by default)
    def on_workflow_starting(
        self, context: "WorkflowContext", cancellation: "CancellationSignal"
    ) -> None:
        pass

    def on_workflow_started(self, context: "WorkflowContext") -> None:
        pass

    def on_workflow_resuming(
        self, context: "WorkflowContext", cancellation: "CancellationSignal"
    ) -> None:
        pass

    def on_workflow_resumed(self, context: "WorkflowContext") -> None:
        pass

    def on_activity_executing(
        self,
        context: "WorkflowContext",
        activity_context: "ActivityContext",
        cancellation: "CancellationSignal",
    ) -> None:
        pass

    def on_activity_executed(
        self, context: "WorkflowContext", activity_context: "ActivityContext"
    ) -> None:
        pass

    def __repr__(self) -> str:  # pragma: no cover - simple formatting
        return f"<{type(self).__name__} {self.name!r}>"


class Task(Activity):
    """Activity that runs to completion as soon as it is reached."""


class Event(Activity):
    """Activity that halts the workflow until a matching event arrives."""

    is_event = True
    can_start = True
