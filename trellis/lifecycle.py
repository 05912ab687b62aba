"""Broadcast of workflow lifecycle notifications to activity kinds."""

from __future__ import annotations

from typing import Callable

from .activities.base import Activity
from .activities.registry import ActivityRegistry
from .context import ActivityContext, CancellationSignal, WorkflowContext


class LifecycleDispatcher:
    """Notify every registered activity kind, in registry order.

    The ``*_starting``/``*_resuming``/``*_executing`` broadcasts share one
    fresh :class:`CancellationSignal` between all participants and return it.
    Every participant is called even after one requested cancellation.
    """

    def __init__(self, registry: ActivityRegistry) -> None:
        self._registry = registry

    def invoke(self, action: Callable[[Activity], None]) -> None:
        for activity in self._registry.list_activities():
            action(activity)

    def workflow_starting(self, context: WorkflowContext) -> CancellationSignal:
        cancellation = CancellationSignal()
        self.invoke(lambda a: a.on_workflow_starting(context, cancellation))
        return cancellation

    def workflow_started(self, context: WorkflowContext) -> None:
        self.invoke(lambda a: a.on_workflow_started(context))

    def workflow_resuming(self, context: WorkflowContext) -> CancellationSignal:
        cancellation = CancellationSignal()
        self.invoke(lambda a: a.on_workflow_resuming(context, cancellation))
        return cancellation

    def workflow_resumed(self, context: WorkflowContext) -> None:
        self.invoke(lambda a: a.on_workflow_resumed(context))

    def activity_executing(
        self, context: WorkflowContext, activity_context: ActivityContext
    ) -> CancellationSignal:
        cancellation = CancellationSignal()
        self.invoke(
            lambda a: a.on_activity_executing(context, activity_context, cancellation)
        )
        return cancellation

    def activity_executed(
        self, context: WorkflowContext, activity_context: ActivityContext
    ) -> None:
        self.invoke(lambda a: a.on_activity_executed(context, activity_context))
