"""Traversal of a workflow definition's activity graph."""

from __future__ import annotations

import logging
from typing import List, Optional

from .activities.registry import ActivityRegistry
from .context import ActivityContext, WorkflowContext
from .errors import WorkflowIntegrityError
from .lifecycle import LifecycleDispatcher
from .models import ActivityRecord
from .persistence.repository import WorkflowStore

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """Executes activities until the workflow halts on event activities."""

    def __init__(
        self,
        registry: ActivityRegistry,
        store: WorkflowStore,
        dispatcher: Optional[LifecycleDispatcher] = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._dispatcher = dispatcher or LifecycleDispatcher(registry)

    def create_activity_context(self, record: ActivityRecord) -> ActivityContext:
        return ActivityContext(record, self._registry.require(record.name))

    async def execute_workflow(
        self, context: WorkflowContext, activity: ActivityRecord
    ) -> List[ActivityRecord]:
        """Run the graph from ``activity`` and return the activities it blocked on.

        ``activity`` itself is always executed, even when it is an event: it is
        either the start activity or the event the workflow is resumed on.
        Any other event reached stops its path and is reported as blocking.
        """
        first_pass = True
        scheduled: List[ActivityRecord] = [activity]
        blocking: List[ActivityRecord] = []

        while scheduled:
            activity = scheduled.pop()
            activity_context = self.create_activity_context(activity)

            if first_pass:
                first_pass = False
            elif activity_context.activity.is_event:
                logger.debug(
                    f"Workflow {context.instance.id} blocked on {activity.name} ({activity.id})"
                )
                blocking.append(activity)
                continue

            cancellation = self._dispatcher.activity_executing(context, activity_context)
            if cancellation.is_cancellation_requested:
                logger.debug(f"Activity {activity.id} cancelled before execution")
                continue

            outcomes = list(
                await activity_context.activity.execute(context, activity_context)
            )
            self._dispatcher.activity_executed(context, activity_context)
            logger.debug(f"Activity {activity.id} produced outcomes {outcomes}")

            for outcome in outcomes:
                # Execution may have changed the stored definition.
                definition = (
                    await self._store.get_definition(context.definition.id)
                    or context.definition
                )
                transition = definition.find_transition(activity.id, outcome)
                if transition is None:
                    continue

                destination = context.definition.get_activity(
                    transition.destination_activity_id
                )
                if destination is None:
                    raise WorkflowIntegrityError(
                        f"Transition from {activity.id} on {outcome} targets missing "
                        f"activity {transition.destination_activity_id}"
                    )
                scheduled.append(destination)

        # Two paths may block on the same activity.
        unique: List[ActivityRecord] = []
        seen = set()
        for record in blocking:
            if record.id not in seen:
                seen.add(record.id)
                unique.append(record)
        return unique
