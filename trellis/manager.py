"""Entry point starting and resuming workflows on external events."""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Callable, Dict, List, Optional

from .activities.base import Activity
from .activities.registry import ActivityRegistry
from .config import TrellisConfig
from .context import ActivityContext, WorkflowContext
from .engine import ExecutionEngine
from .errors import AwaitingActivityNotFoundError, WorkflowIntegrityError
from .lifecycle import LifecycleDispatcher
from .models import ActivityRecord, AwaitingActivity, WorkflowInstance
from .persistence.repository import WorkflowStore

logger = logging.getLogger(__name__)

ContextFactory = Callable[[], Dict[str, Any]]


class WorkflowManager:
    """Dispatches named events to workflow definitions and paused instances.

    Only paused workflows are persisted: a workflow that runs to completion
    without blocking leaves nothing in the store, and an instance is deleted
    as soon as it no longer awaits any activity.
    """

    def __init__(
        self,
        registry: ActivityRegistry,
        store: WorkflowStore,
        config: Optional[TrellisConfig] = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._config = config or TrellisConfig()
        self._dispatcher = LifecycleDispatcher(registry)
        self._engine = ExecutionEngine(registry, store, self._dispatcher)
        self._instance_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @property
    def concurrency_policy(self) -> str:
        return self._config.concurrency.policy

    async def trigger_event(
        self,
        name: str,
        target: Any = None,
        context_factory: Optional[ContextFactory] = None,
    ) -> None:
        """Start and resume every workflow waiting for the event ``name``.

        Args:
            name: Event name, i.e. the kind name of an event activity.
            target: Entity the event concerns, exposed as ``context.target``.
            context_factory: Returns the properties made available to guards
                and activities through ``context.properties``.
        """
        properties = dict(context_factory()) if context_factory else {}
        activity = self._registry.get_activity_by_name(name)

        if activity is None:
            logger.error(f"Activity {name} was not found")
            return

        # Workflow definitions starting with this kind of activity.
        workflows_to_start = await self._store.find_definitions_by_start_activity(name)

        # Instances paused on this kind of activity.
        awaiting_entries = await self._store.find_awaiting_activities(
            name, exclude_start=True
        )

        if not workflows_to_start and not awaiting_entries:
            logger.debug(f"No workflow is waiting for {name}")
            return

        # Resume halted workflows.
        awaiting_instances = await self._store.get_instances(
            entry.instance_id for entry in awaiting_entries
        )
        for entry in awaiting_entries:
            instance = awaiting_instances.get(entry.instance_id)
            if instance is None:
                logger.warning(
                    f"Workflow instance {entry.instance_id} disappeared before it could be resumed on {name}"
                )
                continue

            definition = await self._store.get_definition(instance.definition_id)
            if definition is None:
                raise WorkflowIntegrityError(
                    f"Workflow instance {instance.id} refers to missing definition {instance.definition_id}"
                )
            record = definition.get_activity(entry.activity_id)
            if record is None:
                raise WorkflowIntegrityError(
                    f"Workflow instance {instance.id} awaits activity {entry.activity_id} "
                    f"missing from definition {definition.id}"
                )

            context = WorkflowContext(
                definition=definition,
                instance=instance,
                target=target,
                properties=dict(properties),
            )
            activity_context = self._engine.create_activity_context(record)

            if not self._can_execute(activity, name, context, activity_context):
                continue

            await self._resume(instance, record, context)

        # Start new workflows.
        for definition in workflows_to_start:
            start_activity = definition.start_activity
            instance = WorkflowInstance(definition_id=definition.id)
            context = WorkflowContext(
                definition=definition,
                instance=instance,
                target=target,
                properties=dict(properties),
            )
            activity_context = self._engine.create_activity_context(start_activity)

            if not self._can_execute(activity, name, context, activity_context):
                continue

            await self.start_workflow(context, start_activity)

    def _can_execute(
        self,
        activity: Activity,
        name: str,
        context: WorkflowContext,
        activity_context: ActivityContext,
    ) -> bool:
        try:
            return bool(activity.can_execute(context, activity_context))
        except Exception as e:
            logger.error(f"Error while evaluating an activity condition on {name}: {e!r}")
            return False

    async def _resume(
        self, instance: WorkflowInstance, record: ActivityRecord, context: WorkflowContext
    ) -> None:
        if self.concurrency_policy != "lock":
            await self.resume_workflow(instance, record, context)
            return

        lock = self._instance_locks.get(instance.id)
        if lock is None:
            lock = asyncio.Lock()
            self._instance_locks[instance.id] = lock

        async with lock:
            current = await self._store.get_instance(instance.id)
            if current is None or current.find_awaiting(record.id) is None:
                logger.warning(
                    f"Workflow instance {instance.id} no longer awaits {record.id}, skipping resume"
                )
                return
            instance.awaiting_activities = current.awaiting_activities
            instance.version = current.version
            await self.resume_workflow(instance, record, context)

    def _expected_version(self, instance: WorkflowInstance) -> Optional[int]:
        if self.concurrency_policy == "optimistic":
            return instance.version
        return None

    async def start_workflow(
        self, context: WorkflowContext, start_activity: ActivityRecord
    ) -> List[ActivityRecord]:
        """Run a new workflow from ``start_activity``.

        Returns the activities the workflow halted on; the instance is only
        saved when that list is not empty.
        """
        cancellation = self._dispatcher.workflow_starting(context)
        if cancellation.is_cancellation_requested:
            logger.info(f"Workflow {context.definition.name} was cancelled before starting")
            return []

        self._dispatcher.workflow_started(context)
        expected_version = self._expected_version(context.instance)

        blocked_on = await self._engine.execute_workflow(context, start_activity)

        if not blocked_on:
            logger.info(f"Workflow {context.definition.name} completed without halting")
            return blocked_on

        await self._store.save_definition(context.definition)
        for blocking in blocked_on:
            context.instance.awaiting_activities.append(
                AwaitingActivity.from_activity(blocking)
            )
        await self._store.save_instance(context.instance, expected_version)
        logger.info(
            f"Workflow {context.definition.name} halted as instance {context.instance.id} "
            f"on {', '.join(b.id for b in blocked_on)}"
        )
        return blocked_on

    async def resume_workflow(
        self,
        instance: WorkflowInstance,
        blocking_activity: ActivityRecord,
        context: WorkflowContext,
    ) -> List[ActivityRecord]:
        """Continue ``instance`` from the event activity it was awaiting.

        Raises:
            AwaitingActivityNotFoundError: ``instance`` does not await
                ``blocking_activity``.
        """
        cancellation = self._dispatcher.workflow_resuming(context)
        if cancellation.is_cancellation_requested:
            logger.info(f"Resuming workflow instance {instance.id} was cancelled")
            return []

        self._dispatcher.workflow_resumed(context)
        expected_version = self._expected_version(instance)

        awaiting = instance.find_awaiting(blocking_activity.id)
        if awaiting is None:
            raise AwaitingActivityNotFoundError(instance.id, blocking_activity.id)
        instance.awaiting_activities.remove(awaiting)

        blocked_on = await self._engine.execute_workflow(context, blocking_activity)

        if not blocked_on and not instance.awaiting_activities:
            await self._store.delete_instance(instance, expected_version)
            logger.info(f"Workflow instance {instance.id} completed")
            return blocked_on

        for blocking in blocked_on:
            instance.awaiting_activities.append(AwaitingActivity.from_activity(blocking))
        await self._store.save_instance(instance, expected_version)
        logger.info(
            f"Workflow instance {instance.id} now awaits "
            f"{', '.join(a.activity_id for a in instance.awaiting_activities)}"
        )
        return blocked_on

    async def execute_workflow(
        self, context: WorkflowContext, activity: ActivityRecord
    ) -> List[ActivityRecord]:
        return await self._engine.execute_workflow(context, activity)
