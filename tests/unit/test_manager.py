"""Workflow manager tests: starting, resuming and persisting workflows."""

import logging

import pytest

from trellis.activities import Activity, ActivityRegistry
from trellis.context import WorkflowContext
from trellis.errors import AwaitingActivityNotFoundError, WorkflowIntegrityError
from trellis.manager import WorkflowManager
from trellis.models import AwaitingActivity, WorkflowInstance
from trellis.persistence import InMemoryWorkflowStore


def _approval_definition(record, definition, **kwargs):
    return definition(
        [
            record("A", "Init", is_start=True),
            record("B", "WaitForApproval", outcomes=["Approved"]),
        ],
        [("A", "Done", "B")],
        **kwargs,
    )


@pytest.mark.asyncio
async def test_start_then_resume_until_completion(
    registry, store, journal, record, definition
):
    await store.save_definition(_approval_definition(record, definition))
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("Init")

    instances = await store.list_instances()
    assert len(instances) == 1
    assert instances[0].awaiting_activities == [
        AwaitingActivity(activity_id="B", name="WaitForApproval", is_start=False)
    ]
    assert journal == ["A"]

    await manager.trigger_event("WaitForApproval")

    assert journal == ["A", "B"]
    assert await store.list_instances() == []


@pytest.mark.asyncio
async def test_workflow_completing_in_one_pass_leaves_no_instance(
    registry, store, journal, record, definition
):
    await store.save_definition(
        definition([record("A", "Init", is_start=True), record("B", "Work")], [("A", "Done", "B")])
    )
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("Init")

    assert journal == ["A", "B"]
    assert await store.list_instances() == []


@pytest.mark.asyncio
async def test_only_enabled_definitions_start(registry, store, journal, record, definition):
    for name, enabled in (("enabled", True), ("disabled", False)):
        await store.save_definition(
            definition(
                [
                    record(f"{name}-start", "OrderPlaced", is_start=True),
                    record(f"{name}-wait", "WaitForApproval"),
                ],
                [(f"{name}-start", "Done", f"{name}-wait")],
                name=name,
                is_enabled=enabled,
            )
        )
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("OrderPlaced")

    assert journal == ["enabled-start"]
    instances = await store.list_instances()
    assert [i.awaiting_activities[0].activity_id for i in instances] == ["enabled-wait"]


@pytest.mark.asyncio
async def test_unknown_event_leaves_store_untouched(registry, store, record, definition):
    await store.save_definition(_approval_definition(record, definition))
    manager = WorkflowManager(registry, store)
    await manager.trigger_event("Init")
    before = await store.list_instances()

    await manager.trigger_event("no-such-event")

    assert await store.list_instances() == before


@pytest.mark.asyncio
async def test_guard_failure_only_skips_its_candidate(
    store, journal, scripted, record, definition
):
    def guard(context, activity_context):
        if context.definition.name == "broken":
            raise RuntimeError("guard exploded")
        return True

    registry = ActivityRegistry(
        [scripted("OrderPlaced", is_event=True, guard=guard), scripted("WaitForApproval", is_event=True)]
    )
    for name in ("broken", "healthy"):
        await store.save_definition(
            definition(
                [
                    record(f"{name}-start", "OrderPlaced", is_start=True),
                    record(f"{name}-wait", "WaitForApproval"),
                ],
                [(f"{name}-start", "Done", f"{name}-wait")],
                name=name,
            )
        )
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("OrderPlaced")

    assert journal == ["healthy-start"]
    assert len(await store.list_instances()) == 1


@pytest.mark.asyncio
async def test_guard_returning_false_skips_resume(
    store, journal, scripted, record, definition
):
    allowed = {"value": False}
    registry = ActivityRegistry(
        [
            scripted("Init"),
            scripted("WaitForApproval", is_event=True, guard=lambda c, a: allowed["value"]),
        ]
    )
    await store.save_definition(_approval_definition(record, definition))
    manager = WorkflowManager(registry, store)
    await manager.trigger_event("Init")

    await manager.trigger_event("WaitForApproval")
    assert journal == ["A"]
    assert len(await store.list_instances()) == 1

    allowed["value"] = True
    await manager.trigger_event("WaitForApproval")
    assert journal == ["A", "B"]
    assert await store.list_instances() == []


@pytest.mark.asyncio
async def test_trigger_properties_and_target_reach_activities(
    store, scripted, record, definition
):
    seen = []

    def guard(context, activity_context):
        seen.append((context.target, context.properties))
        return True

    registry = ActivityRegistry([scripted("OrderPlaced", is_event=True, guard=guard)])
    await store.save_definition(definition([record("S", "OrderPlaced", is_start=True)]))
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("OrderPlaced", target="order-7", context_factory=lambda: {"total": 12})

    assert seen == [("order-7", {"total": 12})]


@pytest.mark.asyncio
async def test_resume_keeps_other_awaiting_activities(
    registry, store, journal, record, definition
):
    await store.save_definition(
        definition(
            [
                record("A", "Init", is_start=True, outcomes=["Left", "Right"]),
                record("W", "WaitForApproval"),
                record("O", "OrderPlaced"),
            ],
            [("A", "Left", "W"), ("A", "Right", "O")],
        )
    )
    manager = WorkflowManager(registry, store)
    await manager.trigger_event("Init")

    await manager.trigger_event("WaitForApproval")

    (instance,) = await store.list_instances()
    assert [a.activity_id for a in instance.awaiting_activities] == ["O"]

    await manager.trigger_event("OrderPlaced")
    assert await store.list_instances() == []
    assert journal == ["A", "W", "O"]


@pytest.mark.asyncio
async def test_resume_appends_newly_blocking_activities(
    registry, store, journal, record, definition
):
    await store.save_definition(
        definition(
            [
                record("A", "Init", is_start=True),
                record("W1", "WaitForApproval"),
                record("X", "Work"),
                record("W2", "WaitForApproval"),
            ],
            [("A", "Done", "W1"), ("W1", "Done", "X"), ("X", "Done", "W2")],
        )
    )
    manager = WorkflowManager(registry, store)
    await manager.trigger_event("Init")

    await manager.trigger_event("WaitForApproval")

    (instance,) = await store.list_instances()
    assert [a.activity_id for a in instance.awaiting_activities] == ["W2"]
    assert journal == ["A", "W1", "X"]


@pytest.mark.asyncio
async def test_start_activity_awaits_are_not_resumed(
    registry, store, journal, record, definition
):
    wf = definition([record("S", "OrderPlaced", is_start=True)], is_enabled=False)
    await store.save_definition(wf)
    await store.save_instance(
        WorkflowInstance(
            definition_id=wf.id,
            awaiting_activities=[
                AwaitingActivity(activity_id="S", name="OrderPlaced", is_start=True)
            ],
        )
    )
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("OrderPlaced")

    assert journal == []


@pytest.mark.asyncio
async def test_cancelled_start_persists_nothing(store, journal, scripted, record, definition):
    class Gatekeeper(Activity):
        name = "Gatekeeper"

        async def execute(self, context, activity_context):
            return []

        def on_workflow_starting(self, context, cancellation):
            cancellation.cancel()

    registry = ActivityRegistry(
        [scripted("Init"), scripted("WaitForApproval", is_event=True), Gatekeeper()]
    )
    await store.save_definition(_approval_definition(record, definition))
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("Init")

    assert journal == []
    assert await store.list_instances() == []


@pytest.mark.asyncio
async def test_cancelled_resume_leaves_instance_unchanged(
    store, journal, scripted, record, definition
):
    class Gatekeeper(Activity):
        name = "Gatekeeper"

        async def execute(self, context, activity_context):
            return []

        def on_workflow_resuming(self, context, cancellation):
            cancellation.cancel()

    registry = ActivityRegistry(
        [scripted("Init"), scripted("WaitForApproval", is_event=True), Gatekeeper()]
    )
    await store.save_definition(_approval_definition(record, definition))
    manager = WorkflowManager(registry, store)
    await manager.trigger_event("Init")
    before = await store.list_instances()

    await manager.trigger_event("WaitForApproval")

    assert journal == ["A"]
    assert await store.list_instances() == before


@pytest.mark.asyncio
async def test_resume_without_matching_awaiting_activity_raises(
    registry, store, record, definition
):
    wf = _approval_definition(record, definition)
    instance = WorkflowInstance(definition_id=wf.id)
    context = WorkflowContext(definition=wf, instance=instance)
    manager = WorkflowManager(registry, store)

    with pytest.raises(AwaitingActivityNotFoundError):
        await manager.resume_workflow(instance, wf.get_activity("B"), context)


@pytest.mark.asyncio
async def test_awaited_activity_missing_from_definition_raises(
    registry, store, record, definition
):
    wf = _approval_definition(record, definition)
    await store.save_definition(wf)
    await store.save_instance(
        WorkflowInstance(
            definition_id=wf.id,
            awaiting_activities=[AwaitingActivity(activity_id="gone", name="WaitForApproval")],
        )
    )
    manager = WorkflowManager(registry, store)

    with pytest.raises(WorkflowIntegrityError):
        await manager.trigger_event("WaitForApproval")


@pytest.mark.asyncio
async def test_activity_errors_propagate(store, scripted, record, definition):
    class Failing(Activity):
        name = "Init"

        async def execute(self, context, activity_context):
            raise ValueError("boom")

    registry = ActivityRegistry([Failing(), scripted("WaitForApproval", is_event=True)])
    await store.save_definition(_approval_definition(record, definition))
    manager = WorkflowManager(registry, store)

    with pytest.raises(ValueError, match="boom"):
        await manager.trigger_event("Init")
    assert await store.list_instances() == []


async def _paused_pair(store, record, definition):
    wf = _approval_definition(record, definition)
    await store.save_definition(wf)
    instances = []
    for _ in range(2):
        instance = WorkflowInstance(
            definition_id=wf.id,
            awaiting_activities=[AwaitingActivity(activity_id="B", name="WaitForApproval")],
        )
        await store.save_instance(instance)
        instances.append(instance)
    return instances


@pytest.mark.asyncio
async def test_guard_failure_only_skips_its_paused_instance(
    store, journal, scripted, record, definition
):
    broken, healthy = await _paused_pair(store, record, definition)

    def guard(context, activity_context):
        if context.instance.id == broken.id:
            raise RuntimeError("guard exploded")
        return True

    registry = ActivityRegistry(
        [scripted("Init"), scripted("WaitForApproval", is_event=True, guard=guard)]
    )
    manager = WorkflowManager(registry, store)

    await manager.trigger_event("WaitForApproval")

    assert journal == ["B"]
    assert await store.get_instance(healthy.id) is None
    assert await store.get_instance(broken.id) == broken


@pytest.mark.asyncio
async def test_instance_deleted_before_load_is_skipped(
    registry, journal, record, definition, caplog
):
    class VanishingStore(InMemoryWorkflowStore):
        """Deletes one instance right after the awaiting index is read."""

        vanishing_id = None

        async def find_awaiting_activities(self, activity_name, exclude_start=True):
            entries = await super().find_awaiting_activities(activity_name, exclude_start)
            self._instances.pop(self.vanishing_id, None)
            return entries

    store = VanishingStore()
    gone, kept = await _paused_pair(store, record, definition)
    store.vanishing_id = gone.id
    manager = WorkflowManager(registry, store)

    with caplog.at_level(logging.WARNING, logger="trellis.manager"):
        await manager.trigger_event("WaitForApproval")

    assert journal == ["B"]
    assert await store.list_instances() == []
    assert f"Workflow instance {gone.id} disappeared" in caplog.text
