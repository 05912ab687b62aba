"""Example: a workflow that pauses until an approval event arrives."""

import asyncio
import json
import logging
from typing import List

from trellis import (
    ActivityRecord,
    Event,
    Task,
    Transition,
    WorkflowDefinition,
    WorkflowManager,
    default_registry,
    get_store,
)


class SubmitRequest(Event):
    name = "SubmitRequest"

    async def execute(self, context, activity_context) -> List[str]:
        print(f"Request submitted: {context.properties}")
        return ["Submitted"]


class WaitForApproval(Event):
    name = "WaitForApproval"

    def can_execute(self, context, activity_context) -> bool:
        return context.properties.get("approver") is not None

    async def execute(self, context, activity_context) -> List[str]:
        return ["Approved"]


class Notify(Task):
    name = "Notify"

    async def execute(self, context, activity_context) -> List[str]:
        print(f"Notifying {activity_context.get_state('to')}")
        return ["Done"]


async def main():
    logging.basicConfig(level=logging.INFO)

    registry = default_registry()
    for activity in (SubmitRequest(), WaitForApproval(), Notify()):
        registry.register(activity)

    store = get_store()
    await store.save_definition(
        WorkflowDefinition(
            name="approval",
            activities=[
                ActivityRecord(id="submit", name="SubmitRequest", is_start=True),
                ActivityRecord(id="approve", name="WaitForApproval"),
                ActivityRecord(
                    id="notify", name="Notify", state=json.dumps({"to": "requester"})
                ),
            ],
            transitions=[
                Transition(
                    source_activity_id="submit",
                    source_endpoint="Submitted",
                    destination_activity_id="approve",
                ),
                Transition(
                    source_activity_id="approve",
                    source_endpoint="Approved",
                    destination_activity_id="notify",
                ),
            ],
        )
    )

    manager = WorkflowManager(registry, store)
    await manager.trigger_event("SubmitRequest", context_factory=lambda: {"item": "laptop"})
    print("Paused instances:", len(await store.list_instances()))

    await manager.trigger_event("WaitForApproval", context_factory=lambda: {"approver": "ana"})
    print("Paused instances:", len(await store.list_instances()))


if __name__ == "__main__":
    asyncio.run(main())
