"""Shared fixtures: scripted activity kinds and definition builders."""

from __future__ import annotations

import json
from typing import Callable, List, Optional

import pytest

from trellis.activities import Activity, ActivityRegistry
from trellis.models import ActivityRecord, Transition, WorkflowDefinition
from trellis.persistence import InMemoryWorkflowStore


class ScriptedActivity(Activity):
    """Activity returning the outcomes listed in its record state.

    Every execution is appended to ``journal`` as the record id.
    """

    def __init__(
        self,
        name: str,
        journal: List[str],
        is_event: bool = False,
        guard: Optional[Callable] = None,
    ) -> None:
        self.name = name
        self.is_event = is_event
        self.can_start = True
        self._journal = journal
        self._guard = guard

    def can_execute(self, context, activity_context) -> bool:
        if self._guard is None:
            return True
        return self._guard(context, activity_context)

    async def execute(self, context, activity_context) -> List[str]:
        self._journal.append(activity_context.record.id)
        return activity_context.get_state("outcomes", ["Done"])


@pytest.fixture
def journal() -> List[str]:
    return []


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def registry(journal) -> ActivityRegistry:
    """Registry with tasks ``Init``/``Work`` and events ``WaitForApproval``/``OrderPlaced``."""
    return ActivityRegistry(
        [
            ScriptedActivity("Init", journal),
            ScriptedActivity("Work", journal),
            ScriptedActivity("WaitForApproval", journal, is_event=True),
            ScriptedActivity("OrderPlaced", journal, is_event=True),
        ]
    )


@pytest.fixture
def scripted(journal) -> Callable[..., ScriptedActivity]:
    def factory(name: str, is_event: bool = False, guard: Optional[Callable] = None):
        return ScriptedActivity(name, journal, is_event=is_event, guard=guard)

    return factory


@pytest.fixture
def record() -> Callable[..., ActivityRecord]:
    def factory(
        activity_id: str,
        name: str,
        is_start: bool = False,
        outcomes: Optional[List[str]] = None,
    ) -> ActivityRecord:
        state = json.dumps({"outcomes": outcomes}) if outcomes is not None else "{}"
        return ActivityRecord(id=activity_id, name=name, is_start=is_start, state=state)

    return factory


@pytest.fixture
def definition() -> Callable[..., WorkflowDefinition]:
    """Build a definition from records and ``(source, outcome, destination)`` edges."""

    def factory(
        activities: List[ActivityRecord],
        edges=(),
        name: str = "wf",
        is_enabled: bool = True,
        definition_id: Optional[str] = None,
    ) -> WorkflowDefinition:
        kwargs = {"id": definition_id} if definition_id else {}
        return WorkflowDefinition(
            name=name,
            is_enabled=is_enabled,
            activities=activities,
            transitions=[
                Transition(
                    source_activity_id=source,
                    source_endpoint=outcome,
                    destination_activity_id=destination,
                )
                for source, outcome, destination in edges
            ],
            **kwargs,
        )

    return factory
