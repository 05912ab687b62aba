"""Generic activity kinds shipped with trellis."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..context import ActivityContext, WorkflowContext
from .base import Event, Task

logger = logging.getLogger(__name__)


class SignalState(BaseModel):
    outcomes: List[str] = Field(default_factory=lambda: ["Done"])
    match: Dict[str, Any] = Field(
        default_factory=dict,
        description="Trigger properties that must be present with these values",
    )


class StepState(BaseModel):
    outcomes: List[str] = Field(default_factory=lambda: ["Done"])
    message: Optional[str] = None


class Signal(Event):
    """Waits for the event named ``Signal``.

    When ``match`` is set in the record state, only triggers whose properties
    carry the same values pass the guard.
    """

    name = "Signal"
    state_model = SignalState

    def can_execute(self, context: WorkflowContext, activity_context: ActivityContext) -> bool:
        state = activity_context.typed_state()
        return all(
            context.properties.get(key) == value for key, value in state.match.items()
        )

    async def execute(
        self, context: WorkflowContext, activity_context: ActivityContext
    ) -> List[str]:
        return list(activity_context.typed_state().outcomes)


class Step(Task):
    """Logs an optional message and returns its configured outcomes."""

    name = "Step"
    state_model = StepState

    async def execute(
        self, context: WorkflowContext, activity_context: ActivityContext
    ) -> List[str]:
        state = activity_context.typed_state()
        if state.message:
            logger.info(
                f"[{context.definition.name}/{activity_context.record.id}] {state.message}"
            )
        return list(state.outcomes)
