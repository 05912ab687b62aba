"""Per-run contexts handed to activities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel

from .models import ActivityRecord, WorkflowDefinition, WorkflowInstance

if TYPE_CHECKING:
    from .activities.base import Activity


class CancellationSignal:
    """Flag shared by every participant of one lifecycle broadcast."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled


@dataclass
class WorkflowContext:
    """Definition and instance being executed, plus trigger data.

    The definition and instance are mutated in place while the workflow runs
    and are what eventually gets persisted; the context itself never is.
    """

    definition: WorkflowDefinition
    instance: WorkflowInstance
    target: Any = None
    properties: Dict[str, Any] = field(default_factory=dict)


class ActivityContext:
    """A single visit to an activity record.

    The record state is parsed on first access only and never shared between
    visits.
    """

    def __init__(self, record: ActivityRecord, activity: "Activity") -> None:
        self.record = record
        self.activity = activity

    @cached_property
    def state(self) -> Dict[str, Any]:
        return json.loads(self.record.state or "{}")

    def get_state(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    def typed_state(self) -> Optional[BaseModel]:
        """Validate the state against the activity kind's ``state_model``."""
        model = getattr(self.activity, "state_model", None)
        if model is None:
            return None
        return model.model_validate(self.state)
