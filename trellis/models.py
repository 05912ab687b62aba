"""Data models for workflow definitions and paused workflow instances."""

from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field


class ActivityRecord(BaseModel):
    """One activity placed in a workflow definition."""

    id: str
    name: str = Field(..., description="Activity kind name")
    is_start: bool = False
    state: str = Field(default="{}", description="Serialized JSON state")


class Transition(BaseModel):
    """Edge from an activity outcome to the next activity."""

    source_activity_id: str
    source_endpoint: str = Field(..., description="Outcome label")
    destination_activity_id: str


class WorkflowDefinition(BaseModel):
    """Static activity graph authored by an operator."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    version: int = 1
    is_enabled: bool = True
    activities: List[ActivityRecord] = Field(default_factory=list)
    transitions: List[Transition] = Field(default_factory=list)

    @property
    def start_activity(self) -> Optional[ActivityRecord]:
        return next((a for a in self.activities if a.is_start), None)

    @property
    def has_start(self) -> bool:
        return self.start_activity is not None

    @property
    def start_activity_name(self) -> Optional[str]:
        start = self.start_activity
        return start.name if start else None

    def get_activity(self, activity_id: str) -> Optional[ActivityRecord]:
        return next((a for a in self.activities if a.id == activity_id), None)

    def find_transition(self, source_activity_id: str, outcome: str) -> Optional[Transition]:
        """Return the first transition leaving ``source_activity_id`` on ``outcome``."""
        return next(
            (
                t
                for t in self.transitions
                if t.source_activity_id == source_activity_id
                and t.source_endpoint == outcome
            ),
            None,
        )


class AwaitingActivity(BaseModel):
    """Blocking activity a workflow instance is halted on."""

    activity_id: str
    name: str
    is_start: bool = False

    @classmethod
    def from_activity(cls, activity: ActivityRecord) -> "AwaitingActivity":
        return cls(activity_id=activity.id, name=activity.name, is_start=activity.is_start)


class WorkflowInstance(BaseModel):
    """Durable state of a paused workflow."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    definition_id: str
    awaiting_activities: List[AwaitingActivity] = Field(default_factory=list)
    version: int = 0

    def find_awaiting(self, activity_id: str) -> Optional[AwaitingActivity]:
        return next(
            (a for a in self.awaiting_activities if a.activity_id == activity_id), None
        )


class AwaitingActivityEntry(BaseModel):
    """Index row pointing from an awaited activity back to its instance."""

    instance_id: str
    activity_id: str
    activity_name: str
    activity_is_start: bool = False
