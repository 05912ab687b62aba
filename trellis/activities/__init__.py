"""Activity kinds and their registry."""

from __future__ import annotations

from .base import Activity, Event, Task
from .builtin import Signal, Step
from .registry import ActivityRegistry


def default_registry() -> ActivityRegistry:
    """Return a registry holding the bundled activity kinds."""
    return ActivityRegistry([Signal(), Step()])


__all__ = [
    "Activity",
    "ActivityRegistry",
    "Event",
    "Signal",
    "Step",
    "Task",
    "default_registry",
]
