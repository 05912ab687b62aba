"""Trellis: event-driven workflow orchestration over activity graphs."""

from .activities import Activity, ActivityRegistry, Event, Task, default_registry
from .config import TrellisConfig, load_config
from .context import ActivityContext, CancellationSignal, WorkflowContext
from .engine import ExecutionEngine
from .lifecycle import LifecycleDispatcher
from .manager import WorkflowManager
from .models import (
    ActivityRecord,
    AwaitingActivity,
    Transition,
    WorkflowDefinition,
    WorkflowInstance,
)
from .persistence import WorkflowStore, get_store

__version__ = "0.1.0"
__all__ = [
    "Activity",
    "ActivityContext",
    "ActivityRecord",
    "ActivityRegistry",
    "AwaitingActivity",
    "CancellationSignal",
    "Event",
    "ExecutionEngine",
    "LifecycleDispatcher",
    "Task",
    "Transition",
    "TrellisConfig",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowInstance",
    "WorkflowManager",
    "WorkflowStore",
    "default_registry",
    "get_store",
    "load_config",
]
