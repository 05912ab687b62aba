"""Helpers for reading workflow definitions and activity plugins."""

from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import Iterable

import yaml

from ..activities import ActivityRegistry, default_registry
from ..models import WorkflowDefinition


def _read_definition_file(path: Path) -> WorkflowDefinition:
    """Parse a workflow definition from a YAML or JSON file."""
    text = path.read_text()
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}
    return WorkflowDefinition.model_validate(data)


def _build_registry(plugins: Iterable[str] = ()) -> ActivityRegistry:
    """Return the bundled activities plus those of every plugin module.

    A plugin is an importable module exposing ``register(registry)``.
    """
    registry = default_registry()
    for module_name in plugins:
        module = importlib.import_module(module_name)
        register = getattr(module, "register", None)
        if register is None:
            raise ValueError(f"Plugin {module_name} has no register(registry) function")
        register(registry)
    return registry
