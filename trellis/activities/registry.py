"""Registry mapping activity kind names to their behaviour."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..errors import UnknownActivityError
from ..models import WorkflowDefinition
from .base import Activity

logger = logging.getLogger(__name__)


class ActivityRegistry:
    """Known activity kinds, kept in registration order."""

    def __init__(self, activities: Iterable[Activity] = ()) -> None:
        self._activities: Dict[str, Activity] = {}
        for activity in activities:
            self.register(activity)

    def register(self, activity: Activity) -> Activity:
        """Add ``activity``; a kind registered twice replaces the first one."""
        if activity.name in self._activities:
            logger.warning(f"Replacing registered activity {activity.name}")
        self._activities[activity.name] = activity
        return activity

    def get_activity_by_name(self, name: str) -> Optional[Activity]:
        return self._activities.get(name)

    def require(self, name: str) -> Activity:
        activity = self.get_activity_by_name(name)
        if activity is None:
            raise UnknownActivityError(name)
        return activity

    def list_activities(self) -> List[Activity]:
        return list(self._activities.values())

    def __contains__(self, name: object) -> bool:
        return name in self._activities

    def __len__(self) -> int:
        return len(self._activities)

    def validate_definition(self, definition: WorkflowDefinition) -> List[str]:
        """Return human readable problems found in ``definition``.

        An empty list means every activity kind is known, there is exactly one
        start-capable start activity and every transition connects existing
        activities.
        """
        problems: List[str] = []
        ids = set()
        for record in definition.activities:
            if record.id in ids:
                problems.append(f"Duplicate activity id {record.id}")
            ids.add(record.id)
            activity = self.get_activity_by_name(record.name)
            if activity is None:
                problems.append(f"Activity {record.id} uses unknown kind {record.name}")
            elif record.is_start and not activity.can_start:
                problems.append(
                    f"Activity {record.id} of kind {record.name} cannot start a workflow"
                )

        starts = [a for a in definition.activities if a.is_start]
        if not starts:
            problems.append("Workflow has no start activity")
        elif len(starts) > 1:
            problems.append(
                "Workflow has several start activities: "
                + ", ".join(a.id for a in starts)
            )

        for transition in definition.transitions:
            if transition.source_activity_id not in ids:
                problems.append(
                    f"Transition leaves unknown activity {transition.source_activity_id}"
                )
            if transition.destination_activity_id not in ids:
                problems.append(
                    f"Transition targets unknown activity {transition.destination_activity_id}"
                )
        return problems
