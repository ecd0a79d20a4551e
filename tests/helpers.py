from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from task_api.schemas import TaskPriority, TaskStatus, utcnow


def iso_in(**delta: float) -> str:
    """ISO-8601 UTC timestamp offset from now, as a client would send it."""
    return (datetime.now(timezone.utc) + timedelta(**delta)).isoformat()


def task_fields(title: str = "Write report", **overrides: Any) -> Dict[str, Any]:
    """Field set accepted by TaskStore.create / create_many."""
    fields: Dict[str, Any] = {
        "title": title,
        "description": None,
        "due_date_time": utcnow() + timedelta(days=1),
        "status": TaskStatus.PENDING,
        "priority": TaskPriority.MEDIUM,
    }
    fields.update(overrides)
    return fields
