"""
Explicit request validators.

Each validator returns a list of ``(field, message)`` pairs using the wire
(camelCase) field names; an empty list means the request is acceptable.
Routes run them before calling into the service.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from .errors import FieldError
from .schemas import (
    BulkDeleteRequest,
    BulkStatusUpdateRequest,
    StatusUpdateRequest,
    TaskCreateRequest,
    TaskUpdateRequest,
    to_utc_naive,
    utcnow,
)


def _check_title(title: Optional[str], errors: List[FieldError]) -> None:
    if title is None or not title.strip():
        errors.append(("title", "Title is required"))


def _check_due(due: Optional[datetime], now: datetime, errors: List[FieldError]) -> None:
    if due is None:
        errors.append(("dueDateTime", "Due date/time is required"))
    elif to_utc_naive(due) < now:
        errors.append(("dueDateTime", "Due date/time must be in the present or future"))


def _check_ids(ids: Optional[List[int]], errors: List[FieldError]) -> None:
    if not ids:
        errors.append(("ids", "Task IDs list cannot be empty"))


def validate_create(request: TaskCreateRequest, now: Optional[datetime] = None) -> List[FieldError]:
    errors: List[FieldError] = []
    _check_title(request.title, errors)
    _check_due(request.due_date_time, now or utcnow(), errors)
    return errors


def validate_bulk_create(requests: List[TaskCreateRequest], now: Optional[datetime] = None) -> List[FieldError]:
    now = now or utcnow()
    errors: List[FieldError] = []
    for index, request in enumerate(requests):
        errors.extend((f"[{index}].{field}", message) for field, message in validate_create(request, now))
    return errors


def validate_update(request: TaskUpdateRequest, now: Optional[datetime] = None) -> List[FieldError]:
    errors: List[FieldError] = []
    _check_title(request.title, errors)
    _check_due(request.due_date_time, now or utcnow(), errors)
    if request.status is None:
        errors.append(("status", "Status is required"))
    if request.priority is None:
        errors.append(("priority", "Priority is required"))
    return errors


def validate_status_update(request: StatusUpdateRequest) -> List[FieldError]:
    if request.status is None:
        return [("status", "Status is required")]
    return []


def validate_bulk_status_update(request: BulkStatusUpdateRequest) -> List[FieldError]:
    errors: List[FieldError] = []
    _check_ids(request.ids, errors)
    if request.status is None:
        errors.append(("status", "Status is required"))
    return errors


def validate_bulk_delete(request: BulkDeleteRequest) -> List[FieldError]:
    errors: List[FieldError] = []
    _check_ids(request.ids, errors)
    return errors
