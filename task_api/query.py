"""
Filter and pagination composition for task queries.

``build_filter`` turns a ``TaskFilter`` into a single MongoDB predicate: the
soft-delete clause plus one clause per supplied criterion, joined with
``$and``. Absent criteria add nothing.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar, Union

from pymongo import ASCENDING, DESCENDING

from .errors import Failure, invalid_argument
from .schemas import TaskPriority, TaskStatus, to_utc_naive

T = TypeVar("T")
U = TypeVar("U")

# wire name -> document field
SORTABLE_FIELDS: Dict[str, str] = {
    "id": "_id",
    "title": "title",
    "status": "status",
    "priority": "priority",
    "dueDateTime": "due_date_time",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_DIRECTIONS = {"asc": ASCENDING, "desc": DESCENDING}


@dataclass(frozen=True)
class TaskFilter:
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    search: Optional[str] = None
    due_before: Optional[datetime] = None
    due_after: Optional[datetime] = None


def _conjunction(clauses: List[Dict[str, Any]]) -> Dict[str, Any]:
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def build_filter(criteria: TaskFilter) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = [{"deleted": False}]
    if criteria.status is not None:
        clauses.append({"status": criteria.status.value})
    if criteria.priority is not None:
        clauses.append({"priority": criteria.priority.value})
    if criteria.search:
        clauses.append({"title": {"$regex": re.escape(criteria.search), "$options": "i"}})
    if criteria.due_before is not None:
        clauses.append({"due_date_time": {"$lt": to_utc_naive(criteria.due_before)}})
    if criteria.due_after is not None:
        clauses.append({"due_date_time": {"$gt": to_utc_naive(criteria.due_after)}})
    return _conjunction(clauses)


def overdue_filter(now: datetime) -> Dict[str, Any]:
    return _conjunction([
        {"deleted": False},
        {"status": {"$ne": TaskStatus.COMPLETED.value}},
        {"due_date_time": {"$lt": now}},
    ])


@dataclass(frozen=True)
class Sort:
    field: str
    direction: int

    def spec(self) -> List[Tuple[str, int]]:
        """Sort keys for a cursor; ties fall back to id so pages are stable."""
        keys = [(self.field, self.direction)]
        if self.field != "_id":
            keys.append(("_id", self.direction))
        return keys


CREATED_DESC = Sort("created_at", DESCENDING)
DUE_ASC = Sort("due_date_time", ASCENDING)


def parse_sort(raw: Optional[str], default: Sort) -> Union[Sort, Failure]:
    """Parse ``field`` or ``field,asc|desc``; a bare field sorts ascending."""
    if raw is None or raw.strip() == "":
        return default
    name, _, direction = (part.strip() for part in raw.partition(","))
    field = SORTABLE_FIELDS.get(name)
    if field is None:
        return invalid_argument(f"Unsupported sort property: {name}")
    order = _DIRECTIONS.get(direction.lower() or "asc")
    if order is None:
        return invalid_argument(f"Unsupported sort direction: {direction}")
    return Sort(field, order)


@dataclass(frozen=True)
class PageRequest:
    page: int
    size: int
    sort: Sort

    @property
    def offset(self) -> int:
        return self.page * self.size


def page_request(
    page: Optional[int],
    size: Optional[int],
    sort: Optional[str],
    *,
    default_sort: Sort,
    default_size: int = 20,
    max_size: int = 2000,
) -> Union[PageRequest, Failure]:
    """
    Normalize raw paging parameters.

    A negative page becomes 0, a missing or non-positive size becomes the
    default, and sizes above ``max_size`` are clamped.
    """
    parsed = parse_sort(sort, default_sort)
    if isinstance(parsed, Failure):
        return parsed
    page = max(page or 0, 0)
    if size is None or size < 1:
        size = default_size
    return PageRequest(page=page, size=min(size, max_size), sort=parsed)


@dataclass
class Page(Generic[T]):
    """One slice of a query result plus the totals needed for page metadata."""

    items: List[T]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0

    @property
    def first(self) -> bool:
        return not self.has_previous

    @property
    def last(self) -> bool:
        return not self.has_next

    def map(self, convert: Callable[[T], U]) -> "Page[U]":
        return Page([convert(item) for item in self.items], self.page, self.size, self.total_elements)
