from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def to_utc_naive(value: datetime) -> datetime:
    """Normalize to naive UTC at millisecond precision, which is what a BSON date holds."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utcnow() -> datetime:
    return to_utc_naive(datetime.now(timezone.utc))


# ids are BSON int64
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

TaskId = Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)]


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class CamelModel(BaseModel):
    """Base for everything that crosses the HTTP boundary (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Stored document in the "task" collection

class Task(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="_id")
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date_time: datetime
    created_at: datetime
    updated_at: datetime
    deleted: bool = False
    deleted_at: Optional[datetime] = None

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Incomplete, not deleted and past due, relative to ``now`` (read time)."""
        now = now or utcnow()
        return (
            not self.deleted
            and self.status != TaskStatus.COMPLETED
            and self.due_date_time < now
        )

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True)
        doc["status"] = self.status.value
        doc["priority"] = self.priority.value
        return doc


# Requests. Every field is optional at the model level; presence and value
# rules live in validation.py and come back as VALIDATION_ERROR field messages.

class TaskCreateRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date_time: Optional[datetime] = None
    priority: Optional[TaskPriority] = None


class TaskUpdateRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date_time: Optional[datetime] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None


class StatusUpdateRequest(CamelModel):
    status: Optional[TaskStatus] = None


class BulkStatusUpdateRequest(CamelModel):
    ids: Optional[List[TaskId]] = None
    status: Optional[TaskStatus] = None


class BulkDeleteRequest(CamelModel):
    ids: Optional[List[TaskId]] = None


# Responses

class TaskResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date_time: datetime
    created_at: datetime
    updated_at: datetime
    overdue: bool

    @classmethod
    def from_task(cls, task: Task, now: Optional[datetime] = None) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date_time=task.due_date_time,
            created_at=task.created_at,
            updated_at=task.updated_at,
            overdue=task.is_overdue(now),
        )


class BulkOperationResult(CamelModel):
    affected: int
    requested: int


class PagedData(CamelModel):
    items: List[Any]
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool
    has_next: bool
    has_previous: bool
