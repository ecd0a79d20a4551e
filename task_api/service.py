"""
Task lifecycle operations.

Single-task operations return ``Failure`` (NOT_FOUND) when the id is absent
or soft-deleted. Bulk status update and bulk delete skip such ids and report
``affected``/``requested`` counts instead. Bulk create is all-or-nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .database import TaskStore
from .errors import Failure, invalid_argument, not_found
from .logging_setup import request_logger
from .middleware import RequestContext
from .query import Page, PageRequest, TaskFilter, build_filter, overdue_filter
from .schemas import (
    BulkOperationResult,
    Task,
    TaskCreateRequest,
    TaskPriority,
    TaskStatus,
    TaskUpdateRequest,
    to_utc_naive,
    utcnow,
)

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, store: TaskStore, context: Optional[RequestContext] = None):
        self._store = store
        self.log = request_logger(logger, context.request_id if context else None)

    @staticmethod
    def _new_task_fields(request: TaskCreateRequest) -> Dict[str, Any]:
        # new tasks always start PENDING; create requests carry no status
        return {
            "title": request.title,
            "description": request.description,
            "due_date_time": to_utc_naive(request.due_date_time),
            "status": TaskStatus.PENDING,
            "priority": request.priority or TaskPriority.MEDIUM,
        }

    async def create(self, request: TaskCreateRequest) -> Task:
        self.log.info("Creating task: title='%s', priority=%s", request.title, request.priority or TaskPriority.MEDIUM)
        task = await self._store.create(self._new_task_fields(request))
        self.log.info("Task created with ID: %s", task.id)
        return task

    async def create_bulk(self, requests: Optional[List[TaskCreateRequest]]) -> Union[List[Task], Failure]:
        if not requests:
            self.log.warning("Bulk create rejected: empty or null request list")
            return invalid_argument("At least one task is required")
        self.log.info("Creating %d tasks in bulk", len(requests))
        tasks = await self._store.create_many([self._new_task_fields(r) for r in requests])
        self.log.info("Bulk create completed: %d tasks saved, ids=%s", len(tasks), [t.id for t in tasks])
        return tasks

    async def get(self, task_id: int) -> Union[Task, Failure]:
        task = await self._store.find_active(task_id)
        if task is None:
            self.log.warning("Task not found with ID: %s (or is deleted)", task_id)
            return not_found(task_id)
        self.log.debug("Found task %s: status=%s, priority=%s", task.id, task.status.value, task.priority.value)
        return task

    async def list_tasks(self, criteria: TaskFilter, page_request: PageRequest) -> Page[Task]:
        self.log.info(
            "Fetching tasks - status: %s, priority: %s, search: '%s', page: %d, size: %d",
            criteria.status, criteria.priority, criteria.search, page_request.page, page_request.size,
        )
        page = await self._store.find_page(build_filter(criteria), page_request)
        self.log.info(
            "Tasks retrieved: %d items on page %d/%d, total: %d",
            len(page.items), page.page + 1, page.total_pages, page.total_elements,
        )
        return page

    async def overdue(self, page_request: PageRequest, now: Optional[datetime] = None) -> Page[Task]:
        now = now or utcnow()
        page = await self._store.find_page(overdue_filter(now), page_request)
        if page.total_elements:
            self.log.warning("There are %d overdue tasks requiring attention", page.total_elements)
        return page

    async def update(self, task_id: int, request: TaskUpdateRequest) -> Union[Task, Failure]:
        task = await self._store.update_active(task_id, {
            "title": request.title,
            "description": request.description,
            "due_date_time": to_utc_naive(request.due_date_time),
            "status": request.status.value,
            "priority": request.priority.value,
        })
        if task is None:
            self.log.warning("Cannot update - task not found with ID: %s", task_id)
            return not_found(task_id)
        self.log.info("Task %s updated: status=%s, priority=%s", task_id, task.status.value, task.priority.value)
        return task

    async def update_status(self, task_id: int, status: TaskStatus) -> Union[Task, Failure]:
        task = await self._store.update_active(task_id, {"status": status.value})
        if task is None:
            self.log.warning("Cannot update status - task not found with ID: %s", task_id)
            return not_found(task_id)
        self.log.info("Task %s status changed to %s", task_id, status.value)
        return task

    async def _live_ids(self, ids: List[int], action: str) -> List[int]:
        found = await self._store.find_active_ids(ids)
        missing = sorted(set(ids) - set(found))
        if missing:
            self.log.warning("Bulk %s: %d task IDs not found or already deleted: %s", action, len(missing), missing)
        return found

    async def bulk_update_status(self, ids: List[int], status: TaskStatus) -> BulkOperationResult:
        found = await self._live_ids(ids, "status update")
        affected = await self._store.update_many_active(found, {"status": status.value})
        self.log.info("Bulk status update completed: %d/%d tasks updated to %s", affected, len(ids), status.value)
        return BulkOperationResult(affected=affected, requested=len(ids))

    async def delete(self, task_id: int) -> Union[Task, Failure]:
        task = await self._store.update_active(task_id, {"deleted": True, "deleted_at": utcnow()})
        if task is None:
            self.log.warning("Cannot delete - task not found with ID: %s (or already deleted)", task_id)
            return not_found(task_id)
        self.log.info("Task %s soft deleted at %s", task_id, task.deleted_at)
        return task

    async def bulk_delete(self, ids: List[int]) -> BulkOperationResult:
        found = await self._live_ids(ids, "delete")
        affected = await self._store.update_many_active(found, {"deleted": True, "deleted_at": utcnow()})
        self.log.info("Bulk delete completed: %d/%d tasks soft deleted", affected, len(ids))
        return BulkOperationResult(affected=affected, requested=len(ids))
