"""Task endpoints under /api/v1/tasks, plus the root and health endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .database import TaskStore, get_db
from .envelope import created, fail, ok, paged
from .errors import FieldError, Failure, validation_failed
from .query import CREATED_DESC, DUE_ASC, Sort, TaskFilter, page_request
from .schemas import (
    BulkDeleteRequest,
    BulkStatusUpdateRequest,
    INT64_MAX,
    INT64_MIN,
    StatusUpdateRequest,
    TaskCreateRequest,
    TaskPriority,
    TaskResponse,
    TaskStatus,
    TaskUpdateRequest,
    utcnow,
)
from .service import TaskService
from .validation import (
    validate_bulk_create,
    validate_bulk_delete,
    validate_bulk_status_update,
    validate_create,
    validate_status_update,
    validate_update,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])
root_router = APIRouter(tags=["health"])

PathTaskId = Annotated[int, Path(ge=INT64_MIN, le=INT64_MAX)]


async def get_store(request: Request) -> TaskStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        store = TaskStore(await get_db(request.app.state.settings))
        request.app.state.store = store
    return store


def get_service(request: Request, store: TaskStore = Depends(get_store)) -> TaskService:
    return TaskService(store, getattr(request.state, "context", None))


def _reject(errors: List[FieldError]) -> JSONResponse:
    failure = validation_failed(errors)
    logger.warning("Validation failed - %d field error(s): %s", len(failure.field_errors), failure.field_errors)
    return fail(failure)


def _paging(request: Request, page: Optional[int], size: Optional[int], sort: Optional[str], default_sort: Sort):
    settings = request.app.state.settings
    return page_request(
        page, size, sort,
        default_sort=default_sort,
        default_size=settings.default_page_size,
        max_size=settings.max_page_size,
    )


@root_router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    logger.info("Welcome endpoint accessed")
    return "Welcome to task-manager-api"


@root_router.get("/health")
async def health() -> JSONResponse:
    return ok({"status": "UP"}, "Service is healthy")


@router.post("")
async def create_task(payload: TaskCreateRequest, service: TaskService = Depends(get_service)) -> JSONResponse:
    errors = validate_create(payload)
    if errors:
        return _reject(errors)
    task = await service.create(payload)
    return created(TaskResponse.from_task(task), "Task created successfully")


@router.post("/bulk")
async def create_tasks(
    payload: Optional[List[TaskCreateRequest]] = Body(default=None),
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    errors = validate_bulk_create(payload or [])
    if errors:
        return _reject(errors)
    result = await service.create_bulk(payload)
    if isinstance(result, Failure):
        return fail(result)
    now = utcnow()
    items = [TaskResponse.from_task(task, now) for task in result]
    return created(items, f"{len(items)} task(s) created successfully")


@router.get("/overdue")
async def overdue_tasks(
    request: Request,
    page: Optional[int] = None,
    size: Optional[int] = None,
    sort: Optional[str] = None,
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    paging = _paging(request, page, size, sort, DUE_ASC)
    if isinstance(paging, Failure):
        return fail(paging)
    now = utcnow()
    result = await service.overdue(paging, now)
    return ok(paged(result, lambda task: TaskResponse.from_task(task, now)), "Overdue tasks retrieved successfully")


@router.get("/{task_id}")
async def get_task(task_id: PathTaskId, service: TaskService = Depends(get_service)) -> JSONResponse:
    result = await service.get(task_id)
    if isinstance(result, Failure):
        return fail(result)
    return ok(TaskResponse.from_task(result), "Task retrieved successfully")


@router.get("")
async def list_tasks(
    request: Request,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    due_before: Optional[datetime] = Query(default=None, alias="dueBefore"),
    due_after: Optional[datetime] = Query(default=None, alias="dueAfter"),
    page: Optional[int] = None,
    size: Optional[int] = None,
    sort: Optional[str] = None,
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    paging = _paging(request, page, size, sort, CREATED_DESC)
    if isinstance(paging, Failure):
        return fail(paging)
    criteria = TaskFilter(
        status=status,
        priority=priority,
        search=search,
        due_before=due_before,
        due_after=due_after,
    )
    result = await service.list_tasks(criteria, paging)
    now = utcnow()
    return ok(paged(result, lambda task: TaskResponse.from_task(task, now)), "Tasks retrieved successfully")


@router.put("/{task_id}")
async def update_task(
    task_id: PathTaskId,
    payload: TaskUpdateRequest,
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    errors = validate_update(payload)
    if errors:
        return _reject(errors)
    result = await service.update(task_id, payload)
    if isinstance(result, Failure):
        return fail(result)
    return ok(TaskResponse.from_task(result), "Task updated successfully")


@router.patch("/bulk/status")
async def update_tasks_status(
    payload: BulkStatusUpdateRequest,
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    errors = validate_bulk_status_update(payload)
    if errors:
        return _reject(errors)
    result = await service.bulk_update_status(payload.ids, payload.status)
    return ok(result, f"{result.affected} task(s) status updated successfully")


@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: PathTaskId,
    payload: StatusUpdateRequest,
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    errors = validate_status_update(payload)
    if errors:
        return _reject(errors)
    result = await service.update_status(task_id, payload.status)
    if isinstance(result, Failure):
        return fail(result)
    return ok(TaskResponse.from_task(result), "Task status updated successfully")


@router.delete("/bulk")
async def delete_tasks(
    payload: BulkDeleteRequest,
    service: TaskService = Depends(get_service),
) -> JSONResponse:
    errors = validate_bulk_delete(payload)
    if errors:
        return _reject(errors)
    result = await service.bulk_delete(payload.ids)
    return ok(result, f"{result.affected} task(s) deleted successfully")


@router.delete("/{task_id}")
async def delete_task(task_id: PathTaskId, service: TaskService = Depends(get_service)) -> JSONResponse:
    result = await service.delete(task_id)
    if isinstance(result, Failure):
        return fail(result)
    return ok(message="Task deleted successfully")
