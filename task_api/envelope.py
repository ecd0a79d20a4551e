"""
Uniform response envelope.

Every response body, success or failure, has the shape::

    {"success": bool, "message": str, "data"?: ..., "error"?: {...}, "timestamp": ...}

``data`` and ``error`` are left out entirely when they do not apply.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import ErrorType, Failure, invalid_argument, malformed_request, type_mismatch
from .query import Page
from .schemas import CamelModel, PagedData, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorDetails(CamelModel):
    code: int
    type: ErrorType
    field_errors: Optional[Dict[str, str]] = None


class ApiResponse(CamelModel):
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[ErrorDetails] = None
    timestamp: datetime = Field(default_factory=utcnow)

    def to_body(self) -> Dict[str, Any]:
        exclude: Dict[str, Any] = {}
        if self.data is None:
            exclude["data"] = True
        if self.error is None:
            exclude["error"] = True
        elif self.error.field_errors is None:
            exclude["error"] = {"field_errors"}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


def ok(data: Any = None, message: str = "Operation completed successfully", status_code: int = 200) -> JSONResponse:
    envelope = ApiResponse(success=True, message=message, data=data)
    return JSONResponse(status_code=status_code, content=envelope.to_body())


def created(data: Any, message: str = "Resource created successfully") -> JSONResponse:
    return ok(data, message, status_code=201)


def fail(
    failure: Failure,
    status_code: Optional[int] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    code = status_code or failure.status_code
    envelope = ApiResponse(
        success=False,
        message=failure.message,
        error=ErrorDetails(code=code, type=failure.type, field_errors=failure.field_errors),
    )
    return JSONResponse(status_code=code, content=envelope.to_body(), headers=headers)


def paged(page: Page[T], convert: Callable[[T], Any]) -> PagedData:
    """Adapt a store page into the ``PagedData`` payload."""
    return PagedData(
        items=[convert(item) for item in page.items],
        page=page.page,
        size=page.size,
        total_elements=page.total_elements,
        total_pages=page.total_pages,
        first=page.first,
        last=page.last,
        has_next=page.has_next,
        has_previous=page.has_previous,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Parameter coercion problems become TYPE_MISMATCH; anything wrong with the body is MALFORMED_REQUEST."""
    errors = exc.errors()
    for err in errors:
        loc = tuple(err.get("loc") or ())
        if loc and loc[0] in ("path", "query"):
            name = loc[-1] if len(loc) > 1 else loc[0]
            value = err.get("input")
            logger.warning(
                "Type mismatch on %s %s: parameter '%s' received invalid value '%s' (%s)",
                request.method, request.url.path, name, value, err.get("type"),
            )
            return fail(type_mismatch(str(name), value))

    logger.warning("Malformed request body on %s %s: %s", request.method, request.url.path, errors)
    return fail(malformed_request())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    headers = getattr(exc, "headers", None)
    if exc.status_code == 404:
        failure = Failure(ErrorType.NOT_FOUND, f"No route for {request.method} {request.url.path}")
    elif exc.status_code >= 500:
        failure = Failure(ErrorType.INTERNAL_ERROR, "An unexpected error occurred")
    else:
        failure = invalid_argument(str(exc.detail))
    logger.warning("HTTP %s on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail)
    return fail(failure, status_code=exc.status_code, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
