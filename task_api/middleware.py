"""
Request logging middleware.

Each request gets a ``RequestContext`` on ``request.state.context``. Routes
hand it to the service explicitly, so log lines carry the request id
without any global logging context.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .envelope import fail
from .errors import internal_error

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    method: str
    path: str
    client_ip: str


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def _skip_logging(path: str) -> bool:
    return path.startswith(("/docs", "/redoc", "/openapi.json")) or path.endswith(".ico")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with timing, tags it with a request id and turns
    unhandled exceptions into an INTERNAL_ERROR envelope.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        context = RequestContext(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=client_ip(request),
        )
        request.state.context = context

        quiet = _skip_logging(context.path)
        if not quiet:
            query = request.url.query
            logger.info(
                ">>> Request started: %s %s | RequestId: %s | Client: %s | User-Agent: %s",
                context.method,
                f"{context.path}?{query}" if query else context.path,
                request_id,
                context.client_ip,
                request.headers.get("user-agent"),
            )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unexpected error [%s] in %s %s", request_id, context.method, context.path)
            response = fail(internal_error())
        duration_ms = int((time.perf_counter() - start) * 1000)

        response.headers[REQUEST_ID_HEADER] = request_id
        if quiet:
            return response

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "<<< Request completed: %s %s | Status: %d | Duration: %dms | RequestId: %s",
            context.method, context.path, response.status_code, duration_ms, request_id,
        )
        if duration_ms > SLOW_REQUEST_MS:
            logger.warning("Slow request detected: %s %s took %dms", context.method, context.path, duration_ms)
        return response
