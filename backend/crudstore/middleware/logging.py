"""
crudstore — Request Logging Middleware
======================================

What:  One access log line per HTTP request.
How:   Times the downstream call and logs method, path, collection, status
       and duration. The level follows the status code:
       5xx → ERROR, 4xx → WARNING, everything else → INFO.

Request bodies are never logged; entities are arbitrary client data.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from crudstore.middleware.request_id import request_id_var

logger = logging.getLogger("crudstore.access")

UNLOGGED_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def collection_of(path: str) -> str:
    """First path segment, i.e. the collection a CRUD request targets."""
    return path.strip("/").split("/", 1)[0]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for the CRUD routes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in UNLOGGED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        logger.log(
            level_for_status(response.status_code),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            response.status_code,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "collection": collection_of(path),
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
