"""
crudstore — Request ID Middleware
=================================

What:  Tags every request with a correlation ID, echoed in X-Request-ID.
How:   A client-supplied X-Request-ID is kept when it is short and printable;
       otherwise a fresh 8-character ID is generated. The ID is published
       through a ContextVar so loggers and exception handlers can read it
       without access to the request object.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def accept_client_id(value: str) -> bool:
    """Client IDs end up in log lines and headers, so keep them tame."""
    return 0 < len(value) <= MAX_CLIENT_ID_LENGTH and value.isprintable()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to the request context and the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        client_id = request.headers.get(REQUEST_ID_HEADER, "")
        rid = client_id if accept_client_id(client_id) else new_request_id()

        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still needs the ID. Each server request gets a fresh context.
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
