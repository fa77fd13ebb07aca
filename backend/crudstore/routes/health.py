"""
crudstore — Health Check Route
==============================

What:  Health check endpoint for monitoring and container probes.
How:   Reads the stores registered on app.state and reports whether each
       has finished loading, together with its entity count.

Status levels:
    - healthy:  every collection is loaded (HTTP 200)
    - starting: at least one collection has not finished init() (HTTP 503)
"""

import time

from fastapi import APIRouter, Request, Response, status

from crudstore import __version__
from crudstore.schemas.entity import HealthResponse

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Report load state and size of every mounted collection."""
    stores = request.app.state.stores
    overall = "healthy"
    if not all(store.initialized for store in stores.values()):
        overall = "starting"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        collections={name: len(store) for name, store in stores.items()},
        uptime_seconds=round(time.time() - _start_time, 2),
    )
