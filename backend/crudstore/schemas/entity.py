"""
crudstore — Pydantic Response Schemas
=====================================

What:  Pydantic models for the fixed-shape responses (errors, health).
Why:   Entities are schema-less, so CRUD routes return plain dicts. The
       models here document the other payloads in the OpenAPI docs.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    What:  Body returned with every 4xx/5xx produced by the exception handlers.

    Example:
        {"error": "No object found with the given ID 12345", "request_id": "a1b2c3d4"}
    """
    error: str = Field(description="Human-readable error message")
    request_id: Optional[str] = Field(
        default=None,
        description="Correlation ID, also sent in the X-Request-ID header",
    )


class HealthResponse(BaseModel):
    """Returned by GET /health."""
    status: str = Field(description="healthy once every collection is loaded, otherwise starting")
    version: str = Field(description="Package version")
    collections: Dict[str, int] = Field(
        description="Entity count per mounted collection"
    )
    uptime_seconds: float = Field(description="Seconds since the process started")
