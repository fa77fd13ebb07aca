"""
crudstore — Custom Exception Hierarchy
======================================

What:  Defines the errors an EntityStore can raise.
How:   Each exception class carries a message and optional context dict.
       Exception handlers (registered in main.py) catch these and return
       JSON error bodies with the matching HTTP status code.
Who:   Raised by EntityStore; caught by the global handlers.

Exception Hierarchy:
    CrudStoreError (base)
    ├── UninitializedError   → 503 Service Unavailable (store used before init)
    ├── MissingIdError       → 400 Bad Request (update/delete without an id)
    ├── NotFoundError        → 404 Not Found (no entity with that id)
    └── PersistenceError     → 500 Internal Server Error (collection file I/O failed)

A PersistenceError raised by a mutating call means the change is applied in
memory but its durability is uncertain. The in-memory mutation is not rolled
back.
"""

from typing import Any, Dict, Optional


class CrudStoreError(Exception):
    """
    Base exception for all store errors.

    Attributes:
        message:  Human-readable error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class UninitializedError(CrudStoreError):
    """Raised when a CRUD method is called before `init()` has completed."""

    def __init__(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        super().__init__(
            message=f"Trying to call {operation}() without calling init() before",
            context=ctx,
        )
        self.operation = operation


class MissingIdError(CrudStoreError):
    """
    Raised when update or delete receives an entity without a usable `id`.

    A missing or null id, and an id that is not an integer (floats, bools,
    strings), are both reported this way. Raised before any I/O happens, so
    the collection is untouched.
    """

    def __init__(
        self,
        operation: str,
        invalid_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["operation"] = operation
        message = f"Trying to {operation} an entity without an ID"
        if invalid_id is not None:
            ctx["invalid_id"] = repr(invalid_id)
            message = f"Trying to {operation} an entity with a non-integer ID {invalid_id!r}"
        super().__init__(message=message, context=ctx)
        self.operation = operation


class NotFoundError(CrudStoreError):
    """
    Raised when update or delete targets an id that is not in the collection.

    The message is returned to HTTP clients as-is, e.g.
    "No car found with the given ID 12345".
    """

    def __init__(
        self,
        resource: str = "object",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"No {resource} found"
        if resource_id is not None:
            message = f"No {resource} found with the given ID {resource_id}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource_id = resource_id


class PersistenceError(CrudStoreError):
    """
    Raised when reading or writing a collection file fails.

    During init, a failure to create the file raises this error. A failure
    to read or parse an existing file is logged and recovered from instead.
    After a mutation, the write failure surfaces to the caller (unless the
    store runs in best-effort mode).
    """

    def __init__(
        self,
        message: str = "Collection storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
