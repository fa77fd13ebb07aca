"""
crudstore — FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() builds one EntityStore per configured collection, mounts
       a CRUD router for each, and registers middleware and exception
       handlers. The lifespan loads every collection before serving.
Who:   Called by uvicorn (uvicorn crudstore.main:app) or `python -m crudstore`.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────┐ ┌──────┐              │
    │  │ Req ID   │→│  Logging    │→│ CORS │              │
    │  └──────────┘ └─────────────┘ └──────┘              │
    │                                                     │
    │  Routes:                                            │
    │  ┌─────────────────────────┐ ┌─────────────────┐    │
    │  │ /<collection>[/{id}]    │ │ GET /health     │    │
    │  └─────────────────────────┘ └─────────────────┘    │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ MissingId→400 │ NotFound→404 │ Persist→500   │   │
    │  │ Uninitialized→503                            │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. init() every store (creates missing collection files, loads the rest)

    Shutdown:
    Nothing to release. Every mutation has already been written.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crudstore import __version__
from crudstore.config import Settings, settings
from crudstore.exceptions import (
    CrudStoreError,
    MissingIdError,
    NotFoundError,
    PersistenceError,
    UninitializedError,
)
from crudstore.middleware.logging import RequestLoggingMiddleware
from crudstore.middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    request_id_var,
)
from crudstore.routes import health
from crudstore.routes.crud import make_crud_router
from crudstore.services.entity_store import EntityStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

async def init_stores(app: FastAPI) -> None:
    """
    Load every collection registered on `app`.

    Safe to call more than once: EntityStore.init() ignores repeated calls.
    """
    storage_root = app.state.settings.storage_root
    for name, store in app.state.stores.items():
        await store.init(name, storage_root)
        logger.info("Collection '%s' ready at %s (%d entities)", name, store.file_path, len(store))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: logging, then load all collections. Shutdown: log only."""
    app_settings: Settings = app.state.settings
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("crudstore %s starting up...", __version__)
    logger.info("Storage root: %s", app_settings.storage_root)
    if app_settings.best_effort_writes:
        logger.warning(
            "Durability mode is best_effort: failed writes are logged, not reported to clients"
        )

    await init_stores(app)

    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("crudstore shutting down. Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map store exceptions to HTTP status codes.

    Handler hierarchy:
        MissingIdError      → 400 Bad Request
        NotFoundError       → 404 Not Found
        PersistenceError    → 500 Internal Server Error (generic message)
        UninitializedError  → 503 Service Unavailable
        CrudStoreError      → 500 Internal Server Error
        Exception           → 500 Internal Server Error

    Every body has the shape {"error": <message>, "request_id": <id>}.
    """

    def error_body(message: str) -> dict:
        return {"error": message, "request_id": request_id_var.get("")}

    @app.exception_handler(MissingIdError)
    async def handle_missing_id(request: Request, exc: MissingIdError):
        logger.warning("[%s] %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=400, content=error_body(exc.message))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body(exc.message))

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(request: Request, exc: PersistenceError):
        """Write failed. The change is applied in memory; details are logged only."""
        logger.error(
            "[%s] Persistence error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return JSONResponse(status_code=500, content=error_body(exc.message))

    @app.exception_handler(UninitializedError)
    async def handle_uninitialized(request: Request, exc: UninitializedError):
        logger.error("[%s] %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=error_body("The collection is still loading. Please retry shortly."),
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(CrudStoreError)
    async def handle_store_error(request: Request, exc: CrudStoreError):
        logger.error("[%s] Store error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all. The stack trace is logged server-side only."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        # Runs outside RequestIDMiddleware, which never gets to set the header
        return JSONResponse(
            status_code=500,
            content=error_body("An unexpected error occurred."),
            headers={REQUEST_ID_HEADER: rid} if rid else None,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the module-level `settings`
                      (tests pass one pointing at a temporary storage root).

    Returns:
        A FastAPI app whose stores are available as `app.state.stores`
        (collection name → EntityStore). The stores are loaded by the lifespan.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="crudstore",
        description="REST CRUD over schema-less entities, one JSON file per collection.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.stores = {
        name: EntityStore(best_effort_writes=app_settings.best_effort_writes)
        for name in app_settings.collections_list
    }

    # Middleware executes in reverse order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    for name, store in app.state.stores.items():
        app.include_router(make_crud_router(name, store))

    return app


def run() -> None:
    """Serve the module-level app with uvicorn on the configured host/port."""
    uvicorn.run(
        app,
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


# uvicorn expects `crudstore.main:app` to be importable
app = create_app()
