"""
StackIt Backend — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers, routers and the
       consistency engine; lifespan() starts and stops the notification
       writer and disposes the database engine.
Who:   uvicorn app.main:app

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │  Middleware:  Rate Limit → Request ID → Logging → CORS    │
    │                                                           │
    │  Routes:  votes │ questions │ users │ notifications │ /health
    │                │                                          │
    │                ▼                                          │
    │  ConsistencyEngine ──▶ UnitOfWork ──▶ SqlAlchemyRepository│
    │                │                                          │
    │                └──▶ QueueNotificationSink (worker task)   │
    │                                                           │
    │  Exception Handlers:                                      │
    │   400 validation/self-action/nothing-accepted             │
    │   401 unauthorized │ 403 forbidden │ 404 not found        │
    │   409 conflict │ 500 database/unexpected                  │
    └───────────────────────────────────────────────────────────┘
    429 responses are written by RateLimitMiddleware itself; exceptions
    raised in BaseHTTPMiddleware never reach these handlers.

Lifecycle:
    Startup:  logging → config validation → notification writer → retention purge
    Shutdown: drain notification writer → dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app import __version__
from app.config import settings
from app.database import async_session_factory, dispose_engine
from app.exceptions import (
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NothingAcceptedError,
    NotFoundError,
    SelfActionError,
    StackItError,
    UnauthorizedError,
    ValidationError,
    WriteConflictError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import health, notifications, questions, users, votes
from app.services.consistency_engine import ConsistencyEngine
from app.services.notification_service import notification_service
from app.services.notification_sink import QueueNotificationSink
from app.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure root logging once, before anything else logs.

    Format: 2024-01-15T12:00:00 [INFO] app.services.consistency_engine: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("StackIt Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    sink: QueueNotificationSink = app.state.notification_sink
    await sink.start()

    try:
        async with async_session_factory() as session:
            async with session.begin():
                await notification_service.purge_older_than(session)
    except SQLAlchemyError as e:
        logger.warning("Notification retention purge skipped: %s", str(e))

    logger.info(
        "Reputation deltas: upvote %+d, downvote %+d, accept %+d",
        settings.reputation_upvote,
        settings.reputation_downvote,
        settings.reputation_accept,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("StackIt Backend shutting down...")
    await sink.stop()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[Dict[str, Any]] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map StackItError subclasses to HTTP responses.

    Starlette resolves handlers along the exception's MRO, so SelfVoteError
    lands on the SelfActionError handler and WriteConflictError has its own
    handler ahead of ConflictError.

    Client errors (4xx) echo the exception context as `details`; server
    errors never do. The context is always logged.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=400, content=_error_body("validation_error", exc.message, exc.context))

    @app.exception_handler(SelfActionError)
    async def handle_self_action(request: Request, exc: SelfActionError):
        return JSONResponse(status_code=400, content=_error_body("self_action", exc.message, exc.context))

    @app.exception_handler(NothingAcceptedError)
    async def handle_nothing_accepted(request: Request, exc: NothingAcceptedError):
        return JSONResponse(status_code=400, content=_error_body("nothing_accepted", exc.message, exc.context))

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        return JSONResponse(status_code=401, content=_error_body("unauthorized", exc.message, exc.context))

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("[%s] Forbidden: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=403, content=_error_body("forbidden", exc.message))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body("not_found", exc.message))

    @app.exception_handler(WriteConflictError)
    async def handle_write_conflict(request: Request, exc: WriteConflictError):
        logger.warning("[%s] Write conflict after retries: %s", request_id_var.get(""), exc.operation)
        return JSONResponse(
            status_code=409,
            content=_error_body("write_conflict", exc.message, exc.context),
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return JSONResponse(status_code=409, content=_error_body("conflict", exc.message, exc.context))

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(StackItError)
    async def handle_stackit_error(request: Request, exc: StackItError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="StackIt API",
        description=(
            "Voting, answer acceptance and reputation for the StackIt Q&A site. "
            "Every operation is atomic and safe to retry."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Built eagerly (no I/O); the lifespan only starts the writer task
    sink = QueueNotificationSink(async_session_factory)
    app.state.notification_sink = sink
    app.state.engine = ConsistencyEngine(UnitOfWork(async_session_factory), sink)

    # Middleware executes in reverse order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(votes.router)
    app.include_router(questions.router)
    app.include_router(users.router)
    app.include_router(notifications.router)
    app.include_router(health.router)

    return app


app = create_app()
