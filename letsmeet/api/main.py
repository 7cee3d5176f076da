"""
FastAPI application for Let's Meet.

This is the main entry point for the HTTP API, providing:
- Availability (event) endpoints: publish, change pattern, delete, discover
- Match endpoints: list, respond, remove
- User endpoints
- Health endpoint
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException

from letsmeet import __version__
from letsmeet.api.event_routes import router as event_router
from letsmeet.api.match_routes import router as match_router
from letsmeet.api.middleware import RequestLoggingMiddleware, get_request_id
from letsmeet.api.models import HealthResponse
from letsmeet.api.user_routes import router as user_router
from letsmeet.config import get_settings
from letsmeet.database import check_connection, create_db_engine, create_session_factory, init_db
from letsmeet.exceptions import (
    InvalidParticipantError,
    NotFoundError,
    SchedulingError,
    StorageError,
    ValidationError,
)
from letsmeet.services.notifier import Notifier, build_notifier

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[SchedulingError], int] = {
    ValidationError: 400,
    InvalidParticipantError: 400,
    NotFoundError: 404,
    StorageError: 500,
}


def status_code_for(exc: SchedulingError) -> int:
    """HTTP status for a scheduling error (500 when unmapped)."""
    for error_class, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_class):
            return status_code
    return 500


# =============================================================================
# Exception Handlers
# =============================================================================


async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Render service errors as {error_type, message, retryable, details}."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"[{get_request_id()}] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"[{get_request_id()}] {request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error_type": exc.error_type,
            "message": exc.message,
            "retryable": exc.retryable,
            "details": exc.details,
        },
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are reported as 400 validation errors naming the field."""
    errors = exc.errors()
    field = "request"
    message = "Invalid request"
    if errors:
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or field
        message = first.get("msg", message)

    logger.warning(f"[{get_request_id()}] Validation error for {request.url.path}: {errors}")
    return JSONResponse(
        status_code=400,
        content={
            "error_type": ValidationError.error_type,
            "message": f"{field}: {message}",
            "retryable": False,
            "details": {"field": field},
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_type": "http_error",
            "message": exc.detail,
            "retryable": exc.status_code >= 500,
            "details": None,
        },
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error_type": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": True,
            "details": None,
        },
    )


# =============================================================================
# Health Endpoint
# =============================================================================


system_router = APIRouter(tags=["System"])


@system_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
def health_check(request: Request) -> HealthResponse:
    """
    Check API health status.

    Returns:
        Health status including database connectivity
    """
    database_connected = check_connection(request.app.state.engine)
    return HealthResponse(
        status="healthy" if database_connected else "unhealthy",
        version=__version__,
        database_connected=database_connected,
    )


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    engine: Optional[Engine] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Database engine to use (defaults to one built from settings)
        notifier: Notification channel (defaults to settings.notifier_backend)

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        settings = get_settings()
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        logger.info("Starting Let's Meet API")
        settings.validate_production_config()

        app.state.engine = engine or create_db_engine(settings=settings)
        app.state.session_factory = create_session_factory(app.state.engine)
        app.state.notifier = notifier or build_notifier(settings.notifier_backend)
        init_db(app.state.engine)
        logger.info("Let's Meet API started")

        yield

        logger.info("Shutting down Let's Meet API")
        if engine is None:
            app.state.engine.dispose()

    app = FastAPI(
        title="Let's Meet API",
        description="""
# Let's Meet API

Publish when you are free for an activity and get matched with someone who
is free for the same thing at the same time.

## Core Workflows

### Publishing availability
1. `POST /api/events` with date, time, activity and an optional recurrence pattern
2. The response carries the match when another user was already free for that slot

### Confirming a match
1. Each participant calls `PUT /api/matches/{id}/respond` with `accepted` or `declined`
2. The match is confirmed once both have accepted

## Error Handling
Errors are returned as `{error_type, message, retryable, details}`:
- **400** - Missing or invalid field, or user not part of the match
- **404** - Event, match or user not found
- **500** - Database failure (retryable)
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(system_router)
    app.include_router(event_router)
    app.include_router(match_router)
    app.include_router(user_router)

    return app


app = create_app()


# =============================================================================
# Run with Uvicorn
# =============================================================================


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: Optional[bool] = None):
    """Run the API server with Uvicorn (defaults from settings)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "letsmeet.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.api_reload if reload is None else reload,
    )


if __name__ == "__main__":
    run_server()
