"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timesheet_engine.api.rate_limit import RateLimitExceeded, SlidingWindowRateLimiter
from timesheet_engine.api.routes import (
    email_router,
    employees_router,
    health_router,
    me_router,
    reports_router,
    settings_router,
    time_entries_router,
)
from timesheet_engine.config import Settings, configure_logging, get_settings
from timesheet_engine.database import create_all, dispose_db
from timesheet_engine.notifications import Mailer, build_mailer
from timesheet_engine.services.errors import (
    EmployeeNotFoundError,
    EntryNotFoundError,
    EntryValidationError,
    InvalidInputError,
    InvalidTransitionError,
    NoPendingRequestError,
    PermissionDeniedError,
    PersistenceError,
    TimesheetError,
)

logger = logging.getLogger(__name__)

_STATUS_FOR_ERROR: list[tuple[type[TimesheetError], int]] = [
    (EntryValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (NoPendingRequestError, status.HTTP_409_CONFLICT),
    (EntryNotFoundError, status.HTTP_404_NOT_FOUND),
    (EmployeeNotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    if app.state.session_factory is None:
        await create_all()
    yield
    # Shutdown
    if app.state.session_factory is None:
        await dispose_db()


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    mailer: Mailer | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``session_factory``, ``mailer`` and ``clock`` default to the
    configured database, email provider and wall clock.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Timesheet Engine API",
        description="Employee time tracking and payroll reporting",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.mailer = mailer or build_mailer(settings)
    app.state.clock = clock
    app.state.rate_limiter = SlidingWindowRateLimiter(
        settings.rate_limit_requests, settings.rate_limit_window
    )
    app.state.missing_clock_out_alerts = {}

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(TimesheetError)
    async def timesheet_exception_handler(
        request: Request, exc: TimesheetError
    ) -> JSONResponse:
        """Map domain errors to HTTP status codes."""
        for error_type, status_code in _STATUS_FOR_ERROR:
            if isinstance(exc, error_type):
                break
        else:
            status_code = status.HTTP_400_BAD_REQUEST
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.warning("Rate limit exceeded for %s on %s", exc.client_ip, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"success": False, "error": str(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(email_router, prefix="/api/email")
    app.include_router(me_router, prefix="/api/v1")
    app.include_router(time_entries_router, prefix="/api/v1")
    app.include_router(employees_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1")
    app.include_router(settings_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
