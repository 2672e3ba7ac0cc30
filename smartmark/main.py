import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import (
    DatabaseError,
    DBAPIError,
    OperationalError,
)
from sqlalchemy.exc import (
    TimeoutError as SQLAlchemyTimeoutError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

from smartmark.api import auth, bookmarks, dashboard
from smartmark.db.connection import dispose_engine, get_database_url, get_engine
from smartmark.db.models import Base
from smartmark.realtime.feed import close_change_feed, get_change_feed
from smartmark.schemas.error import ErrorType, ValidationErrorDetail
from smartmark.services.identity import IdentityProviderError, close_identity_provider
from smartmark.settings import AppSettings, get_settings
from smartmark.utils.error_responses import (
    STATUS_ERROR_TYPES,
    build_error_response,
    build_validation_error_response,
    error_json_response,
)
from smartmark.utils.request_context import REQUEST_ID_HEADER, get_request_id, set_request_id
from smartmark.warmup import warmup_all

settings = get_settings()

logging.basicConfig(
    level=settings.log_level_numeric,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _validate_environment(active_settings: AppSettings | None = None) -> None:
    """Log warnings for optional configuration that is missing."""
    warnings = (active_settings or get_settings()).optional_config_warnings()
    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning("  • %s", warning)
        logger.warning("=" * 60)


def _sanitize_database_url(url: str) -> str:
    """Sanitize database URL to hide password in logs."""
    if "://" not in url:
        return url

    scheme, rest = url.split("://", 1)
    if "@" in rest:
        auth_part, host_db = rest.split("@", 1)
        if ":" in auth_part:
            user, _ = auth_part.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
        return f"{scheme}://{auth_part}@{host_db}"
    return url


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    _validate_environment()
    current = get_settings()

    logger.info("=" * 60)
    logger.info("Smartmark API - Preflight Check")
    logger.info("=" * 60)
    logger.info("Database Type: %s", current.database_type.upper())
    logger.info("Database URL: %s", _sanitize_database_url(get_database_url(current)))
    logger.info("Change feed broker: %s", current.feed_backend)
    logger.info("Identity provider: %s", current.auth_url or "NOT CONFIGURED")

    if current.database_type == "sqlite":
        logger.info("SQLite mode - creating tables if missing")
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    else:
        logger.info("PostgreSQL mode - using Alembic migrations (run: alembic upgrade head)")
    logger.info("=" * 60)

    await warmup_all(resolve_engine=get_engine, resolve_feed=get_change_feed)

    yield

    logger.info("Shutting down Smartmark API")
    await close_change_feed()
    await close_identity_provider()
    await dispose_engine()


app = FastAPI(
    title="Smartmark API",
    version="0.1.0",
    description="Personal bookmarks with live synchronisation across sessions.",
    lifespan=lifespan,
    redirect_slashes=False,
)


def _default_origins() -> list[str]:
    origins = []
    for host in ("localhost", "127.0.0.1"):
        origins.extend(f"http://{host}:{port}" for port in (3000, 5173, 8000))
    return origins


allow_origins = list(dict.fromkeys(_default_origins() + settings.cors_allow_origins))
logger.debug("Configured CORS allow_origins: %s", ", ".join(allow_origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    set_request_id(request_id)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render ``HTTPException`` raised by routers and dependencies."""
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    error_type = STATUS_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_ERROR)

    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "HTTP %s for request %s to %s: %s",
        exc.status_code,
        get_request_id(),
        request.url.path,
        message,
    )

    response = error_json_response(
        build_error_response(
            error_type=error_type,
            error=message,
            message=message,
            detail=None,
            status_code=exc.status_code,
            path=str(request.url.path),
        )
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle malformed request bodies as invalid input (400)."""
    errors = [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning(
        "Validation error for request %s to %s: %s errors",
        get_request_id(),
        request.url.path,
        len(errors),
    )

    return error_json_response(
        build_validation_error_response(
            error="Invalid request",
            message="Request validation failed",
            detail=f"{len(errors)} validation error(s)",
            status_code=status.HTTP_400_BAD_REQUEST,
            path=str(request.url.path),
            errors=errors,
        )
    )


@app.exception_handler(IdentityProviderError)
async def identity_provider_exception_handler(request: Request, exc: IdentityProviderError):
    """Handle an unreachable or failing identity provider."""
    logger.error(
        "Identity provider error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    return error_json_response(
        build_error_response(
            error_type=ErrorType.NETWORK_ERROR,
            error="Authentication service unavailable",
            message="Unable to verify the session",
            detail="The identity provider could not be reached. Please try again later.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            path=str(request.url.path),
            retry_after=5,
        )
    )


@app.exception_handler(OperationalError)
@app.exception_handler(DBAPIError)
async def database_connection_exception_handler(request: Request, exc: Exception):
    """Handle database connection errors."""
    logger.error(
        "Database connection error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    return error_json_response(
        build_error_response(
            error_type=ErrorType.DATABASE_ERROR,
            error=INTERNAL_ERROR_MESSAGE,
            message="Database connection failed",
            detail="Unable to connect to the database. Please try again later.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            path=str(request.url.path),
            retry_after=5,
        )
    )


@app.exception_handler(SQLAlchemyTimeoutError)
async def database_timeout_exception_handler(request: Request, exc: SQLAlchemyTimeoutError):
    """Handle pool checkout and query timeouts."""
    logger.error(
        "Database timeout error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    return error_json_response(
        build_error_response(
            error_type=ErrorType.TIMEOUT_ERROR,
            error=INTERNAL_ERROR_MESSAGE,
            message="Database query timeout",
            detail="No database connection became available in time. Please try again.",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            path=str(request.url.path),
            retry_after=3,
        )
    )


@app.exception_handler(DatabaseError)
async def database_generic_exception_handler(request: Request, exc: DatabaseError):
    """Handle generic database errors."""
    logger.error(
        "Database error for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        str(exc),
    )

    return error_json_response(
        build_error_response(
            error_type=ErrorType.DATABASE_ERROR,
            error=INTERNAL_ERROR_MESSAGE,
            message="Database operation failed",
            detail="An error occurred while accessing the database.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            path=str(request.url.path),
        )
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handle all other unhandled exceptions."""
    logger.exception(
        "Unhandled exception for request %s to %s: %s",
        get_request_id(),
        request.url.path,
        type(exc).__name__,
    )

    return error_json_response(
        build_error_response(
            error_type=ErrorType.INTERNAL_ERROR,
            error=INTERNAL_ERROR_MESSAGE,
            message=INTERNAL_ERROR_MESSAGE,
            detail=f"An unexpected error occurred: {type(exc).__name__}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            path=str(request.url.path),
            retry_after=5,
        )
    )


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    """Simple health endpoint for readiness checks."""
    return {"status": "ok"}


app.include_router(bookmarks.router, prefix="/api/bookmarks", tags=["bookmarks"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
