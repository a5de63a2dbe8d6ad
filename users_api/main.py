"""Users API - FastAPI Application."""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from users_api import __version__
from users_api.boot import Bootloader, BootMode
from users_api.config import settings
from users_api.database import engine, get_db, init_db
from users_api.logger import bind_request_context, configure_logging, current_request_id, get_logger
from users_api.routers import auth, users

# Initialize logging early
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - validate environment and init DB on startup."""
    # Will sys.exit(1) if the database is unreachable
    await Bootloader.validate(mode=BootMode.CRITICAL)
    Bootloader.print_config()

    await init_db()
    logger.info("Application started", version=__version__)
    yield
    await engine.dispose()
    logger.info("Application shutting down")


app = FastAPI(
    title="Users API",
    description="User registration, JWT login and self-service profile management",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next: Any) -> Response:
    """Bind a request id to the logging context and log each request once."""
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    bind_request_context(request_id, request.method, request.url.path)

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception(
            "HTTP Request Failed",
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            error=str(exc),
        )
        raise

    logger.info(
        "HTTP Request",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{field, message}`` pairs."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        # Drop the "body"/"path"/"query" prefix when a field name follows it
        field = ".".join(location[1:]) if len(location) > 1 else ".".join(location)
        ctx_error = (error.get("ctx") or {}).get("error")
        message = str(ctx_error) if error.get("type") == "value_error" and ctx_error else error["msg"]
        errors.append({"field": field, "message": message})
    return errors


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report every validation failure at once with status 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": _format_validation_errors(exc)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as ``{"error": ...}`` bodies."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    elif exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        # Raised by routing when no path matches
        content = {"error": "Route not found"}
    else:
        content = {"error": exc.detail}

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render anything the routers did not handle as a JSON 500."""
    # Already logged with its traceback by logging_middleware
    request_id = current_request_id()
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "request_id": request_id,
        },
        headers={"X-Request-ID": request_id} if request_id else None,
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

app.include_router(auth.router)
app.include_router(users.router)


@app.get("/")
async def index() -> dict[str, Any]:
    """List the available endpoints."""
    return {
        "message": "Users API",
        "version": __version__,
        "endpoints": {
            "auth": {
                "register": "POST /api/auth/register",
                "login": "POST /api/auth/login",
            },
            "users": {
                "getAll": "GET /api/users (protected)",
                "getOne": "GET /api/users/:id (protected)",
                "update": "PUT /api/users/:id (protected)",
                "delete": "DELETE /api/users/:id (protected)",
            },
        },
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)) -> Response:
    """Check application health status.

    Returns 200 if the database answers, 503 otherwise.
    """
    checks = {}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as exc:
        logger.error(
            "Health check: database unreachable",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        checks["database"] = False

    all_healthy = all(checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if all_healthy else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
            "version": __version__,
        },
    )


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "users_api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
