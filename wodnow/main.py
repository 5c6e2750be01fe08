"""
wodnow/main.py — FastAPI application entry point
Builds the process-wide services (abuse gate, response cache, repository),
registers the error envelope handler, security / rate-limit header
middleware and the API routers.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from wodnow.clients.database import WorkoutRepository, create_engine_from_settings
from wodnow.config import Settings, get_settings
from wodnow.core.abuse_protection import AbuseProtectionGate
from wodnow.core.cache_manager import ResponseCache
from wodnow.core.errors import ApiError, ValidationError
from wodnow.core.logging import log_error, setup_logging
from wodnow.routers import admin, workouts

VERSION = "1.0.0"


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan: startup → yield → shutdown.
    Startup: logging, admin key check, table creation (when enabled).
    Shutdown: dispose the connection pool.
    """
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    logger.info("WOD Now API starting up...")

    if not settings.admin_api_key:
        logger.warning("ADMIN_API_KEY is not set. Every admin request will be rejected.")

    repository: WorkoutRepository = app.state.repository
    if settings.auto_create_schema:
        await repository.create_schema()

    logger.info("Startup complete.")
    yield
    await repository.dispose()
    logger.info("Shutting down WOD Now API.")


# ──────────────────────────────────────────────────────────────────────────────
# Response headers
# ──────────────────────────────────────────────────────────────────────────────

def apply_response_headers(request: Request, response: Response) -> None:
    """Security headers, plus the rate-limit headers of a request that passed the gate."""
    # set by the gate dependency once a request passes abuse protection
    for name, value in getattr(request.state, "rate_limit_headers", {}).items():
        if name not in response.headers:
            response.headers[name] = value
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if request.app.state.settings.is_production:
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )


# ──────────────────────────────────────────────────────────────────────────────
# Error envelope
# ──────────────────────────────────────────────────────────────────────────────

async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=exc.headers,
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError("Invalid request parameters")
    return await handle_api_error(request, error)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # Runs in the outermost error middleware, past add_response_headers.
    log_error("api", request.url.path, exc)
    error = ApiError()
    response = JSONResponse(status_code=error.status_code, content=error.to_body())
    apply_response_headers(request, response)
    return response


# ──────────────────────────────────────────────────────────────────────────────
# Factory
# ──────────────────────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[WorkoutRepository] = None,
    cache: Optional[ResponseCache] = None,
    gate: Optional[AbuseProtectionGate] = None,
) -> FastAPI:
    """Every stateful service is created once here and shared via app.state."""
    settings = settings or get_settings()

    app = FastAPI(
        title="WOD Now API",
        description="Random workout of the day, with admin publishing.",
        version=VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.repository = repository or WorkoutRepository(
        create_engine_from_settings(settings)
    )
    app.state.cache = cache or ResponseCache(
        ttl_seconds=settings.random_wod_cache_ttl_seconds,
        max_entries=settings.random_wod_cache_max_keys,
    )
    app.state.gate = gate or AbuseProtectionGate(settings)

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # ── Security + rate-limit headers ───────────────────────────────────────
    @app.middleware("http")
    async def add_response_headers(request: Request, call_next) -> Response:
        response = await call_next(request)
        apply_response_headers(request, response)
        return response

    # ── Routers ─────────────────────────────────────────────────────────────
    app.include_router(workouts.router, prefix="/api", tags=["workouts"])
    app.include_router(admin.router, prefix="/api", tags=["admin"])

    @app.get("/api/ping", tags=["health"])
    async def ping():
        """Health check. Ungated and does not touch the database."""
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
