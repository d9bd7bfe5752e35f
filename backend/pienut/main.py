"""Pienut — thin MVC layer with a declarative request Validator.

Main FastAPI application with lifespan management, CORS, and global error handling.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pienut.config import get_settings
from pienut.api.router import api_router
from pienut.api.users import build_user_validators
from pienut.models.responses import ErrorResponse
from pienut.services.record_store import InMemoryRecordStore, RedisRecordStore
from pienut.validation import ConstraintCheckError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().APP_DEBUG else structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()


def _error_response(status: int, message: str, errors: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(status=status, message=message, errors=errors)
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def _public_message(status: int, message: str) -> str:
    """5xx details are shown only in debug mode."""
    if status // 100 == 5 and not get_settings().APP_DEBUG:
        return "Internal server error"
    return message


def create_app(record_store=None) -> FastAPI:
    """Build the application. Pass ``record_store`` to skip Redis (tests, local dev)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown lifecycle."""
        settings = get_settings()

        # ── Startup ──
        logger.info("app_starting", debug=settings.APP_DEBUG)

        redis_client = None
        store = record_store
        if store is None and settings.REDIS_URL:
            redis_client = aioredis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                encoding="utf-8",
            )
            try:
                await redis_client.ping()
                logger.info("redis_connected", url=settings.REDIS_URL)
            except Exception as e:
                # App can still start — uniqueness checks will answer 503
                logger.error("redis_connection_failed", error=str(e))
            store = RedisRecordStore(redis_client, prefix=settings.RECORD_KEY_PREFIX)
        elif store is None:
            logger.warning("record_store_in_memory")
            store = InMemoryRecordStore()

        app.state.record_store = store
        # Rule specs compile here; a malformed spec stops startup
        app.state.validators = build_user_validators(store)

        logger.info("app_started", record_store=type(store).__name__)

        yield

        # ── Shutdown ──
        logger.info("app_shutting_down")

        if redis_client is not None:
            await redis_client.aclose()
            logger.info("redis_disconnected")

        logger.info("app_stopped")

    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Thin MVC layer with a declarative, rule-based request Validator.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── Middleware ──

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception Handlers ──

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Render HTTP errors in the standard envelope."""
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error_response(404, f"Route [{request.url.path}] not found")

        if isinstance(exc.detail, dict):
            message = exc.detail.get("message", "Request failed")
            errors = exc.detail.get("errors")
        else:
            message, errors = str(exc.detail), None
        return _error_response(exc.status_code, _public_message(exc.status_code, message), errors)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies (not a JSON object) never reach the Validator."""
        return _error_response(422, "Request body must be a JSON object")

    @app.exception_handler(ConstraintCheckError)
    async def constraint_check_handler(request: Request, exc: ConstraintCheckError):
        """The record store could not answer — not the client's fault."""
        logger.error(
            "constraint_check_unavailable",
            path=request.url.path,
            collection=exc.collection,
            field=exc.field,
            error=str(exc),
        )
        return _error_response(503, _public_message(503, str(exc)))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all error handler for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return _error_response(500, _public_message(500, str(exc)))

    # ── Routes ──

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint — API info."""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


app = create_app()
