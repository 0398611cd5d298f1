"""FastAPI application entrypoint for the EduConnect API.

Run with: uvicorn main:app --reload
"""
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

# Ensure UTF-8 encoding
if sys.stdout and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from educonnect.api.routes import router
from educonnect.core.auth import TokenService
from educonnect.core.config import Settings, get_settings
from educonnect.core.errors import EduConnectError
from educonnect.core.logging import get_logger, setup_logging
from educonnect.infrastructure.database import Database
from educonnect.infrastructure.redis import get_rate_limit_storage
from educonnect.infrastructure.vertex import CompletionClient, VertexCompletionClient
from educonnect.services.accounts import CredentialStore
from educonnect.services.rate_limiter import RateLimiter

logger = get_logger(__name__)

APP_VERSION = "1.0.0"


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Rate limiter on the configured backend; Redis falls back to memory."""
    storage = None
    if settings.rate_limit_backend == "redis":
        storage = get_rate_limit_storage(settings)
        if storage is None:
            logger.warning("Redis unavailable, falling back to in-memory rate limiting")
    return RateLimiter(
        storage,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def create_app(
    settings: Optional[Settings] = None,
    completion_client: Optional[CompletionClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Build the application with its long-lived collaborators.

    Args:
        settings: Defaults to the environment-derived settings
        completion_client: Defaults to Vertex AI Gemini
        rate_limiter: Defaults to the backend named in settings
        database: Defaults to a database on ``settings.database_url``
    """
    settings = settings or get_settings()
    if settings.environment != "test":
        settings.validate_required_settings()
    setup_logging(level=settings.log_level, json_format=settings.log_json or settings.is_production)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Application starting up", extra={"operation": "startup"})
        app.state.database.create_all()
        if settings.seed_sample_data:
            with app.state.database.session() as db:
                CredentialStore(db, app.state.tokens).seed_sample_data()
        yield
        logger.info("Shutting down gracefully...")
        client = app.state.completion_client
        if hasattr(client, "close"):
            client.close()
        app.state.database.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Student/parent accounts, vocational courses and an AI mentor chat",
        version=APP_VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database or Database(settings.database_url, echo=settings.debug)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings)
    app.state.completion_client = completion_client or VertexCompletionClient(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with timing and status code."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request_logger = get_logger(__name__, {"request_id": request_id})
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            request_logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "success": False, "request_id": request_id}
            )

        duration_ms = (time.time() - start_time) * 1000
        request_logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(EduConnectError)
    async def handle_domain_error(request: Request, exc: EduConnectError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _describe_validation_error(exc), "success": False},
        )

    app.include_router(router)

    static_dir = Path(settings.static_dir)
    index_file = static_dir / "index.html"
    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.get("/", include_in_schema=False)
    def root():
        """Landing page, or basic service info when no static build is present."""
        if index_file.is_file():
            return FileResponse(index_file)
        return {
            "service": settings.app_name,
            "version": APP_VERSION,
            "status": "running",
            "environment": settings.environment,
        }

    return app


app = create_app()
