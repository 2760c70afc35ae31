"""FastAPI application entry point.

Marketplace Catalog API - product catalog CRUD, bundle reconciliation and
pass-through transcription/processing integrations.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from marketplace_api.errors import ApiError
from marketplace_api.routes import api_router
from marketplace_api.schemas import HealthResponse
from marketplace_api.services.processing_client import close_processing_client
from marketplace_api.services.transcription_client import close_transcription_client
from marketplace_api.settings import get_settings
from marketplace_api.stores.postgres import close_db, create_tables, init_db, ping_db

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    settings = get_settings()

    # Initialize database (keep serving /health if it is down)
    try:
        await init_db()
        await ping_db()
        if settings.auto_create_tables:
            await create_tables()
        logger.info(f"Database connected ({settings.database_backend})")
    except Exception:
        logger.exception("Database init failed")

    yield

    # Shutdown
    await close_processing_client()
    await close_transcription_client()
    await close_db()


def _error_body(error: str, details: object = None) -> dict[str, object]:
    body: dict[str, object] = {"error": error}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return body


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Product catalog API with bundle reconciliation",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers: every failure is { "error": str, "details"?: object }
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body("Validation failed", exc.errors()))

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception(f"{request.method} {request.url.path} storage failure")
        details = str(exc) if settings.debug else None
        return JSONResponse(status_code=500, content=_error_body("Storage operation failed", details))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"{request.method} {request.url.path} crashed")
        message = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(status_code=500, content=_error_body(message))

    # Health check endpoint
    @app.get("/health", tags=["health"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc))

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "marketplace_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
