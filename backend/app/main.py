"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from app.core.config import Settings, get_settings
from app.core.context import AppContext
from app.core.logging import setup_logging
from app.core.metrics import get_content_type, get_metrics, set_app_info
from app.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from app.modules.auth.router import router as auth_router
from app.modules.video.router import router as video_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the application context for the lifetime of the server."""
    context = AppContext.from_settings(app.state.settings)
    await context.startup()
    app.state.context = context
    try:
        yield
    finally:
        # Waits for in-flight orchestrations before closing the pool
        await context.shutdown()


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed or missing request fields as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API application.

    Args:
        settings: Settings to run with, defaults to the environment

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    environment = "development" if settings.DEBUG else "production"

    setup_logging(
        level="DEBUG" if settings.DEBUG else "INFO",
        json_format=settings.LOG_JSON,
        include_stack_trace=True,
    )
    set_app_info(version=settings.VERSION, environment=environment)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Upload videos, transcode them into quality variants and stream them with HTTP range requests.",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "auth", "description": "Registration and login"},
            {"name": "videos", "description": "Upload, catalog and streaming"},
        ],
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", tags=["health"], include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus exposition."""
        return Response(content=get_metrics(), media_type=get_content_type())

    app.include_router(auth_router, prefix=settings.API_V1_PREFIX)
    app.include_router(video_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
