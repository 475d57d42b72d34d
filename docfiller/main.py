"""FastAPI application entry point.

Main application setup with middleware, routing, error mapping and
lifecycle management.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docfiller.api.documents import router as documents_router
from docfiller.api.schemas import ErrorResponse
from docfiller.api.templates import router as templates_router
from docfiller.core.config import Settings, get_settings
from docfiller.core.factory import ComponentFactory
from docfiller.core.logging_config import setup_logging
from docfiller.interfaces.completion import CompletionError, CredentialError
from docfiller.interfaces.template import (
    FillShapeError,
    TemplateRenderError,
    TemplateValidationError,
    UnsupportedTemplateError,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, error_code: str, extra: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=detail, error_code=error_code, extra=extra).model_dump(),
    )


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    # ctx and input may hold values that are not JSON serializable
    return [{k: v for k, v in error.items() if k not in {"ctx", "input"}} for error in exc.errors()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown events for proper resource management.
    """
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting DocFiller API...")
    if not settings.template_dir.is_dir():
        logger.warning(f"Template library not found at {settings.template_dir}")
    if not (settings.openai_api_key or settings.xai_api_key):
        logger.warning("No provider API key configured; requests must supply one")

    yield

    # Shutdown
    logger.info("Shutting down DocFiller API...")
    app.state.factory.clear_cache()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings. If None, loads from environment.

    Returns:
        Configured FastAPI application instance.
    """
    try:
        settings = settings or get_settings()
        setup_logging(settings)

        app = FastAPI(
            title="DocFiller",
            description="Placeholder extraction, AI filling and rendering of Word templates",
            version="0.1.0",
            lifespan=lifespan,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        # Store settings and components in app state
        app.state.settings = settings
        app.state.factory = ComponentFactory(settings)

        # CORS middleware
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],  # Configure appropriately for production
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Include routers
        app.include_router(templates_router)
        app.include_router(documents_router)
        logger.info("Registered templates and documents routers")

        # Health check endpoint
        @app.get("/health", tags=["health"])
        async def health_check():
            """Health check endpoint for load balancers and monitoring."""
            return {
                "status": "healthy",
                "service": "docfiller-api",
                "version": "0.1.0",
            }

        # Exception handlers
        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request: Request, exc: RequestValidationError):
            """Handle Pydantic validation errors."""
            logger.warning(f"Validation error: {exc.errors()}")
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={
                    "detail": "Validation error",
                    "errors": _validation_errors(exc),
                },
            )

        @app.exception_handler(TemplateValidationError)
        async def template_validation_handler(request: Request, exc: TemplateValidationError):
            logger.info(f"Template validation failed: {exc.errors}")
            return _error(
                status.HTTP_400_BAD_REQUEST,
                "Template validation failed",
                "TEMPLATE_INVALID",
                {"errors": exc.errors},
            )

        @app.exception_handler(UnsupportedTemplateError)
        async def unsupported_template_handler(request: Request, exc: UnsupportedTemplateError):
            logger.info(f"Unsupported template layout: {exc}")
            return _error(status.HTTP_400_BAD_REQUEST, str(exc), "TEMPLATE_UNSUPPORTED")

        @app.exception_handler(TemplateRenderError)
        async def render_error_handler(request: Request, exc: TemplateRenderError):
            logger.warning(f"Template render failed: {exc.explanation}")
            return _error(
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                exc.explanation,
                "RENDER_FAILED",
                exc.details or None,
            )

        @app.exception_handler(FillShapeError)
        async def fill_shape_handler(request: Request, exc: FillShapeError):
            logger.warning(f"Invalid fill value: {exc}")
            return _error(
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                str(exc),
                "FILL_VALUE_INVALID",
                {"key": exc.key},
            )

        @app.exception_handler(CredentialError)
        async def credential_error_handler(request: Request, exc: CredentialError):
            logger.warning(f"Provider rejected credentials: {exc.provider}")
            return _error(
                status.HTTP_401_UNAUTHORIZED,
                f"The {exc.provider or 'AI'} API key was rejected. Check your API key and try again.",
                "PROVIDER_CREDENTIALS",
            )

        @app.exception_handler(CompletionError)
        async def completion_error_handler(request: Request, exc: CompletionError):
            logger.error(f"Completion provider failed: {exc}")
            return _error(
                status.HTTP_502_BAD_GATEWAY,
                str(exc),
                "PROVIDER_ERROR",
                {"provider": exc.provider, "status_code": exc.status_code},
            )

        @app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle uncaught exceptions."""
            logger.error(f"Unhandled exception: {exc}", exc_info=True)
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "INTERNAL_ERROR",
            )

        logger.info("FastAPI application created successfully")
        return app

    except Exception as e:
        logger.error(f"Failed to create FastAPI app: {e}", exc_info=True)
        raise


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logger.info("Starting uvicorn server on port 8000...")
    uvicorn.run(
        "docfiller.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
