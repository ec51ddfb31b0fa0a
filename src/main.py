"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import error_handler_middleware, validation_exception_handler
from src.api.middleware.latency_logging import latency_logging_middleware
from src.api.middleware.request_size import request_size_limit_middleware
from src.api.routes import health, webhooks
from src.api.routes.checkout import orders_router, router as checkout_router
from src.core.clients import Clients, build_clients
from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the Stripe and Supabase clients once, unless they were supplied
    to ``create_app``.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    # Startup
    settings: Settings = app.state.settings
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    if app.state.clients is None:
        app.state.clients = build_clients(settings)
        logger.info("Stripe and Supabase clients initialized")

    yield
    # Shutdown
    logger.info("Shutting down %s", settings.app_name)


def create_app(settings: Settings | None = None, clients: Clients | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment if omitted.
        clients: Pre-built clients; built at startup if omitted.

    Returns:
        FastAPI: Configured application instance.
    """
    if settings is None:
        settings = clients.settings if clients else get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Checkout Bridge API",
        description="Stripe checkout and order materialization backend for the storefront",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clients = clients

    # Middleware added last runs first.
    # Add error handler middleware (innermost - formats errors raised by routes)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (sees the formatted status code)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_middleware)

    # Add request size limit middleware (rejects oversized requests early)
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    # Configure CORS (outermost so error responses carry CORS headers too)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    api_router = APIRouter(prefix="/api")
    api_router.include_router(checkout_router)
    api_router.include_router(orders_router)
    api_router.include_router(webhooks.router)
    app.include_router(api_router)

    return app


# Create application instance; missing required settings abort startup here
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
