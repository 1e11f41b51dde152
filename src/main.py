"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import error_handler_middleware, validation_exception_handler
from src.api.middleware.request_logging import request_logging_middleware
from src.api.routes import checkout, health, products, webhooks
from src.core.config import get_settings
from src.core.stripe import configure_stripe
from src.services.checkout_store import init_checkout_store, shutdown_checkout_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    # Startup
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    # Configure Stripe SDK
    configure_stripe()
    logger.info("Stripe SDK configured")

    # Initialize checkout store with expiry sweep
    store = await init_checkout_store()
    logger.info("Checkout store initialized (%s)", store.backend)

    yield
    # Shutdown
    await shutdown_checkout_store()
    logger.info("Checkout store shutdown")
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="ACP Checkout API",
        description="Agentic Commerce Protocol checkout backend",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request body validation errors use the standard error format
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Add error handler middleware (catches all errors raised by routes)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add request logging middleware (outermost - assigns request ids)
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    # Create API v1 router for versioned endpoints
    api_v1_router = APIRouter(prefix="/api/v1")

    # ACP checkout routes
    api_v1_router.include_router(checkout.router)

    # Catalog routes
    api_v1_router.include_router(products.router)

    # Webhook routes
    api_v1_router.include_router(webhooks.router)

    app.include_router(api_v1_router)

    return app


# Create application instance
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
