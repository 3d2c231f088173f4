"""
ThesisVault API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .schemas import HealthResponse
from .routes import admin, auth, scans, theses
from .middleware import (
    setup_cors,
    setup_rate_limiting,
    setup_logging,
    setup_exception_handlers,
    RateLimitConfig,
    LoggingConfig,
    get_cors_config,
)
from .dependencies import (
    get_settings,
    get_service_container,
    init_services,
    ServiceContainer,
    Settings,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the database (creating tables) on startup and releases the
    connection pool on shutdown.
    """
    settings = app.state.settings
    logger.info(f"Starting ThesisVault in {settings.environment} mode")

    services = init_services(settings)
    app.state.services = services

    try:
        logger.info("Initializing database...")
        _ = services.database

        logger.info("ThesisVault started successfully")

        yield

    finally:
        logger.info("Shutting down ThesisVault...")
        services.close()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="ThesisVault",
        description="Thesis repository access control and smart bookshelf borrowing.",
        version=VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ==========================================================================
    # Middleware (last added = outermost)
    # ==========================================================================

    setup_exception_handlers(app)

    if settings.rate_limit_enabled:
        setup_rate_limiting(
            app,
            config=RateLimitConfig(
                requests_per_minute=settings.rate_limit_requests_per_minute,
                enabled=settings.rate_limit_enabled,
                trust_proxy_headers=settings.trust_proxy_headers,
            ),
        )

    setup_cors(app, config=get_cors_config(settings.environment))

    setup_logging(
        app,
        config=LoggingConfig(
            enabled=True,
            log_request_body=settings.debug,
        ),
        structured=settings.environment not in ("development", "test"),
    )

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"

    app.include_router(auth.router, prefix=api_prefix)
    app.include_router(theses.router, prefix=api_prefix)
    app.include_router(scans.router, prefix=api_prefix)
    app.include_router(admin.router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": "ThesisVault",
            "version": VERSION,
            "status": "running",
            "docs": "/docs" if settings.debug else None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    def health_check(
        services: ServiceContainer = Depends(get_service_container),
    ) -> HealthResponse:
        """Report database reachability and storage configuration."""

        components = {}
        overall_healthy = True

        try:
            with services.database.get_session() as session:
                session.execute(text("SELECT 1"))
            components["database"] = "healthy"
        except SQLAlchemyError as e:
            logger.error(f"Health check database failure: {e}")
            components["database"] = "unhealthy"
            overall_healthy = False

        components["pdf_storage"] = "configured" if services.settings.storage_base_url else "not_configured"

        return HealthResponse(
            status="healthy" if overall_healthy else "degraded",
            version=VERSION,
            components=components,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "thesisvault.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        workers=1 if settings.debug else 4,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
