"""
Placement Ledger API - FastAPI Application

Main entry point for the API server.
Run with: uvicorn api.main:app --reload
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.config.settings import settings
from api.config.database import Database
from api.endpoints import api_router
from api.middleware.auth import AuthMiddleware
from api.middleware.error_handler import setup_exception_handlers
from api.middleware.logging import LoggingMiddleware, configure_logging

# Configure structured logging
configure_logging(settings.LOG_LEVEL)
logger = structlog.get_logger()


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    Args:
        database: Pre-built database (tests pass an in-memory one). When
            omitted, one is built from settings at startup and disposed at
            shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info(
            "Starting Placement Ledger API",
            version=settings.APP_VERSION,
            debug=settings.DEBUG,
        )

        owns_database = database is None
        if owns_database:
            app.state.database = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

        # Initialize database tables (in dev mode)
        if settings.DEBUG or app.state.database.url.startswith("sqlite"):
            logger.info("Initializing database tables")
            app.state.database.create_all()

        yield

        # Shutdown
        logger.info("Shutting down Placement Ledger API")
        if owns_database:
            app.state.database.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Placement fees, candidate check-ins and circumvention tracking",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        openapi_url="/api/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    if database is not None:
        app.state.database = database

    # Setup exception handlers
    setup_exception_handlers(app)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add authentication middleware
    app.add_middleware(AuthMiddleware)

    # Add logging middleware (added last, so it wraps auth and sees the decoded user)
    app.add_middleware(LoggingMiddleware)

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    # Root health endpoint (for ALB)
    @app.get("/health")
    async def root_health():
        """Simple health check for load balancer."""
        return {"status": "ok", "version": settings.APP_VERSION}

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/api/docs" if settings.DEBUG else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
