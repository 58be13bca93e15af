"""
FastAPI Application Entry Point.

This is the main application file for the Drivers Tracking write API.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from backend.app.core.config import Settings, settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from backend.app.db.mongo import MongoConnection
from backend.app.db.ping_collection import PingStore
from backend.app.services.ping_ingestion import PingIngestionService

logger = logging.getLogger("drivers_tracking.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Connects to MongoDB and provisions the pings collection on startup.
       Any failure aborts startup; there is no degraded mode.
    2. Closes the MongoDB connection on shutdown.
    """
    connection: MongoConnection = app.state.connection
    ping_store: PingStore = app.state.ping_store

    try:
        client = await connection.connect()
        await ping_store.initialize(client)
    except Exception:
        logger.exception("Failed to start server")
        await connection.disconnect()
        raise

    yield

    await connection.disconnect()


def create_app(
    app_settings: Optional[Settings] = None,
    connection: Optional[MongoConnection] = None,
    ping_store: Optional[PingStore] = None,
) -> FastAPI:
    """Build the application with its shared store services."""
    app_settings = app_settings or settings
    configure_logging(app_settings.effective_log_level)

    # Never debug=True: Starlette would answer 500s with a plain-text traceback
    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.api_version,
        description="Accepts driver GPS pings and stores them in a MongoDB time-series collection",
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.connection = connection or MongoConnection(app_settings)
    app.state.ping_store = ping_store or PingStore(app_settings)
    app.state.ingestion_service = PingIngestionService(app.state.connection, app.state.ping_store)

    app.add_middleware(ObservabilityMiddleware)

    # Register global exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint.

        Returns:
            dict: Status and current time in epoch milliseconds
        """
        return {
            "status": "ok",
            "timestamp": int(time.time() * 1000),
        }

    # Include API v1 router
    app.include_router(api_v1_router, prefix=f"/{app_settings.api_version}")

    return app


app = create_app()
