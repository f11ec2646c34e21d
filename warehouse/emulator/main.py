"""FastAPI application for the local receipt validation emulator."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from warehouse import __version__
from warehouse.emulator.middleware import EnvironmentContextMiddleware, RequestLoggingMiddleware
from warehouse.emulator.receipt_emulator import ReceiptEmulator
from warehouse.logging_config import configure_logging_from_env, get_logger
from warehouse.models import EmulatorSettings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("emulator_starting", version=__version__)
    try:
        yield
    finally:
        logger.info("emulator_stopped")


def _load_emulator_settings() -> EmulatorSettings:
    """Emulator settings from warehouse.yaml, or defaults when it is absent."""
    from warehouse.config import Config
    from warehouse.exceptions import ConfigurationError

    try:
        return Config(os.getenv("WAREHOUSE_CONFIG")).emulator_settings
    except ConfigurationError as e:
        logger.warning("emulator_config_unavailable", error=str(e), message="Using defaults")
        return EmulatorSettings()


def create_app(settings: Optional[EmulatorSettings] = None) -> FastAPI:
    """Create and configure the emulator application.

    Args:
        settings: Emulator settings; loaded from configuration when omitted
    """
    app = FastAPI(
        title="Receipt Validation Emulator",
        description="Local emulator of the App Store verifyReceipt service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.receipt_emulator = ReceiptEmulator(settings or _load_emulator_settings())

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(EnvironmentContextMiddleware)

    from warehouse.emulator.routes import control_router, router

    app.include_router(router)
    app.include_router(control_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        emulator: ReceiptEmulator = app.state.receipt_emulator
        return {
            "status": "healthy",
            "service": "receipt-emulator",
            "version": __version__,
            "forced_statuses": str(len(emulator.pending_statuses())),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app


def create_app_from_env() -> FastAPI:
    """uvicorn factory: configure logging from the environment, then build the app."""
    configure_logging_from_env()
    return create_app()
