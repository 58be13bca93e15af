"""
Custom exceptions and error handlers for consistent error responses.

Clients only ever see three outcomes: 201 (accepted), 400 (malformed ping)
or 500 (opaque internal fault). Store failures keep their driver error as
``__cause__`` so the log shows the full chain.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.observability import correlation_id_of

logger = logging.getLogger("drivers_tracking.errors")

INVALID_BODY_MESSAGE = "Invalid request body"
INTERNAL_ERROR_MESSAGE = "Internal server error"


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details if details is not None else {}
        super().__init__(message)


class PingValidationError(AppException):
    """Raised when an inbound ping does not match the Ping shape."""

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__(
            message=INVALID_BODY_MESSAGE,
            error_code="ERR_VALIDATION",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=errors,
        )


class StoreNotReadyError(AppException):
    """Raised when the ping collection is read before provisioning completed."""

    def __init__(self, message: str = "Ping collection not initialized. Call initialize() first."):
        super().__init__(
            message=message,
            error_code="ERR_STORE_NOT_READY",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class StoreConnectionError(AppException):
    """Raised when the backing store cannot be reached."""

    def __init__(self, message: str = "MongoDB connection failed"):
        super().__init__(
            message=message,
            error_code="ERR_STORE_CONNECTION",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class StoreProvisioningError(AppException):
    """Raised when the ping collection cannot be listed or created."""

    def __init__(self, collection: str):
        super().__init__(
            message=f"Failed to initialize {collection} collection",
            error_code="ERR_STORE_PROVISIONING",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"collection": collection},
        )


class StoreWriteError(AppException):
    """Raised when an insert fails after the connection was established."""

    def __init__(self, collection: str, driver_id: Optional[str] = None):
        super().__init__(
            message=f"Failed to write to {collection} collection",
            error_code="ERR_STORE_WRITE",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"collection": collection, "driver_id": driver_id},
        )


def _invalid_body_response(errors: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": INVALID_BODY_MESSAGE,
            "details": jsonable_encoder(errors),
        },
    )


def _internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
    )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if isinstance(exc, PingValidationError):
        return _invalid_body_response(exc.details)

    correlation_id = correlation_id_of(request)
    logger.error(
        "%s %s failed [%s]: %s (%s)",
        request.method,
        request.url.path,
        correlation_id,
        exc.message,
        exc.error_code,
        exc_info=exc,
        extra={"correlation_id": correlation_id, "error_code": exc.error_code},
    )
    return _internal_error_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for request body validation errors."""
    return _invalid_body_response(exc.errors())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    correlation_id = correlation_id_of(request)
    logger.error(
        "Unhandled exception on %s %s [%s]: %s",
        request.method,
        request.url.path,
        correlation_id,
        type(exc).__name__,
        exc_info=exc,
        extra={"correlation_id": correlation_id},
    )
    return _internal_error_response()
