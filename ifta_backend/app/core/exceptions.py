"""
Custom exceptions and error handlers for consistent error responses.

Provides the mileage engine error taxonomy and global exception handlers.
"""

import enum
import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("ifta.errors")


class ErrorCode(str, enum.Enum):
    """Domain error codes surfaced by the mileage engine."""
    NO_ROUTE_FOUND = "NO_ROUTE_FOUND"
    PROVIDER_COVERAGE_GAP = "PROVIDER_COVERAGE_GAP"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"  # Provider answered with an HTTP error
    INVALID_ODOMETER = "INVALID_ODOMETER"
    STALE_STATE = "STALE_STATE"
    RECONCILIATION_DISCREPANCY = "RECONCILIATION_DISCREPANCY"  # Advisory only
    LEG_NOT_FOUND = "LEG_NOT_FOUND"
    NO_LIVE_LOCATION = "NO_LIVE_LOCATION"
    INVALID_CORRECTION = "INVALID_CORRECTION"
    RECONCILIATION_NOT_FOUND = "RECONCILIATION_NOT_FOUND"


ERROR_STATUS_MAP = {
    ErrorCode.LEG_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RECONCILIATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.STALE_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_CORRECTION: status.HTTP_409_CONFLICT,
    ErrorCode.NO_ROUTE_FOUND: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.PROVIDER_COVERAGE_GAP: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NO_LIVE_LOCATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.PROVIDER_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
}


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class DomainOperationError(AppException):
    """Raised at the HTTP boundary for an unsuccessful engine operation."""

    def __init__(self, error_code: ErrorCode, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code.value,
            status_code=ERROR_STATUS_MAP.get(error_code, status.HTTP_400_BAD_REQUEST),
            details=details
        )


class RoutingProviderUnavailableError(AppException):
    """Raised when the routing provider cannot be reached (infrastructure failure)."""

    def __init__(self, message: str = "Routing provider is unavailable"):
        super().__init__(
            message=message,
            error_code="ERR_PROVIDER_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class RoutingConfigurationError(AppException):
    """Raised when the routing provider is not configured (e.g. missing API key)."""

    def __init__(self, message: str = "Routing provider API key is not configured"):
        super().__init__(
            message=message,
            error_code="ERR_CONFIG_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


# Global Exception Handlers

HTTP_ERROR_CODES = {
    400: "ERR_BAD_REQUEST",
    404: "ERR_NOT_FOUND",
    405: "ERR_METHOD_NOT_ALLOWED",
    409: "ERR_CONFLICT",
    500: "ERR_INTERNAL_SERVER",
}


def error_response(status_code: int, error_code: str, message: Any, details: Dict[str, Any] = None) -> JSONResponse:
    """Every error leaves the API as {error_code, message, details}."""
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message, "details": details or {}},
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_code, exc.message)
    return error_response(exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code = HTTP_ERROR_CODES.get(exc.status_code, "ERR_UNKNOWN")
    return error_response(exc.status_code, error_code, exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    # ctx may carry the raw exception object, which is not JSON-serializable
    errors = [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ERR_VALIDATION",
        "Validation error",
        {"errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception [%s]: %s: %s",
        getattr(request.state, "correlation_id", "-"), type(exc).__name__, exc
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "ERR_INTERNAL_SERVER",
        "An internal server error occurred",
    )
