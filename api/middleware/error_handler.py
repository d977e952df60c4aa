"""
Error Handler Middleware

Global error handling for consistent API responses.
"""

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from services.errors import (
    AuditError,
    ConfigurationError,
    ExtractionError,
    MalformedResponse,
    NotFound,
    StoreError,
    UnsupportedFormat,
    UpstreamUnavailable,
    UsageLimitExceeded,
)

logger = logging.getLogger("bid_audit.api.errors")


class APIError(Exception):
    """Base API error with status code and error code."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR"
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class AuthenticationError(APIError):
    """Authentication error."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, 401, "AUTH_REQUIRED")


class AuthorizationError(APIError):
    """Authorization error."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message, 403, "PERMISSION_DENIED")


# Most specific classes first; lookup walks this list in order
AUDIT_ERROR_STATUS = [
    (UsageLimitExceeded, status.HTTP_402_PAYMENT_REQUIRED, "USAGE_LIMIT_EXCEEDED"),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE, "CONFIGURATION_ERROR"),
    (UpstreamUnavailable, status.HTTP_502_BAD_GATEWAY, "UPSTREAM_UNAVAILABLE"),
    (MalformedResponse, status.HTTP_502_BAD_GATEWAY, "MALFORMED_RESPONSE"),
    (UnsupportedFormat, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "UNSUPPORTED_FORMAT"),
    (ExtractionError, status.HTTP_422_UNPROCESSABLE_ENTITY, "EXTRACTION_ERROR"),
    (NotFound, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (StoreError, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORE_ERROR"),
]


def status_for(exc: AuditError) -> tuple[int, str]:
    """HTTP status and error code for an audit error."""
    for error_class, status_code, error_code in AUDIT_ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code, error_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "AUDIT_ERROR"


def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def setup_error_handlers(app: FastAPI):
    """
    Set up global error handlers for the application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        """Handle custom API errors."""
        logger.warning(f"API Error: {exc.error_code} - {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message)
        )

    @app.exception_handler(AuditError)
    async def audit_error_handler(request: Request, exc: AuditError):
        """Handle audit engine errors."""
        status_code, error_code = status_for(exc)
        log_level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(log_level, f"Audit Error: {error_code} - {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content=_error_body(error_code, exc.message)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("HTTP_ERROR", str(exc.detail))
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": errors
                }
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unhandled exception: {str(exc)}")
        logger.error(traceback.format_exc())

        # Don't expose internal errors in production
        from config.settings import settings

        if settings.api_env == "development":
            message = str(exc)
        else:
            message = "An internal error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("INTERNAL_ERROR", message)
        )
