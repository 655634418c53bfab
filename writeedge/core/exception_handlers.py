# writeedge/core/exception_handlers.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import (
    HTTPException as StarletteHTTPException,
    RequestValidationError,
)

from writeedge.core.errors import WriteEdgeError
from writeedge.core.response import error_response, validation_error_response

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error-envelope handlers to an application."""

    @app.exception_handler(WriteEdgeError)
    async def writeedge_exception_handler(request: Request, exc: WriteEdgeError):
        """Map domain errors onto the error envelope"""
        logger.warning(
            f"{type(exc).__name__}: {exc.status_code} - {exc.message}",
            extra={
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return error_response(exc.message, status_code=exc.status_code, error_code=exc.error_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with logging"""
        # exc.detail might be a dict or str
        msg = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

        logger.warning(
            f"HTTP Exception: {exc.status_code} - {msg}",
            extra={
                "status_code": exc.status_code,
                "path": request.url.path,
                "method": request.method,
                "client_ip": request.client.host if request.client else None
            }
        )

        return error_response(msg, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Structured validation errors with logging"""
        error_count = len(exc.errors())
        logger.warning(
            f"Validation Error: {error_count} field(s) failed validation",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_count": error_count,
            }
        )

        return validation_error_response(exc.errors(), status_code=422)
