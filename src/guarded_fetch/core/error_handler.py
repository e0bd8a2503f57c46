"""Centralized error handling and logging for the guarded-fetch API.

This module provides:
- Global exception handler for FastAPI
- Structured logging with correlation IDs
- Environment-aware error responses (generic in production, detailed in dev)
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from guarded_fetch.core.config import get_settings
from guarded_fetch.core.security_config import (
    get_allowed_error_fields,
    is_sensitive_key,
)
from guarded_fetch.schemas.api import ErrorResponse


# Context variable for correlation ID tracking across async calls
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

logger = logging.getLogger(__name__)


def get_correlation_id() -> str:
    """Get or create a correlation ID for request tracing."""
    correlation_id: str | None = _correlation_id_var.get()
    if not correlation_id:
        new_id = str(uuid.uuid4())
        _correlation_id_var.set(new_id)
        return new_id
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


class StructuredLogger:
    """Structured logger that includes correlation IDs and sanitized data."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _log_with_context(
        self,
        level: int,
        message: str,
        extra_data: dict[str, Any] | None = None,
        exc_info: bool = False,
    ) -> None:
        correlation_id = get_correlation_id()
        sanitized_data = self._sanitize_data(extra_data or {})
        log_data = {
            "correlation_id": correlation_id,
            "message": message,
            **sanitized_data,
        }

        if get_settings().ENVIRONMENT == "production":
            # JsonFormatter emits `structured_data` as a nested object
            self.logger.log(
                level, message, extra={"structured_data": log_data}, exc_info=exc_info
            )
        else:
            details = " ".join(f"{k}={v}" for k, v in sanitized_data.items())
            suffix = f" [{details}]" if details else ""
            self.logger.log(
                level,
                f"[{correlation_id}] {message}{suffix}",
                extra={"structured_data": log_data},
                exc_info=exc_info,
            )

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Remove or mask sensitive data from log entries."""
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            if is_sensitive_key(key):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = self._sanitize_value(value)
        return sanitized

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._sanitize_data(value)
        if isinstance(value, list):
            return [self._sanitize_value(item) for item in value]
        return value

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log_with_context(logging.ERROR, message, kwargs, exc_info=True)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Catch any uncaught Exception and delegate to global_exception_handler."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def _build_error_response(
    *,
    correlation_id: str,
    error_type: str,
    message: str,
    environment: str,
    details: dict[str, Any] | None = None,
    traceback_str: str | None = None,
    exception_type: str | None = None,
    validation_errors: Any | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Construct a sanitized JSON error response respecting environment rules."""
    allowed_fields = get_allowed_error_fields(environment)

    error_body: dict[str, Any] = {
        "correlation_id": correlation_id,
        "type": error_type,
    }
    if "details" in allowed_fields and details:
        error_body["details"] = details
    if "traceback" in allowed_fields and traceback_str:
        error_body["traceback"] = traceback_str
    if "exception_type" in allowed_fields and exception_type:
        error_body["exception_type"] = exception_type
    if "validation_errors" in allowed_fields and validation_errors is not None:
        error_body["validation_errors"] = validation_errors

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            message=message,
            error=error_body,
            success=False,
        ).model_dump(),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler providing structured, sanitized responses."""
    environment = get_settings().ENVIRONMENT
    correlation_id = get_correlation_id()

    if isinstance(exc, StarletteHTTPException):
        detail = getattr(exc, "detail", "An error occurred")
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="http_error",
            message="An HTTP error occurred",
            environment=environment,
            details={"detail": detail},
            exception_type=exc.__class__.__name__,
            status_code=exc.status_code,
        )

    if isinstance(exc, ValidationError | RequestValidationError):
        structured_logger.warning("Validation error", error_count=len(exc.errors()))
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="validation_error",
            message="Invalid request data provided",
            environment=environment,
            validation_errors=jsonable_errors(exc.errors()),
            status_code=422,
        )

    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__, error=str(exc)
    )
    traceback_str: str | None = None
    if environment != "production":
        import traceback as _tb

        traceback_str = "".join(_tb.format_exception(exc)).strip()

    return _build_error_response(
        correlation_id=correlation_id,
        error_type="internal_server_error",
        message="An internal error occurred",
        environment=environment,
        traceback_str=traceback_str,
        exception_type=exc.__class__.__name__,
    )


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Drop non-serializable context (e.g. exception objects) from errors()."""
    cleaned = []
    for err in errors:
        item = {k: v for k, v in dict(err).items() if k in {"loc", "msg", "type"}}
        if "loc" in item:
            item["loc"] = [str(part) for part in item["loc"]]
        cleaned.append(item)
    return cleaned


def setup_logging() -> None:
    """Configure application logging; idempotent."""
    settings = get_settings()

    log_level = logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO
    root_logger = logging.getLogger()

    if root_logger.handlers:
        return

    formatter: logging.Formatter
    if settings.ENVIRONMENT == "production":
        from pythonjsonlogger.jsonlogger import JsonFormatter

        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

