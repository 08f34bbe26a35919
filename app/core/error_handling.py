"""
Error types and FastAPI exception handlers
"""
import logging
import os
import traceback
from typing import Optional, Dict, Any
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import sentry_sdk

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception"""
    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(AppException):
    """Validation error exception"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class NotFoundException(AppException):
    """Resource not found exception"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, details=details)


class DomainError(AppException):
    """
    Rejected engine operation.

    Carries the offending field and value so the caller can point at the
    control that caused it; ``message`` is only a fallback for logs.
    """
    kind = "DomainError"
    default_status = 400

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None, **extra):
        self.field = field
        self.value = value
        details = {"kind": self.kind, "field": field, "value": _plain(value)}
        details.update({key: _plain(val) for key, val in extra.items()})
        super().__init__(message, status_code=self.default_status, details=details)


class InvalidTransition(DomainError):
    """Illegal appointment status change"""
    kind = "InvalidTransition"
    default_status = 409


class InvalidAmount(DomainError):
    """Non-positive quantity/price/payment or out-of-range discount"""
    kind = "InvalidAmount"
    default_status = 422


class InvoiceLocked(DomainError):
    """Mutation attempted on a PAID or CANCELLED invoice"""
    kind = "InvoiceLocked"
    default_status = 409


class OverpaymentNotAllowed(DomainError):
    """Payment exceeds the outstanding balance under the strict policy"""
    kind = "OverpaymentNotAllowed"
    default_status = 422


class SlotConflict(DomainError):
    """Booking collides with an existing appointment"""
    kind = "SlotConflict"
    default_status = 409


def _plain(value: Any) -> Any:
    """Make a detail value JSON friendly (enums, decimals, dates)"""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, "value") and not callable(value.value):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def log_error(error: Exception, request: Optional[Request] = None, context: Optional[Dict[str, Any]] = None):
    """
    Log error with context and send to Sentry if configured
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }

    if request:
        error_context.update({
            "path": request.url.path,
            "method": request.method,
            "client": request.client.host if request.client else None,
        })

    if context:
        error_context.update(context)

    if isinstance(error, RequestValidationError) or (isinstance(error, AppException) and error.status_code < 500):
        # Client errors and rejected operations
        logger.warning(f"Operation rejected: {error_context}")
        return

    error_context["traceback"] = traceback.format_exc()
    logger.error(f"Error occurred: {error_context}")

    sentry_sdk.capture_exception(error)


async def app_exception_handler(request: Request, exc: AppException):
    """Handle application exceptions"""
    log_error(exc, request)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "type": type(exc).__name__,
                "details": exc.details,
            }
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation exceptions with better formatting"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    log_error(exc, request, {"validation_errors": errors})

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "type": "ValidationError",
                "details": {
                    "errors": errors
                }
            }
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    log_error(exc, request)

    # Don't expose internal errors in production
    is_development = os.getenv("ENVIRONMENT", "development") == "development"

    error_detail = {
        "message": str(exc) if is_development else "Internal server error",
        "type": type(exc).__name__,
    }

    if is_development:
        error_detail["traceback"] = traceback.format_exc().split("\n")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": error_detail
        }
    )
