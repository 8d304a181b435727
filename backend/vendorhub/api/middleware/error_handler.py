"""
Error handler middleware and custom exceptions.

Provides consistent error responses and custom exception classes
for common application errors and for the lead/review domain rules.
"""
import logging
from typing import Optional, Dict, Any
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from vendorhub.lib.logging import get_logger

logger = get_logger(__name__)


# Custom exception classes
class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "resource_id": resource_id},
        )


class UnauthorizedException(AppException):
    """No resolvable session; the client should prompt the user to sign in."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details or {},
        )


class ConflictException(AppException):
    """Resource conflict exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details or {},
        )


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": errors or {}},
        )


class InvalidTransitionException(ConflictException):
    """Requested status is not reachable from the current one."""

    def __init__(self, current: str, target: str, subject: str = "lead"):
        super().__init__(
            message=f"Cannot move {subject} from '{current}' to '{target}'",
            details={"current_status": current, "target_status": target},
        )


class ThreadClosedException(ConflictException):
    """Messages cannot be added to a closed lead."""

    def __init__(self, thread_id: Optional[str] = None):
        super().__init__(
            message="This conversation has been closed",
            details={"thread_id": thread_id},
        )


class AlreadyRespondedException(ConflictException):
    """A review response is write-once."""

    def __init__(self, review_id: Optional[str] = None):
        super().__init__(
            message="This review already has a response",
            details={"review_id": review_id},
        )


class InvalidRatingException(ValidationException):
    """Rating outside the 1-5 scale."""

    def __init__(self, rating: Any):
        super().__init__(
            message="Rating must be between 1 and 5",
            errors={"rating": f"{rating!r} is not between 1 and 5"},
        )


class UpstreamUnavailableException(AppException):
    """Directory store or identity provider could not be reached."""

    def __init__(self, service: str = "directory store"):
        super().__init__(
            message=f"Failed to reach {service}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"service": service},
        )


# Exception handlers
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handler for custom application exceptions.

    Returns consistent error response with correlation ID.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Application error: {exc.message}",
        extra={
            "correlation_id": correlation_id,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )

    response_content = {
        "error": exc.message,
        "correlation_id": correlation_id,
    }

    if exc.details:
        response_content["details"] = exc.details

    return JSONResponse(
        status_code=exc.status_code,
        content=response_content,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handler for Pydantic validation errors.

    Formats validation errors in a consistent way.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    errors = []
    for error in exc.errors():
        errors.append({
            "loc": list(error["loc"]),
            "msg": error["msg"],
            "type": error["type"],
        })

    logger.warning(
        "Validation error",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "errors": errors,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "correlation_id": correlation_id,
            "details": {"errors": errors},
        },
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handler for Starlette HTTP exceptions.

    Provides consistent format for HTTP errors.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "correlation_id": correlation_id,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "correlation_id": correlation_id,
        },
        headers=getattr(exc, "headers", None),
    )


async def database_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Report store connectivity failures as UpstreamUnavailable."""
    logger.error(
        f"Database unavailable: {exc.orig}",
        extra={"path": request.url.path, "method": request.method},
    )
    return await app_exception_handler(request, UpstreamUnavailableException())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler for unhandled exceptions.

    Logs full stack trace and returns generic error message.
    """
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "correlation_id": correlation_id,
        },
    )
