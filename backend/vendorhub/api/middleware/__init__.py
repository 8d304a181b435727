"""
API middleware module.
"""
from vendorhub.api.middleware.error_handler import (
    AppException,
    NotFoundException,
    UnauthorizedException,
    ForbiddenException,
    BadRequestException,
    ConflictException,
    ValidationException,
    InvalidTransitionException,
    ThreadClosedException,
    AlreadyRespondedException,
    InvalidRatingException,
    UpstreamUnavailableException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    database_unavailable_handler,
    unhandled_exception_handler,
)

__all__ = [
    "AppException",
    "NotFoundException",
    "UnauthorizedException",
    "ForbiddenException",
    "BadRequestException",
    "ConflictException",
    "ValidationException",
    "InvalidTransitionException",
    "ThreadClosedException",
    "AlreadyRespondedException",
    "InvalidRatingException",
    "UpstreamUnavailableException",
    "app_exception_handler",
    "validation_exception_handler",
    "http_exception_handler",
    "database_unavailable_handler",
    "unhandled_exception_handler",
]
