"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- One HTTP status per failure category (see core.services.ErrorKind)

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed or missing input (400)
    ├── NotFoundError - Referenced entity does not exist (404)
    ├── PermissionDeniedError - Authenticated but not allowed (403)
    ├── ConflictError - Dedup races, constraint violations (409)
    └── InternalError - Unexpected storage failures (500)

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")

    # Services return ServiceResult instead; ServiceResult.unwrap() raises
    # the class matching the result's ErrorKind.

Note:
    api_exception_handler is installed as REST_FRAMEWORK["EXCEPTION_HANDLER"]
    and renders these errors as {"error", "error_code", "details"}.
    DRF's own exceptions (authentication, parse errors) keep DRF's handling.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.services import ErrorKind

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        kind: Failure category, which fixes the HTTP status
    """

    default_error_code: str = "APPLICATION_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return self.kind.http_status

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Chat not found",
                "error_code": "CHAT_NOT_FOUND",
                "details": {"chat_id": 123}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input is malformed or missing.

    Detected before storage is touched: blank content, empty participant
    lists, unknown chat type tokens, out-of-range page sizes.
    """

    default_error_code: str = "VALIDATION_ERROR"
    kind = ErrorKind.INVALID_ARGUMENT


class NotFoundError(BaseApplicationError):
    """
    Raised when a referenced chat, message or user does not exist.

    Note:
        Authorization checks never raise this; a non-member asking about an
        unknown chat gets PermissionDeniedError from the view layer.
    """

    default_error_code: str = "NOT_FOUND"
    kind = ErrorKind.NOT_FOUND


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when an authenticated user is not allowed to act on a chat or message.

    Note:
        For authentication failures (missing/invalid token), DRF's
        NotAuthenticated/AuthenticationFailed apply instead.
    """

    default_error_code: str = "PERMISSION_DENIED"
    kind = ErrorKind.PERMISSION_DENIED


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current state.

    Use for duplicate emails or display names and for uniqueness races the
    service could not resolve by re-reading the winner.
    """

    default_error_code: str = "CONFLICT"
    kind = ErrorKind.CONFLICT


class InternalError(BaseApplicationError):
    """
    Raised for unexpected storage failures.

    The message is deliberately generic; the original exception is logged
    where it was caught.
    """

    default_error_code: str = "INTERNAL_ERROR"
    kind = ErrorKind.INTERNAL


_EXCEPTION_BY_KIND: dict[ErrorKind, type[BaseApplicationError]] = {
    ErrorKind.INVALID_ARGUMENT: ValidationError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.PERMISSION_DENIED: PermissionDeniedError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.INTERNAL: InternalError,
}


def exception_for_kind(kind: ErrorKind) -> type[BaseApplicationError]:
    """Return the exception class that represents a failure kind."""
    return _EXCEPTION_BY_KIND[kind]


def api_exception_handler(exc, context):
    """
    DRF exception handler that understands BaseApplicationError.

    Application errors become {"error", "error_code", "details"} responses
    with the status of their kind. Everything else falls through to DRF's
    default handler.
    """
    if isinstance(exc, BaseApplicationError):
        if exc.kind is ErrorKind.INTERNAL:
            view = context.get("view")
            logger.error(
                f"Internal error in {view.__class__.__name__ if view else 'unknown view'}: "
                f"{exc!r}"
            )
        return Response(exc.to_dict(), status=exc.status_code)

    return exception_handler(exc, context)
