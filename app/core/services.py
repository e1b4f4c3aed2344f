"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ErrorKind: The failure taxonomy shared by every service
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (bad input, missing rows,
      authorization, dedup races). The caller decides how to report them.
    - Exceptions: Unexpected failures (database errors, bugs). Services catch
      DatabaseError at their boundary and turn it into an INTERNAL result via
      handle_exception(), which logs the original traceback.

Usage:
    from core.services import BaseService, ErrorKind, ServiceResult

    class ChatService(BaseService):
        @classmethod
        def get_chat(cls, chat_id: int) -> ServiceResult[Chat]:
            chat = Chat.objects.filter(pk=chat_id).first()
            if chat is None:
                return ServiceResult.failure(
                    f"Chat {chat_id} not found",
                    error_code="CHAT_NOT_FOUND",
                    kind=ErrorKind.NOT_FOUND,
                )
            return ServiceResult.success(chat)

    # In a view
    result = ChatService.get_chat(pk)
    if not result:
        return Response(result.to_response(), status=result.http_status)

    # Or let the DRF exception handler render it
    chat = ChatService.get_chat(pk).unwrap()

Related:
    - core.exceptions: Exception classes raised by ServiceResult.unwrap()
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(str, Enum):
    """
    Failure categories every service result is classified into.

    Each kind maps to exactly one HTTP status so the HTTP and WebSocket
    layers can report failures without knowing which service produced them.
    """

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS_BY_KIND[self]


_HTTP_STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        kind: Failure category (None if successful)
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(message)

        # Failure case
        return ServiceResult.failure(
            "Content cannot be empty",
            error_code="EMPTY_CONTENT",
            kind=ErrorKind.INVALID_ARGUMENT,
        )

        # Check result
        result = MessageService.send_message(chat_id, user.id, "hi")
        if result.success:
            message = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    kind: ErrorKind | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        kind: ErrorKind = ErrorKind.INVALID_ARGUMENT,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            kind: Failure category, defaults to INVALID_ARGUMENT
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details

        Example:
            return ServiceResult.failure(
                "Chat not found", "CHAT_NOT_FOUND", kind=ErrorKind.NOT_FOUND
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code or kind.name,
            kind=kind,
            errors=errors,
        )

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        error_code: str | None = None,
        kind: ErrorKind = ErrorKind.INTERNAL,
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        The exception text is not echoed to clients for INTERNAL failures;
        it is logged by BaseService.handle_exception() instead.
        """
        message = "Internal error" if kind is ErrorKind.INTERNAL else str(exc)
        return cls(
            success=False,
            error=message,
            error_code=error_code or exc.__class__.__name__.upper(),
            kind=kind,
        )

    @property
    def http_status(self) -> int:
        """HTTP status for this result (200 on success)."""
        if self.success:
            return 200
        return (self.kind or ErrorKind.INTERNAL).http_status

    def to_response(self) -> dict[str, Any]:
        """
        Convert a failure to the API error body.

        Returns:
            Dict with error, error_code, and (when present) field errors

        Example:
            result = ChatService.get_chat(pk)
            if not result:
                return Response(result.to_response(), status=result.http_status)
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "error": self.error,
            "error_code": self.error_code,
        }
        if self.errors:
            response["details"] = self.errors
        return response

    def map(self, func: Callable[[T], U]) -> ServiceResult[U]:
        """
        Transform the data if successful.

        Example:
            result = ChatService.get_chat(pk)
            serialized = result.map(lambda chat: ChatSerializer(chat).data)
        """
        if self.success:
            return ServiceResult.success(func(self.data))  # type: ignore[arg-type]
        return self  # type: ignore[return-value]

    def unwrap(self) -> T:
        """
        Return the data or raise the matching core.exceptions error.

        Lets views hand failures to the DRF exception handler instead of
        building error responses by hand.
        """
        if self.success:
            return self.data  # type: ignore[return-value]

        from core.exceptions import exception_for_kind

        raise exception_for_kind(self.kind or ErrorKind.INTERNAL)(
            self.error or "",
            error_code=self.error_code,
            details=self.errors,
        )

    def __bool__(self) -> bool:
        """
        Allow using result in boolean context.

        Example:
            result = ChatService.get_chat(pk)
            if result:  # Same as: if result.success
                print("Found!")
        """
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Conversion of unexpected database errors into INTERNAL results

    Usage:
        class ChatService(BaseService):
            @classmethod
            def create_chat(cls, ...) -> ServiceResult[Chat]:
                try:
                    with cls.atomic():
                        chat = Chat.objects.create(...)
                        ChatParticipant.objects.bulk_create(...)
                except DatabaseError as exc:
                    return cls.handle_exception(exc, "create_chat")

                cls.get_logger().info(f"Created chat {chat.id}")
                return ServiceResult.success(chat)

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Services never retry failed writes
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back. Nested use creates a savepoint.

        Example:
            with cls.atomic():
                message = Message.objects.create(...)
                MessageReceipt.objects.bulk_create(...)
                # If receipt creation fails, the message is also rolled back
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert an unexpected exception to an INTERNAL ServiceResult.

        Logs the exception with its traceback so the original cause is
        preserved, then returns a failure that does not leak internals.

        Args:
            exc: The caught exception
            context: Operation name for the log line
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with kind=INTERNAL
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=exc)
        return ServiceResult.from_exception(exc, error_code="INTERNAL_ERROR")
