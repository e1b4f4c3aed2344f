"""
Membership checks for chat operations.

Every chat-scoped read or write asks this module first. It is distinct from
DRF permission classes (in permissions.py), which adapt these checks to HTTP.

Key Components:
    ChatMembership: Stateless predicates over the ChatParticipant table
    require_participant: Decorator that turns a failed check into a
        PERMISSION_DENIED ServiceResult

Fail-closed rules:
    - Unknown chat id, unknown user id, None, or an id that is not an
      integer all mean "not a participant". Nothing here raises for those.
    - Existence errors (chat not found) are reported by the calling service,
      not by these predicates.

Usage:
    if ChatMembership.is_participant(chat_id, user.id):
        ...

    class ReadTrackingService(BaseService):
        @classmethod
        @require_participant()
        def mark_read(cls, chat_id, reader_id):
            ...
"""

from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, TypeVar

from core.services import ErrorKind, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Callable


T = TypeVar("T")


def coerce_id(value) -> int | None:
    """Coerce a primary key to int, or None when it cannot be one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ChatMembership:
    """
    Stateless membership predicates.

    All methods are classmethods and run one query each. Results are never
    cached: membership can change while connections are open, so callers
    that need a current answer must ask again.
    """

    @classmethod
    def is_participant(cls, chat_id, user_id) -> bool:
        """Return True if the user is currently a member of the chat."""
        from chat.models import ChatParticipant

        chat_id, user_id = coerce_id(chat_id), coerce_id(user_id)
        if chat_id is None or user_id is None:
            return False

        return ChatParticipant.objects.filter(chat_id=chat_id, user_id=user_id).exists()

    @classmethod
    def participants_of(cls, chat_id) -> set[int]:
        """Return the ids of the chat's current members (empty for unknown chats)."""
        from chat.models import ChatParticipant

        chat_id = coerce_id(chat_id)
        if chat_id is None:
            return set()

        return set(
            ChatParticipant.objects.filter(chat_id=chat_id).values_list("user_id", flat=True)
        )

    @classmethod
    def chat_ids_for_user(cls, user_id) -> list[int]:
        """Return the ids of every chat the user is a member of."""
        from chat.models import ChatParticipant

        user_id = coerce_id(user_id)
        if user_id is None:
            return []

        return list(
            ChatParticipant.objects.filter(user_id=user_id).values_list("chat_id", flat=True)
        )


def require_participant(
    chat_id_param: str = "chat_id",
    user_id_param: str = "reader_id",
) -> Callable:
    """
    Decorator that requires the user to be a participant of the chat.

    Reads both ids from the wrapped method's arguments (positional or
    keyword, skipping cls) and returns PERMISSION_DENIED without calling
    the method when the check fails.

    Args:
        chat_id_param: Name of the parameter holding the chat id
        user_id_param: Name of the parameter holding the user id

    Example:
        @classmethod
        @require_participant(user_id_param="reader_id")
        def unread_count(cls, chat_id, reader_id):
            ...
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        code = func.__code__
        arg_names = code.co_varnames[: code.co_argcount]

        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult[T]:
            bound = dict(zip(arg_names, args))
            bound.update(kwargs)
            chat_id = bound.get(chat_id_param)
            user_id = bound.get(user_id_param)

            if not ChatMembership.is_participant(chat_id, user_id):
                return ServiceResult.failure(
                    "User is not a participant in this chat",
                    error_code="NOT_PARTICIPANT",
                    kind=ErrorKind.PERMISSION_DENIED,
                )

            return func(*args, **kwargs)

        return wrapper

    return decorator
