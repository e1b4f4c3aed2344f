"""
Permission classes for chat API.

This module provides DRF permission classes for the chat system:
- IsChatParticipant: User is a current member of the chat in the URL

Design Decisions:
    - Checks delegate to ChatMembership, the same predicate the services
      and the live router use
    - Fails closed: an unknown chat id is "not a participant" (403), so
      non-members cannot probe which chats exist
    - The chat id is read from the URL kwarg named by the view's
      chat_lookup_kwarg (default "chat_pk")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.membership import ChatMembership

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsChatParticipant(permissions.BasePermission):
    """
    Allows access only to current participants of the chat.

    This is the base permission for every chat-scoped endpoint.
    """

    message = "You are not a participant in this chat."

    def has_permission(self, request: Request, view: APIView) -> bool:
        if not request.user.is_authenticated:
            return False

        lookup = getattr(view, "chat_lookup_kwarg", "chat_pk")
        chat_id = view.kwargs.get(lookup)
        return ChatMembership.is_participant(chat_id, request.user.id)
