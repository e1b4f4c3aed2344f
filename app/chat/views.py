"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ChatViewSet: Chat directory, read tracking and membership
- MessageViewSet: Message operations (nested under chat)

URL Structure:
    /api/v1/chat/chats/                                   GET, POST
    /api/v1/chat/chats/{id}/                              GET
    /api/v1/chat/chats/{id}/read/                         POST
    /api/v1/chat/chats/{id}/unread-count/                 GET
    /api/v1/chat/chats/{id}/participants/                 POST
    /api/v1/chat/chats/{id}/participants/{user_id}/       DELETE
    /api/v1/chat/chats/{id}/messages/                     GET, POST
    /api/v1/chat/chats/{id}/messages/{pk}/                GET, DELETE
    /api/v1/chat/chats/{id}/messages/search/?q=&page=     GET

Design Decisions:
    - All operations go through the service layer; failures are raised with
      ServiceResult.unwrap() and rendered by core.exceptions.api_exception_handler
    - Every chat-scoped endpoint requires membership (IsChatParticipant),
      checked before the chat's existence so non-members always get 403
    - A message fetched through a different chat's URL is a 404
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import NotFoundError

from chat.constants import MESSAGE_CONFIG
from chat.membership import coerce_id
from chat.permissions import IsChatParticipant
from chat.serializers import (
    ChatCreateSerializer,
    ChatSerializer,
    MessageCreateSerializer,
    MessagePageSerializer,
    MessageSerializer,
    ParticipantAddSerializer,
)
from chat.services import ChatService, MessageService, ReadTrackingService


@extend_schema_view(
    list=extend_schema(
        operation_id="list_chats",
        summary="List chats",
        tags=["Chat - Chats"],
        responses=ChatSerializer(many=True),
    ),
    create=extend_schema(
        operation_id="create_chat",
        summary="Create chat",
        tags=["Chat - Chats"],
        request=ChatCreateSerializer,
        responses={201: ChatSerializer},
    ),
    retrieve=extend_schema(
        operation_id="get_chat",
        summary="Get chat",
        tags=["Chat - Chats"],
        responses=ChatSerializer,
    ),
)
class ChatViewSet(viewsets.GenericViewSet):
    """
    ViewSet for chat operations.

    list:
        Chats the current user belongs to, most recently active first.

    create:
        Create a chat. The current user is always a participant.
        For SINGLE: returns the existing chat for the pair if there is one.

    retrieve:
        Chat details including participants and the last message.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ChatSerializer
    chat_lookup_kwarg = "pk"

    def get_permissions(self):
        """Return permissions based on action."""
        if self.action in ("list", "create"):
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsChatParticipant()]

    def list(self, request):
        chats = ChatService.list_chats_for_user(request.user.id).unwrap()
        # Load last messages and unread counts for every chat at once
        chat_ids = [chat.id for chat in chats]
        context = {
            "request": request,
            "last_messages": MessageService.last_messages(chat_ids),
            "unread_counts": ReadTrackingService.unread_counts(chat_ids, request.user.id),
        }
        serializer = ChatSerializer(chats, many=True, context=context)
        return Response(serializer.data)

    def create(self, request):
        """Create a chat (single or group)."""
        serializer = ChatCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        chat = ChatService.create_chat(
            [request.user.id, *data["participant_ids"]],
            chat_type=data["chat_type"],
            name=data.get("name"),
        ).unwrap()

        output_serializer = ChatSerializer(chat, context={"request": request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        chat = ChatService.get_chat(pk).unwrap()
        return Response(ChatSerializer(chat, context={"request": request}).data)

    @extend_schema(
        operation_id="mark_chat_read",
        summary="Mark chat as read",
        tags=["Chat - Read Tracking"],
        request=None,
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        """Mark every unread message in the chat as read for the current user."""
        count = ReadTrackingService.mark_read(pk, request.user.id).unwrap()
        return Response({"chat_id": int(pk), "marked_read": count})

    @extend_schema(
        operation_id="get_unread_count",
        summary="Get unread count",
        tags=["Chat - Read Tracking"],
        responses={200: OpenApiTypes.OBJECT},
    )
    @action(detail=True, methods=["get"], url_path="unread-count")
    def unread_count(self, request, pk=None):
        count = ReadTrackingService.unread_count(pk, request.user.id).unwrap()
        return Response({"chat_id": int(pk), "unread_count": count})

    @extend_schema(
        operation_id="add_participant",
        summary="Add participant",
        tags=["Chat - Participants"],
        request=ParticipantAddSerializer,
        responses=ChatSerializer,
    )
    @action(detail=True, methods=["post"])
    def participants(self, request, pk=None):
        """Add a user to a group chat."""
        serializer = ParticipantAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        chat = ChatService.add_participant(
            pk, serializer.validated_data["user_id"]
        ).unwrap()
        return Response(ChatSerializer(chat, context={"request": request}).data)

    @extend_schema(
        operation_id="remove_participant",
        summary="Remove participant",
        tags=["Chat - Participants"],
        responses={204: OpenApiResponse(description="Removed (or was not a member)")},
    )
    def remove_participant(self, request, pk=None, user_id=None):
        """Remove a user from a group chat. Removing a non-member succeeds."""
        ChatService.remove_participant(pk, user_id).unwrap()
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        tags=["Chat - Messages"],
        parameters=[
            OpenApiParameter("page", int, description="Zero-based page, newest first"),
            OpenApiParameter(
                "size",
                int,
                description=f"Page size (1-{MESSAGE_CONFIG.MAX_PAGE_SIZE})",
            ),
        ],
        responses=MessagePageSerializer,
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
    ),
    retrieve=extend_schema(
        operation_id="get_message",
        summary="Get message",
        tags=["Chat - Messages"],
        responses=MessageSerializer,
    ),
    destroy=extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.GenericViewSet):
    """
    ViewSet for message operations within a chat.

    list:
        One page of history, newest first (?page=0&size=50).

    create:
        Send a message; live connections of the chat's participants
        receive message.created before this responds.

    destroy:
        Hard delete. Only the sender can delete a message.
    """

    permission_classes = [IsAuthenticated, IsChatParticipant]
    serializer_class = MessageSerializer
    chat_lookup_kwarg = "chat_pk"

    def get_message(self, chat_pk, pk):
        """Fetch a message, treating one from another chat as missing."""
        message = MessageService.get_message(pk).unwrap()
        if message.chat_id != coerce_id(chat_pk):
            raise NotFoundError(
                f"Message {pk} not found in chat {chat_pk}",
                error_code="MESSAGE_NOT_FOUND",
            )
        return message

    def list(self, request, chat_pk=None):
        page = MessageService.list_messages_page(
            chat_pk,
            page=request.query_params.get("page", 0),
            page_size=request.query_params.get("size", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE),
        ).unwrap()
        return Response(MessagePageSerializer(page).data)

    def create(self, request, chat_pk=None):
        """Send a message."""
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = MessageService.send_message(
            chat_pk,
            request.user.id,
            serializer.validated_data["content"],
            serializer.validated_data["message_type"],
        ).unwrap()
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, chat_pk=None, pk=None):
        message = self.get_message(chat_pk, pk)
        return Response(MessageSerializer(message).data)

    def destroy(self, request, chat_pk=None, pk=None):
        """Hard delete a message."""
        message = self.get_message(chat_pk, pk)
        MessageService.delete_message(message.id, request.user.id).unwrap()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="search_messages",
        summary="Search messages",
        tags=["Chat - Messages"],
        parameters=[
            OpenApiParameter("q", str, required=True, description="Search term"),
            OpenApiParameter("page", int, description="Zero-based page, newest first"),
            OpenApiParameter(
                "size",
                int,
                description=f"Page size (1-{MESSAGE_CONFIG.MAX_PAGE_SIZE})",
            ),
        ],
        responses=MessagePageSerializer,
    )
    @action(detail=False, methods=["get"])
    def search(self, request, chat_pk=None):
        """Case-insensitive substring search within the chat, paged newest first."""
        page = MessageService.search_messages(
            chat_pk,
            request.query_params.get("q", ""),
            page=request.query_params.get("page", 0),
            page_size=request.query_params.get("size", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE),
        ).unwrap()
        return Response(MessagePageSerializer(page).data)
