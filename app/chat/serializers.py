"""
Serializers for chat API.

This module provides serializers for the chat system:
- Chat serializers (read, create)
- Participant serializers (read, add)
- Message serializers (read, create, page)

Serializer Hierarchy:
    ChatSerializer: Chat with participants, last message and unread count
    ChatCreateSerializer: SINGLE/GROUP chat creation

    ParticipantSerializer: Participant with public user info
    ParticipantAddSerializer: Add a user to a group

    MessageSerializer: Message as stored
    MessageCreateSerializer: Send new message
    MessagePageSerializer: One page of history with paging metadata

Design Decisions:
    - Read and write serializers are separate for clarity
    - Write serializers only check shape; ChatService and MessageService
      enforce the rules (type tokens, blank content, pair dedup)
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import PublicUserSerializer
from chat.constants import CHAT_CONFIG
from chat.models import Chat, ChatParticipant, Message, MessageType
from chat.services import MessageService, ReadTrackingService


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """Read serializer for messages."""

    chat_id = serializers.IntegerField(read_only=True)
    sender_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "chat_id",
            "sender_id",
            "content",
            "message_type",
            "status",
            "created_at",
        ]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    """Serializer for sending messages."""

    content = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Message content (trimmed; max 10,000 characters)",
    )
    message_type = serializers.CharField(
        required=False,
        default=MessageType.TEXT,
        help_text="text, image, file, audio or video",
    )


class MessagePageSerializer(serializers.Serializer):
    """One page of history or search results, newest first."""

    messages = MessageSerializer(many=True, read_only=True)
    page = serializers.IntegerField(read_only=True)
    page_size = serializers.IntegerField(read_only=True)
    total_messages = serializers.IntegerField(read_only=True)
    total_pages = serializers.IntegerField(read_only=True)
    has_more = serializers.BooleanField(read_only=True)


# =============================================================================
# Participant Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    """Read serializer for chat participants."""

    user = PublicUserSerializer(read_only=True)

    class Meta:
        model = ChatParticipant
        fields = ["user", "joined_at"]
        read_only_fields = fields


class ParticipantAddSerializer(serializers.Serializer):
    """Serializer for adding a participant to a group chat."""

    user_id = serializers.IntegerField(help_text="User ID to add to the chat")


# =============================================================================
# Chat Serializers
# =============================================================================


class ChatSerializer(serializers.ModelSerializer):
    """
    Read serializer for chats.

    Computed fields:
        participants: Members with public user info
        last_message: Most recent message, or null
        unread_count: Unread messages for the requesting user

    Context:
        request: Supplies the user for unread_count
        last_messages, unread_counts: Optional maps keyed by chat id, loaded
            in bulk by list views; without them each chat is queried
    """

    participants = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = [
            "id",
            "name",
            "chat_type",
            "participants",
            "last_activity_at",
            "created_at",
            "last_message",
            "unread_count",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Chat) -> list[dict]:
        if "participants" in getattr(obj, "_prefetched_objects_cache", {}):
            participants = obj.participants.all()
        else:
            participants = obj.participants.select_related("user")
        return ParticipantSerializer(participants, many=True).data

    def get_last_message(self, obj: Chat) -> dict | None:
        last_messages = self.context.get("last_messages")
        if last_messages is not None:
            message = last_messages.get(obj.id)
        else:
            message = MessageService.get_last_message(obj.id)
        return MessageSerializer(message).data if message else None

    def get_unread_count(self, obj: Chat) -> int:
        unread_counts = self.context.get("unread_counts")
        if unread_counts is not None:
            return unread_counts.get(obj.id, 0)
        request = self.context.get("request")
        if not request or not request.user.is_authenticated:
            return 0
        result = ReadTrackingService.unread_count(obj.id, request.user.id)
        return result.data if result else 0


class ChatCreateSerializer(serializers.Serializer):
    """
    Serializer for creating chats.

    The requesting user is always added to participant_ids by the view, so
    a SINGLE chat is created with just the other user's id.
    """

    participant_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=True,
        help_text="User IDs to include besides the creator",
    )
    chat_type = serializers.CharField(help_text="SINGLE or GROUP")
    name = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=CHAT_CONFIG.MAX_NAME_LENGTH,
        help_text="Display name for group chats (ignored for SINGLE)",
    )
