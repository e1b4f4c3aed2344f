"""
Chat system models.

This module defines the data models for the chat system supporting:
- SINGLE chats between exactly two users
- GROUP chats with mutable membership

Models:
    Chat: Container for messages between participants
    DirectChatPair: Helper for enforcing uniqueness of SINGLE chats
    ChatParticipant: Membership of a user in a chat
    Message: Individual message within a chat
    MessageReceipt: Per-recipient delivery and read status of a message

Design Decisions:
    - Entities reference each other by id through foreign keys; services look
      rows up by id instead of walking object graphs
    - SINGLE chats are immutable once created (no adding/removing participants)
    - Message order within a chat is (created_at, id), so two messages written
      in the same clock tick still have a stable order
    - Read state is tracked per recipient (MessageReceipt). Message.status is
      the aggregate receipt shown to the sender: it moves forward once any
      recipient's receipt does, and never back
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.models import BaseModel


class ChatType(models.TextChoices):
    """
    Type of chat.

    SINGLE: Exactly two participants, immutable membership
    GROUP: One or more participants, mutable membership
    """

    SINGLE = "single", "Single"
    GROUP = "group", "Group"


class MessageType(models.TextChoices):
    """Kind of content a message carries."""

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    FILE = "file", "File"
    AUDIO = "audio", "Audio"
    VIDEO = "video", "Video"


class MessageStatus(models.TextChoices):
    """
    Delivery status, ordered SENT < DELIVERED < READ.

    Transitions only move forward; see MessageStatus.rank().
    """

    SENT = "sent", "Sent"
    DELIVERED = "delivered", "Delivered"
    READ = "read", "Read"

    @classmethod
    def rank(cls, status: str) -> int:
        return _STATUS_RANK[status]


_STATUS_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class Chat(BaseModel):
    """
    A chat between participants.

    Fields:
        name: Display name (GROUP only; always blank for SINGLE)
        chat_type: SINGLE or GROUP
        last_activity_at: Bumped when a message is sent; drives list ordering

    Related:
        participants: ChatParticipant rows (membership)
        messages: Message rows, deleted with the chat
        direct_pair: DirectChatPair for SINGLE chats
    """

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Display name for group chats",
    )
    chat_type = models.CharField(
        max_length=10,
        choices=ChatType.choices,
        help_text="SINGLE (two people) or GROUP",
    )
    last_activity_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Time of the most recent message (creation time until then)",
    )

    class Meta:
        db_table = "chat_chat"
        ordering = ["-last_activity_at", "-id"]

    def __str__(self) -> str:
        if self.chat_type == ChatType.SINGLE:
            return f"Single chat {self.pk}"
        return self.name or f"Group chat {self.pk}"

    @property
    def is_single(self) -> bool:
        return self.chat_type == ChatType.SINGLE

    @property
    def is_group(self) -> bool:
        return self.chat_type == ChatType.GROUP


class DirectChatPair(models.Model):
    """
    Enforces uniqueness of SINGLE chats between two users.

    Stores the pair in canonical order (lower user id first) so that,
    regardless of who creates the chat, only one row can exist per pair.
    The unique constraint is what two racing create calls collide on.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One chat per pair
        - CheckConstraint(user_lower_id < user_higher_id): Canonical order
    """

    chat = models.OneToOneField(
        Chat,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
    )
    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )

    class Meta:
        db_table = "chat_direct_chat_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_chat_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="direct_pair_user_lower_less_than_higher",
            ),
        ]

    @staticmethod
    def canonical(first_user_id: int, second_user_id: int) -> tuple[int, int]:
        """Return the pair as (lower, higher)."""
        if first_user_id < second_user_id:
            return first_user_id, second_user_id
        return second_user_id, first_user_id


class ChatParticipant(models.Model):
    """
    Membership of a user in a chat.

    Rows are deleted when a participant is removed; membership checks are
    plain existence queries on (chat, user).
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_memberships",
    )
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["chat", "user"],
                name="unique_chat_participant",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "chat"], name="chat_participant_user_idx"),
        ]

    def __str__(self) -> str:
        return f"User {self.user_id} in chat {self.chat_id}"


class Message(BaseModel):
    """
    A message in a chat.

    Fields:
        chat: Owning chat (messages are deleted with it)
        sender: Author; NULL once the author's account is deleted
        message_type: TEXT, IMAGE, FILE, AUDIO or VIDEO
        content: Trimmed, non-empty text (or a reference for non-text types)
        status: Aggregate delivery status across recipients
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="sent_messages",
    )
    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
    )
    content = models.TextField()
    status = models.CharField(
        max_length=10,
        choices=MessageStatus.choices,
        default=MessageStatus.SENT,
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["chat", "created_at", "id"],
                name="chat_message_history_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message {self.pk} in chat {self.chat_id}"


class MessageReceipt(models.Model):
    """
    Delivery and read status of one message for one recipient.

    Created with the message for every participant except the sender.
    Status moves SENT -> DELIVERED -> READ through conditional updates only.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="receipts",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_receipts",
    )
    # Denormalized from message.chat so unread counts are a single-table query
    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="+",
    )
    status = models.CharField(
        max_length=10,
        choices=MessageStatus.choices,
        default=MessageStatus.SENT,
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "chat_message_receipt"
        constraints = [
            models.UniqueConstraint(
                fields=["message", "recipient"],
                name="unique_message_receipt",
            ),
        ]
        indexes = [
            models.Index(
                fields=["chat", "recipient", "status"],
                name="chat_receipt_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Receipt {self.message_id}/{self.recipient_id}: {self.status}"
