"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on chats, participants, messages and read state.

Services:
    ChatService: Chat directory (create with SINGLE dedup, get, list, membership)
    MessageService: Message operations (send, history, get, delete, search, purge)
    ReadTrackingService: Read receipts (mark read, unread count, mark delivered)

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure() with an ErrorKind
    - Unexpected DatabaseErrors become INTERNAL results via handle_exception()
    - Writes run inside cls.atomic(); live events are broadcast after the
      transaction commits, before the service returns
    - Status transitions are single conditional UPDATEs, never read-then-write

Usage:
    from chat.services import ChatService, MessageService, ReadTrackingService

    # Create (or fetch) the single chat between two users
    result = ChatService.create_chat([alice.id, bob.id], chat_type="single")
    if result.success:
        chat = result.data

    # Send a message; participants' live connections receive message.created
    result = MessageService.send_message(chat.id, alice.id, "hi")

    # Bob reads everything
    count = ReadTrackingService.mark_read(chat.id, bob.id).unwrap()
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.core.paginator import Paginator
from django.db import DatabaseError, IntegrityError
from django.db.models import Count, OuterRef, Prefetch, Q, Subquery
from django.utils import timezone

from core.services import BaseService, ErrorKind, ServiceResult

from chat import events
from chat.constants import CHAT_CONFIG, MESSAGE_CONFIG
from chat.membership import ChatMembership, coerce_id, require_participant
from chat.models import (
    Chat,
    ChatParticipant,
    ChatType,
    DirectChatPair,
    Message,
    MessageReceipt,
    MessageStatus,
    MessageType,
)
from chat.router import get_router

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


def _parse_choice(value, choices) -> str | None:
    """Match a type token case-insensitively against a TextChoices class."""
    if value is None:
        return None
    token = str(value).strip().lower()
    return token if token in choices.values else None


def _chat_not_found(chat_id) -> ServiceResult:
    return ServiceResult.failure(
        f"Chat {chat_id} not found",
        error_code="CHAT_NOT_FOUND",
        kind=ErrorKind.NOT_FOUND,
    )


class ChatService(BaseService):
    """
    Service for the chat directory.

    Methods:
        create_chat: Create a chat, or return the existing SINGLE chat for a pair
        get_chat: Fetch a chat by id
        list_chats_for_user: Chats a user belongs to, most recently active first
        add_participant: Add a user to a GROUP chat
        remove_participant: Remove a user from a GROUP chat (idempotent)
    """

    @classmethod
    def create_chat(
        cls,
        participant_ids: Iterable[int],
        chat_type: str = ChatType.GROUP,
        name: str | None = None,
    ) -> ServiceResult[Chat]:
        """
        Create a chat between the given users.

        SINGLE chats are unique per unordered pair. The existing chat is
        looked up first; if two callers race past the lookup, the
        DirectChatPair unique constraint rejects the second insert and the
        winner's chat is returned to both.

        Implementation:
            1. Validate the participant list and the type token
            2. SINGLE: require exactly two distinct ids, return an existing pair
            3. Resolve every id to an existing user
            4. Create chat, pair and participants in one transaction

        Args:
            participant_ids: User ids; duplicates collapse
            chat_type: "single" or "group" (case-insensitive)
            name: Display name for GROUP chats; ignored for SINGLE

        Returns:
            ServiceResult with the new or existing Chat

        Error codes:
            EMPTY_PARTICIPANTS: No participant ids given
            INVALID_PARTICIPANT_ID: An id is not an integer
            INVALID_CHAT_TYPE: Unrecognized type token
            SINGLE_CHAT_REQUIRES_TWO: SINGLE without exactly two distinct users
            NAME_TOO_LONG: Group name longer than the limit
            TOO_MANY_PARTICIPANTS: Group larger than the limit
            USER_NOT_FOUND: An id does not resolve to a user
            CHAT_CONFLICT: Pair insert failed and no winner could be found
        """
        raw_ids = list(participant_ids or [])
        if not raw_ids:
            return ServiceResult.failure(
                "At least one participant is required",
                error_code="EMPTY_PARTICIPANTS",
            )

        user_ids = {coerce_id(value) for value in raw_ids}
        if None in user_ids:
            return ServiceResult.failure(
                "Participant ids must be integers",
                error_code="INVALID_PARTICIPANT_ID",
            )

        chat_type = _parse_choice(chat_type, ChatType)
        if chat_type is None:
            return ServiceResult.failure(
                "Chat type must be SINGLE or GROUP",
                error_code="INVALID_CHAT_TYPE",
            )

        if chat_type == ChatType.SINGLE:
            if len(user_ids) != 2:
                return ServiceResult.failure(
                    "A single chat must have exactly 2 distinct participants",
                    error_code="SINGLE_CHAT_REQUIRES_TWO",
                )
            user_lower_id, user_higher_id = DirectChatPair.canonical(*user_ids)
            existing = cls._find_single_chat(user_lower_id, user_higher_id)
            if existing is not None:
                cls.get_logger().debug(
                    f"Found existing single chat {existing.id} "
                    f"between users {user_lower_id} and {user_higher_id}"
                )
                return ServiceResult.success(existing)
            name = ""
        else:
            name = (name or "").strip()
            if len(name) > CHAT_CONFIG.MAX_NAME_LENGTH:
                return ServiceResult.failure(
                    f"Chat name cannot exceed {CHAT_CONFIG.MAX_NAME_LENGTH} characters",
                    error_code="NAME_TOO_LONG",
                )
            if len(user_ids) > CHAT_CONFIG.MAX_GROUP_PARTICIPANTS:
                return ServiceResult.failure(
                    f"A group chat cannot have more than "
                    f"{CHAT_CONFIG.MAX_GROUP_PARTICIPANTS} participants",
                    error_code="TOO_MANY_PARTICIPANTS",
                )

        User = get_user_model()
        found_ids = set(User.objects.filter(pk__in=user_ids).values_list("pk", flat=True))
        missing = sorted(user_ids - found_ids)
        if missing:
            return ServiceResult.failure(
                "One or more users not found",
                error_code="USER_NOT_FOUND",
                errors={"participant_ids": [str(user_id) for user_id in missing]},
            )

        try:
            with cls.atomic():
                chat = Chat.objects.create(name=name, chat_type=chat_type)
                if chat_type == ChatType.SINGLE:
                    DirectChatPair.objects.create(
                        chat=chat,
                        user_lower_id=user_lower_id,
                        user_higher_id=user_higher_id,
                    )
                ChatParticipant.objects.bulk_create(
                    ChatParticipant(chat=chat, user_id=user_id)
                    for user_id in sorted(user_ids)
                )
        except IntegrityError as exc:
            if chat_type != ChatType.SINGLE:
                return cls.handle_exception(exc, "create_chat")
            # Lost the race for this pair; return the winner's chat
            existing = cls._find_single_chat(user_lower_id, user_higher_id)
            if existing is not None:
                return ServiceResult.success(existing)
            cls.get_logger().warning(
                f"Single chat insert for users {user_lower_id}/{user_higher_id} "
                f"conflicted but no existing chat was found: {exc}"
            )
            return ServiceResult.failure(
                "Chat could not be created, try again",
                error_code="CHAT_CONFLICT",
                kind=ErrorKind.CONFLICT,
            )
        except DatabaseError as exc:
            return cls.handle_exception(exc, "create_chat")

        cls.get_logger().info(
            f"Created {chat_type} chat {chat.id} with participants {sorted(user_ids)}"
        )
        return ServiceResult.success(chat)

    @classmethod
    def _find_single_chat(cls, user_lower_id: int, user_higher_id: int) -> Chat | None:
        pair = (
            DirectChatPair.objects.select_related("chat")
            .filter(user_lower_id=user_lower_id, user_higher_id=user_higher_id)
            .first()
        )
        return pair.chat if pair else None

    @classmethod
    def get_chat(cls, chat_id) -> ServiceResult[Chat]:
        """Fetch a chat by id (NOT_FOUND when absent)."""
        pk = coerce_id(chat_id)
        chat = Chat.objects.filter(pk=pk).first() if pk is not None else None
        if chat is None:
            return _chat_not_found(chat_id)
        return ServiceResult.success(chat)

    @classmethod
    def list_chats_for_user(cls, user_id) -> ServiceResult[list[Chat]]:
        """
        List the chats a user participates in.

        Ordered by last activity, most recent first; ties by id descending.

        Error codes:
            USER_NOT_FOUND: The user does not exist
        """
        pk = coerce_id(user_id)
        User = get_user_model()
        if pk is None or not User.objects.filter(pk=pk).exists():
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
            )

        chats = list(
            Chat.objects.filter(participants__user_id=pk)
            .prefetch_related(
                Prefetch(
                    "participants",
                    queryset=ChatParticipant.objects.select_related("user"),
                )
            )
            .order_by("-last_activity_at", "-id")
        )
        return ServiceResult.success(chats)

    @classmethod
    def add_participant(cls, chat_id, user_id) -> ServiceResult[Chat]:
        """
        Add a user to a GROUP chat.

        Adding an existing member is a no-op. The new member gets a SENT
        receipt for every earlier message from others, so that history counts
        as unread until they mark the chat read. Participants are notified
        with chat.participants_changed after the transaction commits.

        Error codes:
            CHAT_NOT_FOUND: The chat does not exist
            NOT_GROUP_CHAT: The chat is SINGLE
            USER_NOT_FOUND: The user does not exist
            TOO_MANY_PARTICIPANTS: The group is full
        """
        result = cls.get_chat(chat_id)
        if not result:
            return result
        chat = result.data

        if not chat.is_group:
            return ServiceResult.failure(
                "Participants can only be added to group chats",
                error_code="NOT_GROUP_CHAT",
            )

        pk = coerce_id(user_id)
        User = get_user_model()
        if pk is None or not User.objects.filter(pk=pk).exists():
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
            )

        try:
            with cls.atomic():
                # Serialize membership changes on this chat
                Chat.objects.select_for_update().filter(pk=chat.pk).first()
                if ChatParticipant.objects.filter(chat=chat, user_id=pk).exists():
                    return ServiceResult.success(chat)
                if chat.participants.count() >= CHAT_CONFIG.MAX_GROUP_PARTICIPANTS:
                    return ServiceResult.failure(
                        f"A group chat cannot have more than "
                        f"{CHAT_CONFIG.MAX_GROUP_PARTICIPANTS} participants",
                        error_code="TOO_MANY_PARTICIPANTS",
                    )
                ChatParticipant.objects.create(chat=chat, user_id=pk)
                # Existing history from others starts out unread for the new
                # member; a returning member keeps the receipts they had
                MessageReceipt.objects.bulk_create(
                    (
                        MessageReceipt(message_id=message_id, chat=chat, recipient_id=pk)
                        for message_id in Message.objects.filter(chat=chat)
                        .exclude(sender_id=pk)
                        .values_list("pk", flat=True)
                    ),
                    ignore_conflicts=True,
                )
        except DatabaseError as exc:
            return cls.handle_exception(exc, "add_participant")

        cls.get_logger().info(f"Added user {pk} to chat {chat.id}")
        cls._notify_participants_changed(chat.id)
        return ServiceResult.success(chat)

    @classmethod
    def remove_participant(cls, chat_id, user_id) -> ServiceResult[Chat]:
        """
        Remove a user from a GROUP chat.

        Removing a non-member leaves the chat unchanged and succeeds. A group
        never drops below one participant. The removed user's connections
        receive the final participants_changed event so clients can drop the
        chat; after that they receive nothing from it.

        Error codes:
            CHAT_NOT_FOUND: The chat does not exist
            NOT_GROUP_CHAT: The chat is SINGLE
            USER_NOT_FOUND: The user does not exist
            LAST_PARTICIPANT: Removing would leave the group empty
        """
        result = cls.get_chat(chat_id)
        if not result:
            return result
        chat = result.data

        if not chat.is_group:
            return ServiceResult.failure(
                "Participants can only be removed from group chats",
                error_code="NOT_GROUP_CHAT",
            )

        pk = coerce_id(user_id)
        User = get_user_model()
        if pk is None or not User.objects.filter(pk=pk).exists():
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
            )

        try:
            with cls.atomic():
                Chat.objects.select_for_update().filter(pk=chat.pk).first()
                membership = ChatParticipant.objects.filter(chat=chat, user_id=pk)
                if not membership.exists():
                    return ServiceResult.success(chat)
                if chat.participants.count() <= 1:
                    return ServiceResult.failure(
                        "A group chat must keep at least one participant",
                        error_code="LAST_PARTICIPANT",
                    )
                membership.delete()
        except DatabaseError as exc:
            return cls.handle_exception(exc, "remove_participant")

        cls.get_logger().info(f"Removed user {pk} from chat {chat.id}")
        participant_ids = cls._notify_participants_changed(chat.id)
        get_router().send_to_users_sync(
            [pk], events.participants_changed(chat.id, participant_ids)
        )
        return ServiceResult.success(chat)

    @classmethod
    def _notify_participants_changed(cls, chat_id: int) -> set[int]:
        participant_ids = ChatMembership.participants_of(chat_id)
        get_router().broadcast_to_chat_sync(
            chat_id, events.participants_changed(chat_id, participant_ids)
        )
        return participant_ids


@dataclass
class MessagePage:
    """
    One page of chat history, newest first.

    Attributes:
        messages: Messages on this page
        page: Zero-based page index
        page_size: Requested page size
        total_messages: Messages in the chat
        total_pages: Pages at this size
        has_more: Whether an older page exists
    """

    messages: list[Message]
    page: int
    page_size: int
    total_messages: int
    total_pages: int
    has_more: bool


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send_message: Persist a message and fan it out to the chat
        list_messages: Full history, oldest first
        list_messages_page: One page of history, newest first
        get_message: Fetch a message by id
        get_last_message: Most recent message of a chat
        last_messages: Most recent message of many chats
        delete_message: Sender-only hard delete
        search_messages: Case-insensitive substring search in one chat
        purge_messages_before: Retention cleanup
    """

    @classmethod
    def send_message(
        cls,
        chat_id,
        sender_id,
        content: str,
        message_type: str = MessageType.TEXT,
    ) -> ServiceResult[Message]:
        """
        Send a message to a chat.

        Preconditions are checked in order: content, chat, sender, membership.
        On success the message (status SENT) and one receipt per other
        participant are written in one transaction, the chat's last activity
        moves forward, and message.created is handed to the router before
        this returns.

        Args:
            chat_id: Target chat
            sender_id: Author; must be a participant
            content: Message text, trimmed
            message_type: TEXT, IMAGE, FILE, AUDIO or VIDEO

        Returns:
            ServiceResult with the new Message

        Error codes:
            EMPTY_CONTENT: Content is blank after trimming
            CONTENT_TOO_LONG: Content exceeds the limit
            INVALID_MESSAGE_TYPE: Unrecognized type token
            CHAT_NOT_FOUND: The chat does not exist
            SENDER_NOT_FOUND: The sender does not exist
            NOT_PARTICIPANT: The sender is not in the chat
        """
        content = content.strip() if isinstance(content, str) else ""
        if not content:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message content cannot exceed "
                f"{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )

        parsed_type = _parse_choice(message_type or MessageType.TEXT, MessageType)
        if parsed_type is None:
            return ServiceResult.failure(
                f"Unknown message type: {message_type}",
                error_code="INVALID_MESSAGE_TYPE",
            )

        result = ChatService.get_chat(chat_id)
        if not result:
            return result
        chat = result.data

        pk = coerce_id(sender_id)
        User = get_user_model()
        if pk is None or not User.objects.filter(pk=pk).exists():
            return ServiceResult.failure(
                f"User {sender_id} not found",
                error_code="SENDER_NOT_FOUND",
                kind=ErrorKind.NOT_FOUND,
            )

        if not ChatMembership.is_participant(chat.id, pk):
            return ServiceResult.failure(
                "You are not a participant in this chat",
                error_code="NOT_PARTICIPANT",
                kind=ErrorKind.PERMISSION_DENIED,
            )

        try:
            with cls.atomic():
                message = Message.objects.create(
                    chat=chat,
                    sender_id=pk,
                    message_type=parsed_type,
                    content=content,
                )
                recipient_ids = ChatMembership.participants_of(chat.id) - {pk}
                MessageReceipt.objects.bulk_create(
                    MessageReceipt(message=message, chat=chat, recipient_id=recipient_id)
                    for recipient_id in sorted(recipient_ids)
                )
                # Never move last activity backwards
                Chat.objects.filter(
                    Q(last_activity_at__lt=message.created_at), pk=chat.pk
                ).update(last_activity_at=message.created_at, updated_at=timezone.now())
        except DatabaseError as exc:
            return cls.handle_exception(exc, "send_message")

        cls.get_logger().debug(f"User {pk} sent message {message.id} to chat {chat.id}")

        get_router().broadcast_to_chat_sync(chat.id, events.message_created(message))
        return ServiceResult.success(message)

    @classmethod
    def list_messages(cls, chat_id) -> ServiceResult[list[Message]]:
        """Full history of a chat, oldest first (ties by id)."""
        result = ChatService.get_chat(chat_id)
        if not result:
            return result
        messages = list(
            Message.objects.filter(chat=result.data).order_by("created_at", "id")
        )
        return ServiceResult.success(messages)

    @classmethod
    def list_messages_page(
        cls,
        chat_id,
        page=0,
        page_size=MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
    ) -> ServiceResult[MessagePage]:
        """
        One page of history, newest first.

        Pages are zero-based. A page past the end is empty rather than an
        error, so clients can stop on has_more=False or on an empty page.

        Error codes:
            INVALID_PAGE: Page is negative or not an integer
            INVALID_PAGE_SIZE: Size outside 1..MAX_PAGE_SIZE
            CHAT_NOT_FOUND: The chat does not exist
        """
        result = ChatService.get_chat(chat_id)
        if not result:
            return result
        return cls._paginate(Message.objects.filter(chat=result.data), page, page_size)

    @classmethod
    def _paginate(cls, queryset, page, page_size) -> ServiceResult[MessagePage]:
        page = coerce_id(page)
        if page is None or page < 0:
            return ServiceResult.failure(
                "Page must be a non-negative integer",
                error_code="INVALID_PAGE",
            )
        page_size = coerce_id(page_size)
        if page_size is None or not 1 <= page_size <= MESSAGE_CONFIG.MAX_PAGE_SIZE:
            return ServiceResult.failure(
                f"Page size must be between 1 and {MESSAGE_CONFIG.MAX_PAGE_SIZE}",
                error_code="INVALID_PAGE_SIZE",
            )

        paginator = Paginator(queryset.order_by("-created_at", "-id"), page_size)
        total = paginator.count
        total_pages = math.ceil(total / page_size) if total else 0

        if page < total_pages:
            messages = list(paginator.page(page + 1).object_list)
        else:
            messages = []

        return ServiceResult.success(
            MessagePage(
                messages=messages,
                page=page,
                page_size=page_size,
                total_messages=total,
                total_pages=total_pages,
                has_more=page + 1 < total_pages,
            )
        )

    @classmethod
    def get_message(cls, message_id) -> ServiceResult[Message]:
        """
        Fetch a message by id.

        Does not check which chat it belongs to; callers scoping a request to
        one chat must compare message.chat_id themselves.
        """
        pk = coerce_id(message_id)
        message = Message.objects.filter(pk=pk).first() if pk is not None else None
        if message is None:
            return ServiceResult.failure(
                f"Message {message_id} not found",
                error_code="MESSAGE_NOT_FOUND",
                kind=ErrorKind.NOT_FOUND,
            )
        return ServiceResult.success(message)

    @classmethod
    def get_last_message(cls, chat_id) -> Message | None:
        pk = coerce_id(chat_id)
        if pk is None:
            return None
        return Message.objects.filter(chat_id=pk).order_by("-created_at", "-id").first()

    @classmethod
    def last_messages(cls, chat_ids: Iterable[int]) -> dict[int, Message]:
        """
        Most recent message of each chat, in one query.

        Chats without messages are absent from the result.
        """
        latest = (
            Chat.objects.filter(pk__in=list(chat_ids))
            .annotate(
                last_id=Subquery(
                    Message.objects.filter(chat=OuterRef("pk"))
                    .order_by("-created_at", "-id")
                    .values("pk")[:1]
                )
            )
            .values("last_id")
        )
        return {message.chat_id: message for message in Message.objects.filter(pk__in=latest)}

    @classmethod
    def delete_message(cls, message_id, requester_id) -> ServiceResult[None]:
        """
        Hard-delete a message. Only its sender may do this.

        Participants are notified with message.deleted.

        Error codes:
            MESSAGE_NOT_FOUND: The message does not exist
            NOT_MESSAGE_SENDER: The requester did not send it
        """
        result = cls.get_message(message_id)
        if not result:
            return result
        message = result.data

        requester_pk = coerce_id(requester_id)
        if message.sender_id is None or message.sender_id != requester_pk:
            return ServiceResult.failure(
                "Only the sender can delete this message",
                error_code="NOT_MESSAGE_SENDER",
                kind=ErrorKind.PERMISSION_DENIED,
            )

        chat_id, deleted_id = message.chat_id, message.id
        try:
            message.delete()
        except DatabaseError as exc:
            return cls.handle_exception(exc, "delete_message")

        cls.get_logger().info(
            f"User {requester_pk} deleted message {deleted_id} in chat {chat_id}"
        )
        get_router().broadcast_to_chat_sync(
            chat_id, events.message_deleted(chat_id, deleted_id)
        )
        return ServiceResult.success(None)

    @classmethod
    def search_messages(
        cls,
        chat_id,
        term: str,
        page=0,
        page_size=MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
    ) -> ServiceResult[MessagePage]:
        """
        Case-insensitive substring search over a chat's messages.

        Matches are paged like history, newest first, with the total match
        count and has_more so callers can walk every result.

        Error codes:
            EMPTY_SEARCH_TERM: Term is blank
            INVALID_PAGE: Page is negative or not an integer
            INVALID_PAGE_SIZE: Size outside 1..MAX_PAGE_SIZE
            CHAT_NOT_FOUND: The chat does not exist
        """
        term = term.strip() if isinstance(term, str) else ""
        if not term:
            return ServiceResult.failure(
                "Search term cannot be empty",
                error_code="EMPTY_SEARCH_TERM",
            )

        result = ChatService.get_chat(chat_id)
        if not result:
            return result

        return cls._paginate(
            Message.objects.filter(chat=result.data, content__icontains=term),
            page,
            page_size,
        )

    @classmethod
    def purge_messages_before(cls, cutoff: datetime, chat_id=None) -> ServiceResult[int]:
        """
        Hard-delete messages created before cutoff.

        Args:
            cutoff: Messages strictly older than this are removed
            chat_id: Limit the purge to one chat

        Returns:
            ServiceResult with the number of messages deleted
        """
        queryset = Message.objects.filter(created_at__lt=cutoff)
        if chat_id is not None:
            queryset = queryset.filter(chat_id=coerce_id(chat_id))

        try:
            with cls.atomic():
                # Receipts cascade; count messages only
                count = queryset.count()
                queryset.delete()
        except DatabaseError as exc:
            return cls.handle_exception(exc, "purge_messages_before")

        if count:
            cls.get_logger().info(f"Purged {count} messages older than {cutoff.isoformat()}")
        return ServiceResult.success(count)


class ReadTrackingService(BaseService):
    """
    Service for per-recipient read state.

    A message's unread state for a reader lives on that reader's
    MessageReceipt. Message.status is the aggregate the sender sees and is
    advanced in the same transaction as the receipts.

    Methods:
        mark_read: Mark every unread message in a chat as read for one reader
        unread_count: Messages from others the reader has not read
        unread_counts: unread_count for many chats in one query
        mark_delivered: SENT -> DELIVERED for one receipt
    """

    @classmethod
    @require_participant(user_id_param="reader_id")
    def mark_read(cls, chat_id, reader_id) -> ServiceResult[int]:
        """
        Mark all of a reader's unread messages in a chat as read.

        The transition is one conditional UPDATE on the reader's receipts, so
        two concurrent calls cannot both count the same row. The count
        returned is the number of receipts this call moved to READ.

        Error codes:
            NOT_PARTICIPANT: The reader is not in the chat
        """
        chat_id, reader_id = coerce_id(chat_id), coerce_id(reader_id)
        now = timezone.now()

        try:
            with cls.atomic():
                receipts = MessageReceipt.objects.filter(
                    chat_id=chat_id, recipient_id=reader_id
                )
                count = receipts.exclude(status=MessageStatus.READ).update(
                    status=MessageStatus.READ, read_at=now
                )
                if count:
                    read_ids = receipts.filter(status=MessageStatus.READ).values(
                        "message_id"
                    )
                    Message.objects.filter(pk__in=read_ids).exclude(
                        status=MessageStatus.READ
                    ).update(status=MessageStatus.READ, updated_at=now)
        except DatabaseError as exc:
            return cls.handle_exception(exc, "mark_read")

        if count:
            cls.get_logger().debug(
                f"User {reader_id} read {count} messages in chat {chat_id}"
            )
            get_router().broadcast_to_chat_sync(
                chat_id, events.messages_read(chat_id, reader_id, count)
            )
        return ServiceResult.success(count)

    @classmethod
    @require_participant(user_id_param="reader_id")
    def unread_count(cls, chat_id, reader_id) -> ServiceResult[int]:
        """
        Count messages from others that the reader has not read.

        Error codes:
            NOT_PARTICIPANT: The reader is not in the chat
        """
        count = (
            MessageReceipt.objects.filter(
                chat_id=coerce_id(chat_id), recipient_id=coerce_id(reader_id)
            )
            .exclude(status=MessageStatus.READ)
            .count()
        )
        return ServiceResult.success(count)

    @classmethod
    def unread_counts(cls, chat_ids: Iterable[int], reader_id) -> dict[int, int]:
        """
        unread_count() for many chats at once, for listing a user's chats.

        Membership is not checked; callers pass chats the reader belongs to.
        Chats with nothing unread are absent from the result.
        """
        rows = (
            MessageReceipt.objects.filter(
                chat_id__in=list(chat_ids), recipient_id=coerce_id(reader_id)
            )
            .exclude(status=MessageStatus.READ)
            .order_by()
            .values("chat_id")
            .annotate(unread=Count("pk"))
        )
        return {row["chat_id"]: row["unread"] for row in rows}

    @classmethod
    def mark_delivered(cls, message_id, recipient_id) -> ServiceResult[int]:
        """
        Record that a message reached one of the recipient's live connections.

        Only a SENT receipt moves; DELIVERED and READ are left alone. Returns
        the number of receipts updated (0 or 1).
        """
        message_pk, recipient_pk = coerce_id(message_id), coerce_id(recipient_id)
        if message_pk is None or recipient_pk is None:
            return ServiceResult.success(0)

        now = timezone.now()
        try:
            with cls.atomic():
                count = MessageReceipt.objects.filter(
                    message_id=message_pk,
                    recipient_id=recipient_pk,
                    status=MessageStatus.SENT,
                ).update(status=MessageStatus.DELIVERED, delivered_at=now)
                if count:
                    Message.objects.filter(
                        pk=message_pk, status=MessageStatus.SENT
                    ).update(status=MessageStatus.DELIVERED, updated_at=now)
        except DatabaseError as exc:
            return cls.handle_exception(exc, "mark_delivered")

        return ServiceResult.success(count)
