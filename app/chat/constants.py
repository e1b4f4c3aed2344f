"""
Constants and configuration for the chat module.

This module centralizes configuration values for:
- Message operations (content limits, history and search paging)
- Chat directory limits (group size, name length)
- Live delivery (WebSocket close codes, event names)

Import example:
    from chat.constants import MESSAGE_CONFIG, WEBSOCKET_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters, after trimming

    # History paging (pages are zero-based, newest first)
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 100


# =============================================================================
# Chat Configuration
# =============================================================================


class CHAT_CONFIG:
    """Configuration for the chat directory."""

    MAX_NAME_LENGTH: Final[int] = 100
    MAX_GROUP_PARTICIPANTS: Final[int] = 500


# =============================================================================
# WebSocket Configuration
# =============================================================================


class WEBSOCKET_CONFIG:
    """Close codes and event names for the live event stream."""

    # 4000-4999 is the application range for close codes
    CLOSE_UNAUTHENTICATED: Final[int] = 4001
    CLOSE_DROPPED: Final[int] = 4002  # Dropped by the router after a failed send

    # Channel layer message type; dispatched to ChatConsumer.chat_event
    LAYER_EVENT_TYPE: Final[str] = "chat.event"
    # Dispatched to ChatConsumer.chat_close
    LAYER_CLOSE_TYPE: Final[str] = "chat.close"


class EVENT_TYPES:
    """Event names sent to clients."""

    MESSAGE_CREATED: Final[str] = "message.created"
    MESSAGE_DELETED: Final[str] = "message.deleted"
    MESSAGES_READ: Final[str] = "messages.read"
    PARTICIPANTS_CHANGED: Final[str] = "chat.participants_changed"

    # Direct replies to the requesting connection only
    MESSAGE_SENT: Final[str] = "message.sent"
    READ_ACK: Final[str] = "read.ack"
    PONG: Final[str] = "pong"
    ERROR: Final[str] = "error"
