"""
Payloads for live chat events.

Events are plain JSON-serializable dicts, built once per broadcast and sent
unchanged to every recipient connection. Ids are integers and timestamps
are ISO 8601 strings.

Event shapes:
    {"type": "message.created", "chat_id": 1, "message": {...}}
    {"type": "message.deleted", "chat_id": 1, "message_id": 7}
    {"type": "messages.read", "chat_id": 1, "reader_id": 3, "count": 4}
    {"type": "chat.participants_changed", "chat_id": 1,
     "participant_ids": [1, 2, 3]}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat.constants import EVENT_TYPES

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Message


def message_payload(message: Message) -> dict:
    """Serialize a message the same way for every recipient."""
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "message_type": message.message_type,
        "status": message.status,
        "created_at": message.created_at.isoformat(),
    }


def message_created(message: Message) -> dict:
    return {
        "type": EVENT_TYPES.MESSAGE_CREATED,
        "chat_id": message.chat_id,
        "message": message_payload(message),
    }


def message_deleted(chat_id: int, message_id: int) -> dict:
    return {
        "type": EVENT_TYPES.MESSAGE_DELETED,
        "chat_id": chat_id,
        "message_id": message_id,
    }


def messages_read(chat_id: int, reader_id: int, count: int) -> dict:
    return {
        "type": EVENT_TYPES.MESSAGES_READ,
        "chat_id": chat_id,
        "reader_id": reader_id,
        "count": count,
    }


def participants_changed(chat_id: int, participant_ids: Iterable[int]) -> dict:
    return {
        "type": EVENT_TYPES.PARTICIPANTS_CHANGED,
        "chat_id": chat_id,
        "participant_ids": sorted(participant_ids),
    }
