"""
WebSocket consumer for the chat application.

One socket per client connection carries live events for every chat the
user belongs to. Which events a socket receives is decided by
ConnectionRouter from current membership; the consumer only registers
itself and writes what it is handed.

Consumers:
    ChatConsumer: Authenticated live event stream plus a small command set

Authentication:
    JWTAuthMiddleware resolves scope["user"] before connect(). Anonymous
    handshakes are closed with code 4001 and never registered. A socket the
    router dropped after a failed send is closed with code 4002.

Message Types (from client):
    - message: {"type": "message", "chat_id", "content", "message_type"?}
    - read: {"type": "read", "chat_id"}
    - ping: {"type": "ping"}

Message Types (to client):
    - message.created / message.deleted / messages.read /
      chat.participants_changed: Broadcast events (see chat.events)
    - message.sent: Ack for this connection's own message frame
    - read.ack: Ack for a read frame, with the number of messages marked
    - pong: Reply to ping
    - error: {"type": "error", "error_code", "message"}; the socket stays open
"""

from __future__ import annotations

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat import events
from chat.constants import EVENT_TYPES, WEBSOCKET_CONFIG
from chat.middleware import JWT_SUBPROTOCOL
from chat.router import get_router
from chat.services import MessageService, ReadTrackingService

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for the live chat event stream.

    Handles:
        - Handshake gating on the authenticated user
        - Registration with the ConnectionRouter for the socket's lifetime
        - Sending messages and marking chats read
        - Relaying router events and recording delivery

    Attributes:
        user: Authenticated user (fixed at handshake)
        connection: Router registration, None until accepted
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.connection = None

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects anonymous users with 4001; otherwise accepts and registers
        the connection under the user.
        """
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=WEBSOCKET_CONFIG.CLOSE_UNAUTHENTICATED)
            return

        self.user = user
        subprotocol = (
            JWT_SUBPROTOCOL if JWT_SUBPROTOCOL in self.scope.get("subprotocols", []) else None
        )
        await self.accept(subprotocol=subprotocol)

        self.connection = get_router().on_connect(self.channel_name, user.id)
        logger.info(f"User {user.id} connected on {self.channel_name}")

    async def disconnect(self, close_code):
        """Deregister from the router. Safe when connect() rejected the socket."""
        if self.connection is not None:
            get_router().on_disconnect(self.connection)
            logger.info(
                f"User {self.connection.user_id} disconnected "
                f"({self.channel_name}, code {close_code})"
            )
            self.connection = None

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """Decode JSON frames, answering malformed ones with an error frame."""
        if text_data is None:
            await self._send_error("INVALID_FRAME", "Only text frames are supported")
            return
        try:
            content = await self.decode_json(text_data)
        except json.JSONDecodeError:
            await self._send_error("INVALID_JSON", "Frame is not valid JSON")
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Handle incoming WebSocket frames.

        Expected frame format:
            {"type": "message", "chat_id": 1, "content": "Hello!"}
            {"type": "read", "chat_id": 1}
            {"type": "ping"}
        """
        if not isinstance(content, dict):
            await self._send_error("INVALID_FRAME", "Frame must be a JSON object")
            return

        frame_type = content.get("type")

        if frame_type == "message":
            await self._handle_message(content)
        elif frame_type == "read":
            await self._handle_read(content)
        elif frame_type == "ping":
            await self.send_json({"type": EVENT_TYPES.PONG})
        else:
            await self._send_error(
                "UNKNOWN_FRAME_TYPE", f"Unknown message type: {frame_type}"
            )

    async def _handle_message(self, content):
        result = await database_sync_to_async(MessageService.send_message)(
            content.get("chat_id"),
            self.user.id,
            content.get("content"),
            content.get("message_type") or "text",
        )
        if not result:
            await self._send_error(result.error_code, result.error)
            return

        await self.send_json(
            {
                "type": EVENT_TYPES.MESSAGE_SENT,
                "message": events.message_payload(result.data),
            }
        )

    async def _handle_read(self, content):
        chat_id = content.get("chat_id")
        result = await database_sync_to_async(ReadTrackingService.mark_read)(
            chat_id, self.user.id
        )
        if not result:
            await self._send_error(result.error_code, result.error)
            return

        await self.send_json(
            {"type": EVENT_TYPES.READ_ACK, "chat_id": chat_id, "count": result.data}
        )

    async def chat_event(self, event):
        """
        Handle chat.event messages from the channel layer.

        Writes the router's event to the socket. A message.created that
        reaches a recipient (not the sender) advances its receipt to
        DELIVERED.
        """
        payload = event["event"]
        await self.send_json(payload)

        if payload.get("type") != EVENT_TYPES.MESSAGE_CREATED or self.user is None:
            return
        message = payload["message"]
        if message.get("sender_id") != self.user.id:
            await database_sync_to_async(ReadTrackingService.mark_delivered)(
                message["id"], self.user.id
            )

    async def chat_close(self, event):
        """
        Handle chat.close messages from the channel layer.

        The router sends this after a failed delivery has dropped the
        connection, so the client sees a close (4002) and can reconnect
        instead of holding a socket that no longer receives events.
        """
        if self.connection is not None:
            get_router().on_disconnect(self.connection)
            self.connection = None
        logger.info(f"Closing {self.channel_name} after it was dropped by the router")
        await self.close(code=WEBSOCKET_CONFIG.CLOSE_DROPPED)

    async def _send_error(self, error_code: str | None, message: str | None):
        await self.send_json(
            {
                "type": EVENT_TYPES.ERROR,
                "error_code": error_code,
                "message": message,
            }
        )
