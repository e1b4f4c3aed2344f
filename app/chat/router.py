"""
Membership-scoped fan-out of live chat events.

ConnectionRouter keeps the process-local registry of open WebSocket
connections and delivers each event only to connections owned by the
chat's current participants.

Registry:
    user_id -> {channel_name: Connection}

    Guarded by a threading.Lock because it is mutated from consumer
    lifecycles on the event loop and read from sync request handlers
    (through async_to_sync) at the same time. Broadcasts work on a
    snapshot taken under the lock and never hold it while sending.

Delivery rules:
    - Recipients are computed fresh per broadcast from ChatMembership; the
      chat -> connections mapping is derived, never stored.
    - A connection is re-checked right before its send; connections
      deregistered after the snapshot are skipped.
    - Sends run concurrently. A failing send is logged and the connection is
      deregistered and asked to close its socket; other sends are unaffected.

Transport:
    ChannelLayerTransport sends to the consumer's channel name over the
    Channels layer; the consumer's chat_event handler writes it to the
    socket. Tests swap in a recording transport.

Usage:
    router = get_router()
    connection = router.on_connect(self.channel_name, user.id)
    ...
    router.on_disconnect(connection)

    # From sync service code, after the write has committed
    get_router().broadcast_to_chat_sync(chat.id, events.message_created(message))
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import DEFAULT_CHANNEL_LAYER, get_channel_layer

from chat.constants import WEBSOCKET_CONFIG
from chat.membership import ChatMembership

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connection:
    """One live socket. The user id is fixed at handshake."""

    channel_name: str
    user_id: int


class Transport(Protocol):
    """Delivers one event to one connection; raises on failure."""

    async def send(self, channel_name: str, event: dict) -> None: ...

    async def close(self, channel_name: str) -> None: ...


class ChannelLayerTransport:
    """Transport backed by the Channels layer (Redis in production)."""

    def __init__(self, alias: str = DEFAULT_CHANNEL_LAYER):
        self.alias = alias

    async def send(self, channel_name: str, event: dict) -> None:
        channel_layer = get_channel_layer(self.alias)
        await channel_layer.send(
            channel_name,
            {"type": WEBSOCKET_CONFIG.LAYER_EVENT_TYPE, "event": event},
        )

    async def close(self, channel_name: str) -> None:
        channel_layer = get_channel_layer(self.alias)
        await channel_layer.send(channel_name, {"type": WEBSOCKET_CONFIG.LAYER_CLOSE_TYPE})


class ConnectionRouter:
    """
    Registry of live connections plus participant-scoped broadcast.

    Attributes:
        transport: Where events are sent
    """

    def __init__(self, transport: Transport | None = None):
        self.transport = transport or ChannelLayerTransport()
        self._lock = threading.Lock()
        self._connections: dict[int, dict[str, Connection]] = {}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def on_connect(self, channel_name: str, user_id: int) -> Connection:
        """Register an authenticated connection under its user."""
        connection = Connection(channel_name=channel_name, user_id=user_id)
        with self._lock:
            self._connections.setdefault(user_id, {})[channel_name] = connection
        logger.debug(f"Registered connection {channel_name} for user {user_id}")
        return connection

    def on_disconnect(self, connection: Connection) -> bool:
        """
        Deregister a connection.

        Idempotent: returns False when the connection was already gone.
        """
        with self._lock:
            user_connections = self._connections.get(connection.user_id)
            if not user_connections or connection.channel_name not in user_connections:
                return False
            del user_connections[connection.channel_name]
            if not user_connections:
                del self._connections[connection.user_id]
        logger.debug(
            f"Deregistered connection {connection.channel_name} "
            f"for user {connection.user_id}"
        )
        return True

    def is_registered(self, connection: Connection) -> bool:
        with self._lock:
            return connection.channel_name in self._connections.get(connection.user_id, {})

    def connections_for(self, user_ids: Iterable[int]) -> list[Connection]:
        """Snapshot of the registered connections owned by these users."""
        with self._lock:
            return [
                connection
                for user_id in user_ids
                for connection in self._connections.get(user_id, {}).values()
            ]

    def connection_count(self) -> int:
        with self._lock:
            return sum(len(conns) for conns in self._connections.values())

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def broadcast_to_chat(self, chat_id: int, event: dict) -> int:
        """
        Deliver an event to every live connection of the chat's participants.

        Returns:
            Number of connections the event was handed to
        """
        if not self.connection_count():
            return 0

        participant_ids = await database_sync_to_async(ChatMembership.participants_of)(
            chat_id
        )
        return await self.send_to_users(participant_ids, event)

    async def send_to_users(self, user_ids: Iterable[int], event: dict) -> int:
        """Deliver an event to every live connection of the given users."""
        connections = self.connections_for(user_ids)
        if not connections:
            return 0

        delivered = await asyncio.gather(
            *(self._deliver(connection, event) for connection in connections)
        )
        return sum(delivered)

    def broadcast_to_chat_sync(self, chat_id: int, event: dict) -> int:
        """
        broadcast_to_chat() for synchronous callers (services, views, tasks).

        Membership is read on the caller's own connection so the lookup sees
        the caller's transaction; only the sends go through the event loop.
        """
        if not self.connection_count():
            return 0

        participant_ids = ChatMembership.participants_of(chat_id)
        return async_to_sync(self.send_to_users)(participant_ids, event)

    def send_to_users_sync(self, user_ids: Iterable[int], event: dict) -> int:
        return async_to_sync(self.send_to_users)(list(user_ids), event)

    async def _deliver(self, connection: Connection, event: dict) -> bool:
        if not self.is_registered(connection):
            return False

        try:
            await self.transport.send(connection.channel_name, event)
        except Exception as e:  # any transport failure is per-connection
            logger.warning(
                f"Delivery to {connection.channel_name} (user {connection.user_id}) "
                f"failed, dropping connection: {e!r}"
            )
            self.on_disconnect(connection)
            await self._close(connection)
            return False

        return True

    async def _close(self, connection: Connection) -> None:
        # The registry entry is already gone; this only tells the socket
        try:
            await self.transport.close(connection.channel_name)
        except Exception as e:
            logger.warning(f"Could not close {connection.channel_name}: {e!r}")


_default_router: ConnectionRouter | None = None
_default_router_lock = threading.Lock()


def get_router() -> ConnectionRouter:
    """Return the process-wide router, creating it on first use."""
    global _default_router
    if _default_router is None:
        with _default_router_lock:
            if _default_router is None:
                _default_router = ConnectionRouter()
    return _default_router
