"""
Tests for ChatConsumer over a real ASGI stack.

Why it matters:
    The socket is where authentication, registration and fan-out meet. An
    anonymous handshake must never be registered, every accepted socket
    must be deregistered on close, and a message sent by one member must
    reach the others' sockets with the delivery receipt advanced.

Scenarios run through async_to_sync so the whole conversation shares one
event loop; transaction=True lets the consumer's database threads see the
fixture rows.
"""

import pytest
from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import channel_layers
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from chat import router as router_module
from chat.constants import EVENT_TYPES, WEBSOCKET_CONFIG
from chat.middleware import JWTAuthMiddleware
from chat.models import Message, MessageReceipt, MessageStatus
from chat.router import ConnectionRouter
from chat.routing import websocket_urlpatterns

TIMEOUT = 5

application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture(autouse=True)
def fresh_channel_layer(monkeypatch):
    """Each test gets its own in-memory channel layer."""
    monkeypatch.setattr(channel_layers, "backends", {})


@pytest.fixture
def live_router(monkeypatch):
    """Router that delivers over the channel layer, like production."""
    connection_router = ConnectionRouter()
    monkeypatch.setattr(router_module, "_default_router", connection_router)
    return connection_router


def _token(user) -> str:
    return str(AccessToken.for_user(user))


def _communicator(user) -> WebsocketCommunicator:
    return WebsocketCommunicator(application, f"/ws/chat/?token={_token(user)}")


async def _connect(user) -> WebsocketCommunicator:
    communicator = _communicator(user)
    connected, _ = await communicator.connect(timeout=TIMEOUT)
    assert connected
    return communicator


async def _roundtrip(communicator, frame) -> dict:
    await communicator.send_json_to(frame)
    return await communicator.receive_json_from(timeout=TIMEOUT)


class TestHandshake:
    def test_anonymous_is_rejected(self, live_router):
        async def scenario():
            communicator = WebsocketCommunicator(application, "/ws/chat/")
            return await communicator.connect(timeout=TIMEOUT)

        connected, code = async_to_sync(scenario)()

        assert connected is False
        assert code == WEBSOCKET_CONFIG.CLOSE_UNAUTHENTICATED
        assert live_router.connection_count() == 0

    def test_invalid_token_is_rejected(self, live_router):
        async def scenario():
            communicator = WebsocketCommunicator(application, "/ws/chat/?token=garbage")
            return await communicator.connect(timeout=TIMEOUT)

        connected, code = async_to_sync(scenario)()

        assert connected is False
        assert code == WEBSOCKET_CONFIG.CLOSE_UNAUTHENTICATED
        assert live_router.connection_count() == 0

    def test_query_token_registers_connection(self, live_router, alice):
        async def scenario():
            communicator = await _connect(alice)
            registered = [c.user_id for c in live_router.connections_for([alice.id])]
            await communicator.disconnect()
            return registered

        assert async_to_sync(scenario)() == [alice.id]
        assert live_router.connection_count() == 0

    def test_subprotocol_token(self, live_router, alice):
        async def scenario():
            communicator = WebsocketCommunicator(
                application, "/ws/chat/", subprotocols=["jwt", _token(alice)]
            )
            connected, subprotocol = await communicator.connect(timeout=TIMEOUT)
            count = live_router.connection_count()
            await communicator.disconnect()
            return connected, subprotocol, count

        connected, subprotocol, count = async_to_sync(scenario)()

        assert connected is True
        assert subprotocol == "jwt"
        assert count == 1

    def test_two_devices_for_one_user(self, live_router, alice):
        async def scenario():
            phone = await _connect(alice)
            laptop = await _connect(alice)
            count = live_router.connection_count()
            await phone.disconnect()
            remaining = live_router.connection_count()
            await laptop.disconnect()
            return count, remaining

        assert async_to_sync(scenario)() == (2, 1)
        assert live_router.connection_count() == 0

    def test_dropped_connection_is_closed(self, live_router, alice):
        async def scenario():
            communicator = await _connect(alice)
            try:
                [connection] = live_router.connections_for([alice.id])
                await live_router.transport.close(connection.channel_name)
                return await communicator.receive_output(timeout=TIMEOUT)
            finally:
                await communicator.disconnect()

        output = async_to_sync(scenario)()

        assert output["type"] == "websocket.close"
        assert output["code"] == WEBSOCKET_CONFIG.CLOSE_DROPPED
        assert live_router.connection_count() == 0


class TestMessageFrame:
    def test_message_reaches_peer_and_is_delivered(self, live_router, single_chat, alice, bob):
        async def scenario():
            alice_ws = await _connect(alice)
            bob_ws = await _connect(bob)
            try:
                ack = await _roundtrip(
                    alice_ws,
                    {"type": "message", "chat_id": single_chat.id, "content": "Hello"},
                )
                echo = await alice_ws.receive_json_from(timeout=TIMEOUT)
                created = await bob_ws.receive_json_from(timeout=TIMEOUT)
                # Frames are handled in order, so the pong means the
                # delivery receipt for the event above has been written
                pong = await _roundtrip(bob_ws, {"type": "ping"})
                receipt = await database_sync_to_async(MessageReceipt.objects.get)(
                    message_id=ack["message"]["id"], recipient=bob
                )
                return ack, echo, created, pong, receipt
            finally:
                await alice_ws.disconnect()
                await bob_ws.disconnect()

        ack, echo, created, pong, receipt = async_to_sync(scenario)()

        assert ack["type"] == EVENT_TYPES.MESSAGE_SENT
        assert ack["message"]["content"] == "Hello"
        assert ack["message"]["sender_id"] == alice.id
        assert echo["type"] == EVENT_TYPES.MESSAGE_CREATED
        assert created == {
            "type": EVENT_TYPES.MESSAGE_CREATED,
            "chat_id": single_chat.id,
            "message": ack["message"],
        }
        assert pong == {"type": EVENT_TYPES.PONG}
        assert receipt.status == MessageStatus.DELIVERED
        assert Message.objects.get(pk=ack["message"]["id"]).status == MessageStatus.DELIVERED

    def test_other_chats_are_not_received(self, live_router, single_chat, group_chat, alice, carol):
        async def scenario():
            alice_ws = await _connect(alice)
            carol_ws = await _connect(carol)
            try:
                await _roundtrip(
                    alice_ws,
                    {"type": "message", "chat_id": single_chat.id, "content": "just us"},
                )
                nothing = await carol_ws.receive_nothing(timeout=0.5)
                return nothing
            finally:
                await alice_ws.disconnect()
                await carol_ws.disconnect()

        assert async_to_sync(scenario)() is True

    def test_non_participant_gets_error(self, live_router, group_chat, outsider):
        async def scenario():
            communicator = await _connect(outsider)
            try:
                return await _roundtrip(
                    communicator,
                    {"type": "message", "chat_id": group_chat.id, "content": "let me in"},
                )
            finally:
                await communicator.disconnect()

        reply = async_to_sync(scenario)()

        assert reply["type"] == EVENT_TYPES.ERROR
        assert reply["error_code"] == "NOT_PARTICIPANT"
        assert not Message.objects.filter(chat=group_chat).exists()

    def test_blank_content_gets_error(self, live_router, single_chat, alice):
        async def scenario():
            communicator = await _connect(alice)
            try:
                return await _roundtrip(
                    communicator,
                    {"type": "message", "chat_id": single_chat.id, "content": "   "},
                )
            finally:
                await communicator.disconnect()

        reply = async_to_sync(scenario)()

        assert reply["type"] == EVENT_TYPES.ERROR
        assert reply["error_code"] == "EMPTY_CONTENT"


class TestReadFrame:
    def test_read_acks_and_notifies_sender(self, live_router, single_chat, alice, bob):
        async def scenario():
            alice_ws = await _connect(alice)
            bob_ws = await _connect(bob)
            try:
                await _roundtrip(
                    alice_ws,
                    {"type": "message", "chat_id": single_chat.id, "content": "read me"},
                )
                await alice_ws.receive_json_from(timeout=TIMEOUT)  # message.created
                await bob_ws.receive_json_from(timeout=TIMEOUT)  # message.created

                ack = await _roundtrip(bob_ws, {"type": "read", "chat_id": single_chat.id})
                seen_by_alice = await alice_ws.receive_json_from(timeout=TIMEOUT)
                return ack, seen_by_alice
            finally:
                await alice_ws.disconnect()
                await bob_ws.disconnect()

        ack, seen_by_alice = async_to_sync(scenario)()

        assert ack == {"type": EVENT_TYPES.READ_ACK, "chat_id": single_chat.id, "count": 1}
        assert seen_by_alice == {
            "type": EVENT_TYPES.MESSAGES_READ,
            "chat_id": single_chat.id,
            "reader_id": bob.id,
            "count": 1,
        }

    def test_read_by_non_participant(self, live_router, single_chat, outsider):
        async def scenario():
            communicator = await _connect(outsider)
            try:
                return await _roundtrip(
                    communicator, {"type": "read", "chat_id": single_chat.id}
                )
            finally:
                await communicator.disconnect()

        reply = async_to_sync(scenario)()

        assert reply["type"] == EVENT_TYPES.ERROR
        assert reply["error_code"] == "NOT_PARTICIPANT"


class TestMalformedFrames:
    @pytest.mark.parametrize(
        "frame,error_code",
        [
            ({"type": "shout"}, "UNKNOWN_FRAME_TYPE"),
            ({}, "UNKNOWN_FRAME_TYPE"),
            ([1, 2, 3], "INVALID_FRAME"),
        ],
    )
    def test_error_frame_keeps_socket_open(self, live_router, alice, frame, error_code):
        async def scenario():
            communicator = await _connect(alice)
            try:
                reply = await _roundtrip(communicator, frame)
                pong = await _roundtrip(communicator, {"type": "ping"})
                return reply, pong
            finally:
                await communicator.disconnect()

        reply, pong = async_to_sync(scenario)()

        assert reply["type"] == EVENT_TYPES.ERROR
        assert reply["error_code"] == error_code
        assert pong == {"type": EVENT_TYPES.PONG}

    def test_invalid_json(self, live_router, alice):
        async def scenario():
            communicator = await _connect(alice)
            try:
                await communicator.send_to(text_data="{not json")
                return await communicator.receive_json_from(timeout=TIMEOUT)
            finally:
                await communicator.disconnect()

        reply = async_to_sync(scenario)()

        assert reply["type"] == EVENT_TYPES.ERROR
        assert reply["error_code"] == "INVALID_JSON"

    def test_binary_frame(self, live_router, alice):
        async def scenario():
            communicator = await _connect(alice)
            try:
                await communicator.send_to(bytes_data=b"\x00\x01")
                return await communicator.receive_json_from(timeout=TIMEOUT)
            finally:
                await communicator.disconnect()

        reply = async_to_sync(scenario)()

        assert reply["error_code"] == "INVALID_FRAME"
