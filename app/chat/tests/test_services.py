"""
Tests for ChatService and MessageService.

Why it matters:
    These services own the chat invariants: one SINGLE chat per pair,
    SINGLE membership never changes, GROUP chats never empty out, only
    members post, only senders delete. Failures must come back with the
    right ErrorKind so the HTTP and WebSocket layers report them correctly.
"""

from datetime import timedelta
from unittest import mock

import pytest
from django.db import DatabaseError, IntegrityError
from django.utils import timezone

from core.services import ErrorKind

from chat.constants import CHAT_CONFIG, EVENT_TYPES, MESSAGE_CONFIG
from chat.models import (
    Chat,
    ChatParticipant,
    ChatType,
    DirectChatPair,
    Message,
    MessageReceipt,
    MessageStatus,
)
from chat.services import ChatService, MessageService
from chat.tests.factories import ChatFactory, MessageFactory


# =============================================================================
# ChatService.create_chat
# =============================================================================


@pytest.mark.django_db
class TestCreateSingleChat:
    def test_creates_chat_pair_and_participants(self, alice, bob):
        result = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.SINGLE)

        assert result.success
        chat = result.data
        assert chat.chat_type == ChatType.SINGLE
        assert chat.name == ""
        assert set(chat.participants.values_list("user_id", flat=True)) == {alice.id, bob.id}
        assert DirectChatPair.objects.filter(chat=chat).exists()

    def test_same_pair_in_either_order_returns_same_chat(self, alice, bob):
        first = ChatService.create_chat([alice.id, bob.id], chat_type="single").data
        second = ChatService.create_chat([bob.id, alice.id], chat_type="SINGLE").data

        assert first.id == second.id
        assert Chat.objects.filter(chat_type=ChatType.SINGLE).count() == 1

    def test_name_is_ignored(self, alice, bob):
        chat = ChatService.create_chat(
            [alice.id, bob.id], chat_type=ChatType.SINGLE, name="ignored"
        ).data

        assert chat.name == ""

    def test_three_participants_rejected_and_nothing_persisted(self, alice, bob, carol):
        result = ChatService.create_chat(
            [alice.id, bob.id, carol.id], chat_type=ChatType.SINGLE
        )

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "SINGLE_CHAT_REQUIRES_TWO"
        assert not Chat.objects.exists()

    def test_same_user_twice_rejected(self, alice):
        result = ChatService.create_chat([alice.id, alice.id], chat_type=ChatType.SINGLE)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "SINGLE_CHAT_REQUIRES_TWO"

    def test_lost_race_returns_winner(self, alice, bob):
        """A pair insert that collides with a concurrent winner returns the winner."""
        winner = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.SINGLE).data

        with mock.patch.object(ChatService, "_find_single_chat", side_effect=[None, winner]):
            result = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.SINGLE)

        assert result.success
        assert result.data.id == winner.id
        assert Chat.objects.filter(chat_type=ChatType.SINGLE).count() == 1

    def test_unresolved_conflict_is_conflict(self, alice, bob):
        with (
            mock.patch.object(ChatService, "_find_single_chat", return_value=None),
            mock.patch.object(
                DirectChatPair.objects, "create", side_effect=IntegrityError("dup")
            ),
        ):
            result = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.SINGLE)

        assert result.kind is ErrorKind.CONFLICT
        assert result.error_code == "CHAT_CONFLICT"


@pytest.mark.django_db
class TestCreateGroupChat:
    def test_creates_group_with_name(self, alice, bob, carol):
        result = ChatService.create_chat(
            [alice.id, bob.id, carol.id], chat_type=ChatType.GROUP, name="  Team  "
        )

        assert result.success
        assert result.data.name == "Team"
        assert result.data.participants.count() == 3

    def test_duplicates_collapse(self, alice, bob):
        chat = ChatService.create_chat(
            [alice.id, bob.id, bob.id, alice.id], chat_type=ChatType.GROUP
        ).data

        assert chat.participants.count() == 2

    def test_single_member_group_allowed(self, alice):
        result = ChatService.create_chat([alice.id], chat_type=ChatType.GROUP)

        assert result.success

    def test_groups_are_not_deduplicated(self, alice, bob):
        first = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.GROUP).data
        second = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.GROUP).data

        assert first.id != second.id

    def test_name_too_long(self, alice):
        result = ChatService.create_chat(
            [alice.id],
            chat_type=ChatType.GROUP,
            name="x" * (CHAT_CONFIG.MAX_NAME_LENGTH + 1),
        )

        assert result.error_code == "NAME_TOO_LONG"


@pytest.mark.django_db
class TestCreateChatValidation:
    @pytest.mark.parametrize("participant_ids", [[], None])
    def test_empty_participants(self, participant_ids):
        result = ChatService.create_chat(participant_ids, chat_type=ChatType.GROUP)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "EMPTY_PARTICIPANTS"

    @pytest.mark.parametrize("chat_type", ["channel", "", None, "DIRECT"])
    def test_unknown_type_token(self, alice, bob, chat_type):
        result = ChatService.create_chat([alice.id, bob.id], chat_type=chat_type)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "INVALID_CHAT_TYPE"

    def test_unknown_user(self, alice):
        result = ChatService.create_chat([alice.id, 999_999], chat_type=ChatType.SINGLE)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "USER_NOT_FOUND"
        assert result.errors == {"participant_ids": ["999999"]}
        assert not Chat.objects.exists()

    def test_non_integer_id(self, alice):
        result = ChatService.create_chat([alice.id, "bob"], chat_type=ChatType.GROUP)

        assert result.error_code == "INVALID_PARTICIPANT_ID"

    def test_database_error_is_internal(self, alice, bob, caplog):
        with mock.patch.object(Chat.objects, "create", side_effect=DatabaseError("down")):
            result = ChatService.create_chat([alice.id, bob.id], chat_type=ChatType.GROUP)

        assert result.kind is ErrorKind.INTERNAL
        assert result.error == "Internal error"
        assert "create_chat: down" in caplog.text


# =============================================================================
# ChatService lookups
# =============================================================================


@pytest.mark.django_db
class TestChatLookups:
    def test_get_chat(self, group_chat):
        assert ChatService.get_chat(group_chat.id).data == group_chat

    @pytest.mark.parametrize("chat_id", [999_999, "abc", None])
    def test_get_chat_not_found(self, chat_id):
        result = ChatService.get_chat(chat_id)

        assert result.kind is ErrorKind.NOT_FOUND
        assert result.error_code == "CHAT_NOT_FOUND"

    def test_list_chats_most_recent_first(self, alice, bob, carol):
        older = ChatFactory(members=[alice, bob])
        newer = ChatFactory(members=[alice, carol])
        ChatFactory(members=[bob, carol])
        Chat.objects.filter(pk=older.pk).update(
            last_activity_at=timezone.now() - timedelta(hours=1)
        )

        chats = ChatService.list_chats_for_user(alice.id).data

        assert [chat.id for chat in chats] == [newer.id, older.id]

    def test_list_chats_activity_moves_chat_to_top(self, alice, bob, carol):
        first = ChatFactory(members=[alice, bob])
        ChatFactory(members=[alice, carol])

        MessageService.send_message(first.id, bob.id, "bump")

        assert ChatService.list_chats_for_user(alice.id).data[0].id == first.id

    def test_list_chats_unknown_user(self):
        result = ChatService.list_chats_for_user(999_999)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "USER_NOT_FOUND"

    def test_list_chats_user_without_chats(self, outsider):
        assert ChatService.list_chats_for_user(outsider.id).data == []


# =============================================================================
# ChatService membership
# =============================================================================


@pytest.mark.django_db
class TestParticipants:
    def test_add_participant(self, group_chat, outsider):
        result = ChatService.add_participant(group_chat.id, outsider.id)

        assert result.success
        assert group_chat.participants.filter(user=outsider).exists()

    def test_add_existing_member_is_noop(self, group_chat, alice):
        result = ChatService.add_participant(group_chat.id, alice.id)

        assert result.success
        assert group_chat.participants.filter(user=alice).count() == 1

    def test_add_to_single_chat_rejected(self, single_chat, carol):
        result = ChatService.add_participant(single_chat.id, carol.id)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "NOT_GROUP_CHAT"
        assert single_chat.participants.count() == 2

    def test_add_unknown_user(self, group_chat):
        result = ChatService.add_participant(group_chat.id, 999_999)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "USER_NOT_FOUND"

    def test_add_to_unknown_chat(self, alice):
        assert ChatService.add_participant(999_999, alice.id).kind is ErrorKind.NOT_FOUND

    def test_remove_participant(self, group_chat, carol):
        result = ChatService.remove_participant(group_chat.id, carol.id)

        assert result.success
        assert not group_chat.participants.filter(user=carol).exists()

    def test_remove_non_member_is_noop(self, group_chat, outsider):
        before = set(group_chat.participants.values_list("user_id", flat=True))

        result = ChatService.remove_participant(group_chat.id, outsider.id)

        assert result.success
        assert set(group_chat.participants.values_list("user_id", flat=True)) == before

    def test_remove_from_single_chat_rejected(self, single_chat, bob):
        result = ChatService.remove_participant(single_chat.id, bob.id)

        assert result.error_code == "NOT_GROUP_CHAT"
        assert single_chat.participants.count() == 2

    def test_remove_unknown_user(self, group_chat):
        assert ChatService.remove_participant(group_chat.id, 999_999).error_code == (
            "USER_NOT_FOUND"
        )

    def test_last_participant_cannot_leave(self, alice):
        chat = ChatFactory(members=[alice])

        result = ChatService.remove_participant(chat.id, alice.id)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "LAST_PARTICIPANT"
        assert chat.participants.count() == 1

    def test_membership_change_is_broadcast(self, router, transport, group_chat, alice, carol):
        alice_conn = router.on_connect("alice-1", alice.id)
        carol_conn = router.on_connect("carol-1", carol.id)

        ChatService.remove_participant(group_chat.id, carol.id)

        alice_events = transport.events_for(alice_conn.channel_name)
        assert alice_events[-1]["type"] == EVENT_TYPES.PARTICIPANTS_CHANGED
        assert carol.id not in alice_events[-1]["participant_ids"]
        # The removed user hears about the removal once, then nothing more
        assert transport.event_types_for(carol_conn.channel_name) == [
            EVENT_TYPES.PARTICIPANTS_CHANGED
        ]

        MessageService.send_message(group_chat.id, alice.id, "after")

        assert transport.event_types_for(carol_conn.channel_name) == [
            EVENT_TYPES.PARTICIPANTS_CHANGED
        ]


# =============================================================================
# MessageService.send_message
# =============================================================================


@pytest.mark.django_db
class TestSendMessage:
    def test_single_chat_scenario(self, single_chat, alice):
        result = MessageService.send_message(single_chat.id, alice.id, "hi")

        assert result.success
        messages = MessageService.list_messages(single_chat.id).data
        assert len(messages) == 1
        assert messages[0].content == "hi"
        assert messages[0].status == MessageStatus.SENT
        assert messages[0].sender_id == alice.id

    def test_content_is_trimmed(self, single_chat, alice):
        message = MessageService.send_message(single_chat.id, alice.id, "  hi  ").data

        assert message.content == "hi"

    def test_creates_receipts_for_other_participants(self, group_chat, alice, bob, carol):
        message = MessageService.send_message(group_chat.id, alice.id, "hello").data

        receipts = MessageReceipt.objects.filter(message=message)
        assert set(receipts.values_list("recipient_id", flat=True)) == {bob.id, carol.id}
        assert all(r.status == MessageStatus.SENT for r in receipts)

    def test_bumps_last_activity(self, group_chat, alice):
        Chat.objects.filter(pk=group_chat.pk).update(
            last_activity_at=timezone.now() - timedelta(days=1)
        )

        message = MessageService.send_message(group_chat.id, alice.id, "hello").data

        group_chat.refresh_from_db()
        assert group_chat.last_activity_at == message.created_at

    def test_message_type(self, group_chat, alice):
        message = MessageService.send_message(
            group_chat.id, alice.id, "https://cdn/x.png", message_type="IMAGE"
        ).data

        assert message.message_type == "image"

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_blank_content(self, group_chat, alice, content):
        result = MessageService.send_message(group_chat.id, alice.id, content)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "EMPTY_CONTENT"

    def test_blank_content_checked_before_chat(self, alice):
        result = MessageService.send_message(999_999, alice.id, " ")

        assert result.error_code == "EMPTY_CONTENT"

    def test_content_too_long(self, group_chat, alice):
        result = MessageService.send_message(
            group_chat.id, alice.id, "x" * (MESSAGE_CONFIG.MAX_CONTENT_LENGTH + 1)
        )

        assert result.error_code == "CONTENT_TOO_LONG"

    def test_unknown_message_type(self, group_chat, alice):
        result = MessageService.send_message(
            group_chat.id, alice.id, "hi", message_type="sticker"
        )

        assert result.error_code == "INVALID_MESSAGE_TYPE"

    def test_unknown_chat(self, alice):
        result = MessageService.send_message(999_999, alice.id, "hi")

        assert result.kind is ErrorKind.NOT_FOUND
        assert result.error_code == "CHAT_NOT_FOUND"

    def test_unknown_sender(self, group_chat):
        result = MessageService.send_message(group_chat.id, 999_999, "hi")

        assert result.kind is ErrorKind.NOT_FOUND
        assert result.error_code == "SENDER_NOT_FOUND"

    def test_non_participant(self, group_chat, outsider):
        result = MessageService.send_message(group_chat.id, outsider.id, "hi")

        assert result.kind is ErrorKind.PERMISSION_DENIED
        assert not Message.objects.exists()

    def test_broadcasts_to_participants_only(self, router, transport, group_chat, alice, outsider):
        router.on_connect("alice-1", alice.id)
        router.on_connect("outsider-1", outsider.id)

        message = MessageService.send_message(group_chat.id, alice.id, "hi").data

        events = transport.events_for("alice-1")
        assert events == [
            {
                "type": EVENT_TYPES.MESSAGE_CREATED,
                "chat_id": group_chat.id,
                "message": {
                    "id": message.id,
                    "chat_id": group_chat.id,
                    "sender_id": alice.id,
                    "content": "hi",
                    "message_type": "text",
                    "status": "sent",
                    "created_at": message.created_at.isoformat(),
                },
            }
        ]
        assert transport.events_for("outsider-1") == []

    def test_failed_persist_does_not_broadcast(self, router, transport, group_chat, alice):
        router.on_connect("alice-1", alice.id)

        with mock.patch.object(Message.objects, "create", side_effect=DatabaseError("down")):
            result = MessageService.send_message(group_chat.id, alice.id, "hi")

        assert result.kind is ErrorKind.INTERNAL
        assert transport.sent == []


# =============================================================================
# MessageService history
# =============================================================================


@pytest.mark.django_db
class TestMessageHistory:
    @pytest.fixture
    def history(self, group_chat, alice):
        return [
            MessageService.send_message(group_chat.id, alice.id, f"m{i}").data
            for i in range(5)
        ]

    def test_list_messages_ascending(self, group_chat, history):
        messages = MessageService.list_messages(group_chat.id).data

        assert [m.id for m in messages] == [m.id for m in history]

    def test_list_messages_unknown_chat(self):
        assert MessageService.list_messages(999_999).kind is ErrorKind.NOT_FOUND

    def test_first_page_is_newest(self, group_chat, history):
        page = MessageService.list_messages_page(group_chat.id, page=0, page_size=2).data

        assert [m.content for m in page.messages] == ["m4", "m3"]
        assert page.total_messages == 5
        assert page.total_pages == 3
        assert page.has_more is True

    def test_last_page(self, group_chat, history):
        page = MessageService.list_messages_page(group_chat.id, page=2, page_size=2).data

        assert [m.content for m in page.messages] == ["m0"]
        assert page.has_more is False

    def test_page_past_end_is_empty(self, group_chat, history):
        page = MessageService.list_messages_page(group_chat.id, page=9, page_size=2).data

        assert page.messages == []
        assert page.has_more is False
        assert page.total_messages == 5

    def test_empty_chat(self, group_chat):
        page = MessageService.list_messages_page(group_chat.id).data

        assert page.messages == []
        assert page.total_pages == 0
        assert page.page_size == MESSAGE_CONFIG.DEFAULT_PAGE_SIZE

    def test_string_arguments_accepted(self, group_chat, history):
        page = MessageService.list_messages_page(group_chat.id, page="1", page_size="2").data

        assert [m.content for m in page.messages] == ["m2", "m1"]

    @pytest.mark.parametrize(
        "page,size,code",
        [
            (-1, 10, "INVALID_PAGE"),
            ("x", 10, "INVALID_PAGE"),
            (0, 0, "INVALID_PAGE_SIZE"),
            (0, MESSAGE_CONFIG.MAX_PAGE_SIZE + 1, "INVALID_PAGE_SIZE"),
        ],
    )
    def test_invalid_paging(self, group_chat, page, size, code):
        result = MessageService.list_messages_page(group_chat.id, page=page, page_size=size)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == code

    def test_page_unknown_chat(self):
        assert MessageService.list_messages_page(999_999).kind is ErrorKind.NOT_FOUND

    def test_get_last_message(self, group_chat, history):
        assert MessageService.get_last_message(group_chat.id).id == history[-1].id

    def test_get_last_message_empty(self, single_chat):
        assert MessageService.get_last_message(single_chat.id) is None

    def test_last_messages_for_many_chats(self, group_chat, single_chat, history, bob):
        other = MessageService.send_message(single_chat.id, bob.id, "only").data
        empty = ChatFactory(name="Quiet")

        last = MessageService.last_messages([group_chat.id, single_chat.id, empty.id])

        assert {chat_id: m.id for chat_id, m in last.items()} == {
            group_chat.id: history[-1].id,
            single_chat.id: other.id,
        }


# =============================================================================
# MessageService get / delete / search / purge
# =============================================================================


@pytest.mark.django_db
class TestGetAndDeleteMessage:
    def test_get_message(self, group_chat, alice):
        message = MessageFactory(chat=group_chat, sender=alice)

        assert MessageService.get_message(message.id).data == message

    def test_get_message_not_found(self):
        result = MessageService.get_message(999_999)

        assert result.kind is ErrorKind.NOT_FOUND
        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_sender_can_delete(self, group_chat, alice):
        message = MessageFactory(chat=group_chat, sender=alice)

        result = MessageService.delete_message(message.id, alice.id)

        assert result.success
        assert not Message.objects.filter(pk=message.pk).exists()

    def test_other_user_cannot_delete(self, group_chat, alice, bob):
        message = MessageFactory(chat=group_chat, sender=alice)

        result = MessageService.delete_message(message.id, bob.id)

        assert result.kind is ErrorKind.PERMISSION_DENIED
        assert result.error_code == "NOT_MESSAGE_SENDER"
        assert MessageService.get_message(message.id).success

    def test_orphaned_message_cannot_be_deleted(self, group_chat, alice):
        message = MessageFactory(chat=group_chat, sender=alice)
        Message.objects.filter(pk=message.pk).update(sender=None)

        assert MessageService.delete_message(message.id, alice.id).kind is (
            ErrorKind.PERMISSION_DENIED
        )

    def test_delete_broadcasts(self, router, transport, group_chat, alice, bob):
        router.on_connect("bob-1", bob.id)
        message = MessageFactory(chat=group_chat, sender=alice)

        MessageService.delete_message(message.id, alice.id)

        assert transport.events_for("bob-1") == [
            {
                "type": EVENT_TYPES.MESSAGE_DELETED,
                "chat_id": group_chat.id,
                "message_id": message.id,
            }
        ]


@pytest.mark.django_db
class TestSearchMessages:
    def test_case_insensitive_substring(self, group_chat, single_chat, alice):
        match = MessageFactory(chat=group_chat, sender=alice, content="Lunch at NOON?")
        MessageFactory(chat=group_chat, sender=alice, content="nothing here")
        MessageFactory(chat=single_chat, sender=alice, content="noon elsewhere")

        results = MessageService.search_messages(group_chat.id, "noon").data

        assert [m.id for m in results.messages] == [match.id]
        assert results.total_messages == 1

    def test_every_match_is_reachable(self, group_chat, alice):
        matches = MessageFactory.create_batch(
            MESSAGE_CONFIG.MAX_PAGE_SIZE + 20, chat=group_chat, sender=alice, content="hello"
        )
        MessageFactory(chat=group_chat, sender=alice, content="goodbye")

        first = MessageService.search_messages(
            group_chat.id, "HELLO", page_size=MESSAGE_CONFIG.MAX_PAGE_SIZE
        ).data
        second = MessageService.search_messages(
            group_chat.id, "HELLO", page=1, page_size=MESSAGE_CONFIG.MAX_PAGE_SIZE
        ).data

        assert first.total_messages == len(matches)
        assert first.has_more is True
        assert second.has_more is False
        found = {m.id for m in first.messages} | {m.id for m in second.messages}
        assert found == {m.id for m in matches}

    def test_invalid_page(self, group_chat):
        result = MessageService.search_messages(group_chat.id, "x", page=-1)

        assert result.error_code == "INVALID_PAGE"

    @pytest.mark.parametrize("term", ["", "   ", None])
    def test_blank_term(self, group_chat, term):
        result = MessageService.search_messages(group_chat.id, term)

        assert result.kind is ErrorKind.INVALID_ARGUMENT
        assert result.error_code == "EMPTY_SEARCH_TERM"

    def test_unknown_chat(self):
        assert MessageService.search_messages(999_999, "x").kind is ErrorKind.NOT_FOUND


@pytest.mark.django_db
class TestPurgeMessages:
    def test_purges_only_older_messages(self, group_chat, alice):
        old = MessageFactory(chat=group_chat, sender=alice)
        recent = MessageFactory(chat=group_chat, sender=alice)
        Message.objects.filter(pk=old.pk).update(
            created_at=timezone.now() - timedelta(days=40)
        )

        result = MessageService.purge_messages_before(timezone.now() - timedelta(days=30))

        assert result.data == 1
        assert list(Message.objects.values_list("pk", flat=True)) == [recent.pk]
        assert not MessageReceipt.objects.filter(message_id=old.pk).exists()

    def test_limited_to_one_chat(self, group_chat, single_chat, alice):
        for chat in (group_chat, single_chat):
            MessageFactory(chat=chat, sender=alice)
        Message.objects.update(created_at=timezone.now() - timedelta(days=40))

        result = MessageService.purge_messages_before(
            timezone.now() - timedelta(days=30), chat_id=single_chat.id
        )

        assert result.data == 1
        assert Message.objects.filter(chat=group_chat).count() == 1

    def test_nothing_to_purge(self, group_chat, alice):
        MessageFactory(chat=group_chat, sender=alice)

        assert MessageService.purge_messages_before(timezone.now() - timedelta(days=1)).data == 0

    def test_participants_are_kept(self, group_chat, alice):
        MessageFactory(chat=group_chat, sender=alice)

        MessageService.purge_messages_before(timezone.now() + timedelta(seconds=1))

        assert ChatParticipant.objects.filter(chat=group_chat).count() == 3
