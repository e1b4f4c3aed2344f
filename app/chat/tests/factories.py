"""
Factory Boy factories for chat models.

Provides realistic test data generation for:
- Chat: Group chats
- SingleChatFactory: Two-person chats with their DirectChatPair
- ChatParticipant: User membership in chats
- Message: Text messages, with receipts for the other participants

Usage:
    from chat.tests.factories import (
        ChatFactory,
        ChatParticipantFactory,
        MessageFactory,
        SingleChatFactory,
    )

    # Group chat with two members
    chat = ChatFactory(members=[alice, bob])

    # Single chat between two users
    chat = SingleChatFactory(user1=alice, user2=bob)

    # A message in a chat
    message = MessageFactory(chat=chat, sender=alice)
"""

import factory

from authentication.tests.factories import UserFactory
from chat.models import (
    Chat,
    ChatParticipant,
    ChatType,
    DirectChatPair,
    Message,
    MessageReceipt,
    MessageType,
)


class ChatFactory(factory.django.DjangoModelFactory):
    """
    Factory for group chats.

    Examples:
        chat = ChatFactory()                       # no members
        chat = ChatFactory(members=[alice, bob])   # with members
    """

    class Meta:
        model = Chat
        skip_postgeneration_save = True

    chat_type = ChatType.GROUP
    name = factory.Sequence(lambda n: f"Group Chat {n}")

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        """Add the given users as participants."""
        if not create or not extracted:
            return
        for user in extracted:
            ChatParticipantFactory(chat=self, user=user)


class SingleChatFactory(factory.django.DjangoModelFactory):
    """
    Factory for SINGLE chats.

    Creates the chat, its DirectChatPair and both participants.

    Examples:
        chat = SingleChatFactory()                      # two new users
        chat = SingleChatFactory(user1=alice, user2=bob)
    """

    class Meta:
        model = Chat

    chat_type = ChatType.SINGLE
    name = ""

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Create single chat with participants and pair."""
        user1 = kwargs.pop("user1", None) or UserFactory()
        user2 = kwargs.pop("user2", None) or UserFactory()
        user_lower_id, user_higher_id = DirectChatPair.canonical(user1.id, user2.id)

        chat = super()._create(model_class, *args, **kwargs)
        DirectChatPair.objects.create(
            chat=chat,
            user_lower_id=user_lower_id,
            user_higher_id=user_higher_id,
        )
        ChatParticipantFactory(chat=chat, user=user1)
        ChatParticipantFactory(chat=chat, user=user2)
        return chat


class ChatParticipantFactory(factory.django.DjangoModelFactory):
    """Factory for ChatParticipant model."""

    class Meta:
        model = ChatParticipant

    chat = factory.SubFactory(ChatFactory)
    user = factory.SubFactory(UserFactory)


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Factory for Message model.

    Like MessageService.send_message(), creates a SENT receipt for every
    participant other than the sender, but does not broadcast.

    Examples:
        message = MessageFactory(chat=chat, sender=alice)
        message = MessageFactory(chat=chat, sender=alice, content="hello")
    """

    class Meta:
        model = Message

    chat = factory.SubFactory(ChatFactory)
    sender = factory.SubFactory(UserFactory)
    message_type = MessageType.TEXT
    content = factory.Faker("sentence")

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        message = super()._create(model_class, *args, **kwargs)
        recipient_ids = (
            ChatParticipant.objects.filter(chat_id=message.chat_id)
            .exclude(user_id=message.sender_id)
            .values_list("user_id", flat=True)
        )
        MessageReceipt.objects.bulk_create(
            MessageReceipt(message=message, chat_id=message.chat_id, recipient_id=user_id)
            for user_id in recipient_ids
        )
        return message
