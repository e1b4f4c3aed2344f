"""
Django signals for chat.

This module defines signal handlers for:
- Removing chats that cannot outlive a deleted account

Related files:
    - models.py: Chat, ChatParticipant, DirectChatPair
    - apps.py: Signal import in ready()

Usage:
    Signals are automatically connected when the app is ready.
    Every deletion path (UserService.delete_user, admin, cascades) goes
    through pre_delete, so the chat rules hold however a user is removed.
"""

import logging

from django.conf import settings
from django.db.models import Count, Q
from django.db.models.signals import pre_delete
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(pre_delete, sender=settings.AUTH_USER_MODEL)
def delete_orphaned_chats(sender, instance, **kwargs):
    """
    Delete the chats a user's deletion would leave invalid.

    A SINGLE chat needs both of its users, so every SINGLE chat of the user
    goes. A GROUP chat must keep at least one participant, so groups where
    the user is the only member go too. Messages and receipts cascade with
    the chat.

    Args:
        sender: The User model class
        instance: The User about to be deleted
        **kwargs: Additional signal arguments
    """
    from chat.models import Chat, ChatParticipant, ChatType

    # Filter through a subquery so the count covers every member, not only
    # the joined row of the user being deleted
    user_chat_ids = ChatParticipant.objects.filter(user=instance).values("chat_id")
    chats = Chat.objects.filter(pk__in=user_chat_ids).annotate(
        member_count=Count("participants")
    )
    doomed_ids = list(
        chats.filter(
            Q(chat_type=ChatType.SINGLE) | Q(member_count__lte=1)
        ).values_list("pk", flat=True)
    )
    if not doomed_ids:
        return

    Chat.objects.filter(pk__in=doomed_ids).delete()
    logger.info(f"Deleted chats {doomed_ids} with user {instance.pk}")
