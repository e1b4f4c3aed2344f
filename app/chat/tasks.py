"""
Celery tasks for chat app.

This module defines periodic maintenance tasks:
- Message retention cleanup

Related files:
    - services.py: MessageService.purge_messages_before
    - config/settings.py: CELERY_BEAT_SCHEDULE, CHAT_MESSAGE_RETENTION_DAYS

Usage:
    from chat.tasks import purge_old_messages

    purge_old_messages.delay()          # use CHAT_MESSAGE_RETENTION_DAYS
    purge_old_messages.delay(days=30)   # explicit retention
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from chat.services import MessageService

logger = logging.getLogger(__name__)


@shared_task
def purge_old_messages(days: int | None = None, chat_id: int | None = None) -> int:
    """
    Hard delete messages older than the retention window.

    Args:
        days: Retention in days; defaults to CHAT_MESSAGE_RETENTION_DAYS.
            0 or less disables purging.
        chat_id: Limit the purge to one chat

    Returns:
        Number of messages deleted
    """
    if days is None:
        days = settings.CHAT_MESSAGE_RETENTION_DAYS

    if days <= 0:
        logger.debug("Message retention disabled, skipping purge")
        return 0

    cutoff = timezone.now() - timedelta(days=days)
    result = MessageService.purge_messages_before(cutoff, chat_id=chat_id)
    if not result:
        # Already logged with traceback by the service
        logger.error(f"Message purge failed: {result.error_code}")
        return 0

    logger.info(f"Purged {result.data} messages older than {days} days")
    return result.data
