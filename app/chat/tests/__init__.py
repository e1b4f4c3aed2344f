"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Chat, DirectChatPair, Message model tests
- test_membership.py: ChatMembership and require_participant
- test_services.py: ChatService and MessageService tests
- test_read_tracking.py: ReadTrackingService tests
- test_router.py: ConnectionRouter fan-out tests
- test_consumers.py: WebSocket consumer tests
- test_views.py: REST API endpoint tests
- test_tasks.py: Celery maintenance tasks

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
