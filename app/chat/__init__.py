"""
Chat app for real-time messaging.

This app handles:
- Chats (SINGLE and GROUP) and their membership
- Message sending, history, search and deletion
- Read receipts and unread counts
- Live event fan-out to participants' WebSocket connections

Related apps:
    - authentication: User model for participants, JWT validation
    - core: ServiceResult, BaseService, API error handling

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See router.py for participant-scoped fan-out.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ChatService, MessageService

    # Create chat
    chat = ChatService.create_chat(
        [user.id, other_user.id],
        chat_type="single",
    ).unwrap()

    # Send message
    message = MessageService.send_message(chat.id, user.id, "Hello!").unwrap()
"""
