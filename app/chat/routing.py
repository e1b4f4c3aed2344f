"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - The live event stream; one per connection, covering every
               chat the user belongs to

Authentication:
    JWT token should be passed as query parameter (?token=<jwt_access_token>)
    or as subprotocols ["jwt", <token>]. JWTAuthMiddleware attaches the
    user to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
