"""
ASGI config for the chat backend.

Exposes the ASGI callable as a module-level variable named `application`.
HTTP goes to Django; WebSocket connections go through Channels:

    AllowedHostsOriginValidator
        -> JWTAuthMiddleware  (resolves scope["user"] from the token)
            -> URLRouter(chat.routing.websocket_urlpatterns)

The consumer refuses the handshake when the middleware could not resolve a
user, so unauthenticated sockets are never registered with the router.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Initialize Django ASGI application early to ensure settings are loaded
# before importing any models or other Django components
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
