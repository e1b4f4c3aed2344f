"""
WSGI config for the chat backend.

Serves the REST API only. WebSocket delivery needs the ASGI entry point
(config.asgi), so production runs under an ASGI server; this module exists
for management tooling and plain-HTTP deployments.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
