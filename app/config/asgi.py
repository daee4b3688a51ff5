"""
ASGI entry point of the chat backend.

Served by Uvicorn. One process handles both protocols:
- HTTP: the REST API, admin and health check through Django
- WebSocket: /ws/chat/ through Django Channels and chat.consumers.ChatConsumer

The realtime hub (connection registry, presence, typing timers) lives in
this process, so every socket of a deployment must land on the same worker:
    uvicorn config.asgi:application --workers 1

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
https://channels.readthedocs.io/en/stable/deploying.html
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Settings and the app registry must be ready before consumers import models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import JWTAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        # Origin check, then JWT (query string or subprotocol), then routing.
        # Unauthenticated sockets reach the consumer as AnonymousUser and are
        # closed with code 4001.
        "websocket": AllowedHostsOriginValidator(
            JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
