"""
WSGI entry point of the chat backend.

Serves the REST API, admin and health check only. WebSocket chat requires
the ASGI application in config/asgi.py. REST calls that notify live sockets
(read receipts, delivered-on-fetch) reach them only when served by the same
process as the sockets.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
