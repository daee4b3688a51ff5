"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - The user's single realtime socket (all peers multiplexed)

Authentication:
    JWT access token as ?token=<jwt> or Sec-WebSocket-Protocol: jwt, <jwt>.
    See middleware.py.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
