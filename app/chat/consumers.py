"""
WebSocket consumer for the chat application.

ChatConsumer is the transport adapter of the realtime core. It owns no
chat state: every inbound event goes to the RealtimeHub dispatcher and
every outbound event arrives from the channel layer as a "chat.event"
message addressed to this consumer's channel name.

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Sockets
    without an authenticated user are closed with code 4001 before they
    are registered.

Frames (client -> server):
    {"type": "send_message", "payload": {"recipientId": 2, "content": "Hi",
                                         "clientCorrelationToken": "t1"}}

Frames (server -> client):
    {"type": "message_received", "payload": {"message": {...}}}
    {"type": "error", "payload": {"event": "send_message", "error": "...",
                                  "error_code": "SEND_FAILED", ...}}
"""

from __future__ import annotations

import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from chat.constants import CLOSE_CODES, OUTBOUND_EVENTS
from chat.realtime import events
from chat.realtime.hub import get_hub

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    One socket of one user.

    Attributes:
        user_id: Authenticated user id (None until connect succeeded)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id: int | None = None

    @property
    def hub(self):
        return get_hub()

    async def connect(self):
        """
        Accept the socket and register it.

        The accepted subprotocol echoes "jwt" when the token came in
        Sec-WebSocket-Protocol.
        """
        user = self.scope.get("user")
        if not user or isinstance(user, AnonymousUser) or not user.is_authenticated:
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=CLOSE_CODES.UNAUTHENTICATED)
            return

        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)

        self.user_id = user.pk
        await self.hub.connect(self.user_id, self.channel_name)
        logger.info(f"User {self.user_id} connected ({self.channel_name})")

    async def disconnect(self, close_code):
        if self.user_id is None:
            return
        await self.hub.disconnect(self.channel_name)
        logger.info(
            f"User {self.user_id} disconnected ({self.channel_name}, code={close_code})"
        )

    async def receive_json(self, content, **kwargs):
        """
        Forward an inbound frame to the dispatcher.

        Failures are answered on this socket only.
        """
        if not isinstance(content, dict):
            content = {}
        event = content.get("type")
        payload = content.get("payload")
        if payload is None:
            payload = {key: value for key, value in content.items() if key != "type"}

        result = await self.hub.dispatch(self.user_id, self.channel_name, event, payload)
        if not result:
            client_token = None
            if isinstance(payload, dict):
                client_token = payload.get("clientCorrelationToken")
            await self.send_json(
                {
                    "type": OUTBOUND_EVENTS.ERROR,
                    "payload": events.error(event, result, client_token),
                }
            )

    async def chat_event(self, message):
        """
        Handle chat.event messages from the channel layer.

        Sends {"type": event, "payload": payload} to the client.
        """
        await self.send_json({"type": message["event"], "payload": message["payload"]})
