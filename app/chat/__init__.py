"""
Chat app for one-to-one real-time messaging.

This app handles:
- Messages between two users, with delivered/read status
- Edits, delete for self and delete for everyone
- Contact and block lists
- The realtime core (chat.realtime): connection registry, presence,
  delivery routing, typing indicators and read receipts
- The WebSocket transport (consumers.py, middleware.py, routing.py)

Related apps:
    - authentication: User and Profile (presence and privacy fields)
    - ai: Assistant replies for messages sent to the assistant account

Usage:
    from chat.realtime.hub import get_hub

    message = await get_hub().router.send(alice.id, bob.id, "Hello!", client_token="t1")
"""
