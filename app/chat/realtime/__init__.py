"""
Realtime presence-and-delivery core.

Components (leaves first):
    ConnectionRegistry: user id -> live connection handles (multi-device)
    PresenceTracker: online/offline transitions and presence broadcasts
    DeliveryRouter: persist + fan out messages, store-and-forward
    TypingCoordinator: ephemeral typing signals with idle expiry
    ReadReceiptProcessor: delivered/read transitions and sender notices
    EventDispatcher: inbound socket event table
    RealtimeHub: builds and wires the components

All components run on the event loop of the ASGI process. Persistence
goes through StoreGateway, which runs the synchronous services in
chat.services on a worker thread with a bounded timeout.

Usage:
    from chat.realtime.hub import get_hub

    hub = get_hub()
    await hub.connect(user.id, channel_name)
    result = await hub.dispatch(user.id, channel_name, "send_message", payload)
"""
