"""
Delivered/read receipts.

ReadReceiptProcessor applies status transitions to messages addressed to
the caller and tells the original senders. Receipts for messages the
caller did not receive are dropped without a reply, so a forged receipt
learns nothing about the real state.

Notifications are coalesced: one message_status_changed per distinct
sender, carrying every message id of that sender that changed. The
reader's own connections get the same event (with the sender as peerId)
so the reader's other devices clear their unread state.

A reader with read_receipts_enabled=False still advances to "read", but
senders are not told.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from authentication.models import Profile
from chat.constants import OUTBOUND_EVENTS
from chat.models import MessageStatus
from chat.realtime import events
from chat.services import MessageStore, group_by_sender

if TYPE_CHECKING:
    from chat.realtime.emitters import Fanout
    from chat.realtime.storage import StoreGateway

logger = logging.getLogger(__name__)


def shares_read_receipts(user_id) -> bool:
    return bool(
        Profile.objects.filter(user_id=user_id)
        .values_list("read_receipts_enabled", flat=True)
        .first()
    )


class ReadReceiptProcessor:
    """
    Applies receipts and notifies senders.

    Methods:
        mark_read: One message
        mark_read_batch: Many messages, one notification per sender
        mark_conversation_read: Everything unread from one peer
        mark_delivered_batch: Delivered transition used by the router
    """

    def __init__(self, fanout: Fanout, store: StoreGateway):
        self.fanout = fanout
        self.store = store

    async def mark_read(self, reader_id, message_id) -> bool:
        """Returns True if the message's stored status changed."""
        changed = await self.mark_read_batch(reader_id, [message_id])
        return bool(changed)

    async def mark_read_batch(self, reader_id, message_ids: Iterable) -> list[int]:
        """
        Mark messages addressed to reader_id as read.

        Returns:
            Ids whose stored status changed

        Raises:
            TransientStoreError: Store unavailable
        """
        changed = await self.store.run(
            MessageStore.advance_statuses, reader_id, list(message_ids), MessageStatus.READ
        )
        if not changed:
            return []

        by_sender = group_by_sender(changed)
        notify_senders = await self.store.run(shares_read_receipts, reader_id)
        for sender_id, ids in by_sender.items():
            if notify_senders:
                await self.fanout.to_user(
                    sender_id,
                    OUTBOUND_EVENTS.MESSAGE_STATUS_CHANGED,
                    events.message_status_changed(ids, MessageStatus.READ, reader_id),
                )
            await self.fanout.to_user(
                reader_id,
                OUTBOUND_EVENTS.MESSAGE_STATUS_CHANGED,
                events.message_status_changed(ids, MessageStatus.READ, sender_id),
            )

        logger.debug(
            f"User {reader_id} read {len(changed)} message(s) from {len(by_sender)} sender(s)"
        )
        return [message_id for message_id, _ in changed]

    async def mark_conversation_read(self, reader_id, peer_id) -> list[int]:
        """Mark every unread message from peer_id to reader_id as read."""
        pending = await self.store.run(MessageStore.pending_for, reader_id, peer_id)
        if not pending:
            return []
        return await self.mark_read_batch(reader_id, pending)

    async def mark_delivered_batch(self, recipient_id, message_ids: Iterable) -> list[int]:
        """
        Mark messages addressed to recipient_id as delivered and tell
        their senders.

        Returns:
            Ids whose stored status changed
        """
        changed = await self.store.run(
            MessageStore.advance_statuses,
            recipient_id,
            list(message_ids),
            MessageStatus.DELIVERED,
        )
        for sender_id, ids in group_by_sender(changed).items():
            await self.fanout.to_user(
                sender_id,
                OUTBOUND_EVENTS.MESSAGE_STATUS_CHANGED,
                events.message_status_changed(ids, MessageStatus.DELIVERED, recipient_id),
            )
        return [message_id for message_id, _ in changed]
