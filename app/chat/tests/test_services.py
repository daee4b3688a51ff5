"""
Tests for chat service layer business logic.

This module tests the synchronous services:
- MessageStore: create (dedup by client token), status compare-and-set,
  edit, delete for self / everyone, history
- RelationshipService: blocks and contacts
- PresenceService: persisted snapshot and presence policy

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>
"""

import logging
from datetime import timedelta

import pytest
from django.utils import timezone

from authentication.models import LastSeenVisibility
from authentication.tests.factories import UserFactory
from chat.constants import MESSAGE_CONFIG
from chat.exceptions import AuthorizationError
from chat.models import Message, MessageEdit, MessageKind, MessageStatus
from chat.services import (
    MessageStore,
    PresenceService,
    RelationshipService,
    group_by_sender,
)
from chat.tests.factories import BlockFactory, ContactFactory, MessageFactory
from core.exceptions import NotFoundError, ValidationError


# =============================================================================
# MessageStore.create
# =============================================================================


class TestMessageStoreCreate:
    def test_creates_sent_message(self, alice, bob):
        message, created = MessageStore.create(alice.id, bob.id, "  Hello  ")

        assert created is True
        assert message.content == "Hello"
        assert message.status == MessageStatus.SENT
        assert message.sender_id == alice.id
        assert message.recipient_id == bob.id

    def test_same_client_token_returns_stored_message(self, alice, bob):
        """
        A resend after a lost ack must not create a second message.

        Why it matters: the client retries with the same correlation
        token and expects the original server id back.
        """
        first, created_first = MessageStore.create(alice.id, bob.id, "Hi", client_token="t1")
        second, created_second = MessageStore.create(alice.id, bob.id, "Hi", client_token="t1")

        assert created_first is True
        assert created_second is False
        assert first.pk == second.pk
        assert Message.objects.count() == 1

    def test_rejects_self_addressed_message(self, alice):
        with pytest.raises(ValidationError) as exc_info:
            MessageStore.create(alice.id, alice.id, "Hi")

        assert exc_info.value.error_code == "SELF_MESSAGE"

    def test_rejects_whitespace_only_content(self, alice, bob):
        with pytest.raises(ValidationError) as exc_info:
            MessageStore.create(alice.id, bob.id, "   ")

        assert exc_info.value.error_code == "EMPTY_CONTENT"

    def test_rejects_content_over_limit(self, alice, bob):
        too_long = "x" * (MESSAGE_CONFIG.MAX_CONTENT_LENGTH + 1)

        with pytest.raises(ValidationError) as exc_info:
            MessageStore.create(alice.id, bob.id, too_long)

        assert exc_info.value.error_code == "CONTENT_TOO_LONG"

    def test_attachment_requires_url(self, alice, bob):
        with pytest.raises(ValidationError) as exc_info:
            MessageStore.create(alice.id, bob.id, "", kind=MessageKind.IMAGE)

        assert exc_info.value.error_code == "MISSING_ATTACHMENT"

    def test_attachment_without_caption_is_allowed(self, alice, bob):
        message, _ = MessageStore.create(
            alice.id,
            bob.id,
            "",
            kind=MessageKind.IMAGE,
            attachment_url="https://cdn.example.com/cat.png",
            attachment_name="cat.png",
        )

        assert message.kind == MessageKind.IMAGE
        assert message.attachment_name == "cat.png"

    def test_unknown_recipient_not_found(self, alice):
        with pytest.raises(NotFoundError):
            MessageStore.create(alice.id, 999999, "Hi")

    def test_inactive_recipient_not_found(self, alice):
        inactive = UserFactory(is_active=False)

        with pytest.raises(NotFoundError):
            MessageStore.create(alice.id, inactive.id, "Hi")


# =============================================================================
# MessageStore status transitions
# =============================================================================


class TestMessageStoreAppendStatus:
    def test_advances_forward(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        assert MessageStore.append_status(message.id, MessageStatus.DELIVERED) is True

        message.refresh_from_db()
        assert message.status == MessageStatus.DELIVERED
        assert message.delivered_at is not None

    def test_never_regresses(self, alice, bob):
        """
        A late "delivered" after "read" is a no-op.

        Why it matters: receipts can arrive out of order from different
        devices; the stored status must stay at its maximum.
        """
        message = MessageFactory(sender=alice, recipient=bob, status=MessageStatus.READ)

        assert MessageStore.append_status(message.id, MessageStatus.DELIVERED) is False

        message.refresh_from_db()
        assert message.status == MessageStatus.READ

    def test_duplicate_transition_is_noop(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        MessageStore.append_status(message.id, MessageStatus.READ)
        assert MessageStore.append_status(message.id, MessageStatus.READ) is False

    def test_read_also_stamps_delivered(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        MessageStore.append_status(message.id, MessageStatus.READ)

        message.refresh_from_db()
        assert message.delivered_at is not None
        assert message.read_at is not None


class TestMessageStoreAdvanceStatuses:
    def test_returns_changed_ids_with_senders(self, alice, bob, carol):
        first = MessageFactory(sender=alice, recipient=bob)
        second = MessageFactory(sender=carol, recipient=bob)
        already_read = MessageFactory(sender=alice, recipient=bob, status=MessageStatus.READ)

        changed = MessageStore.advance_statuses(
            bob.id, [first.id, second.id, already_read.id], MessageStatus.READ
        )

        assert changed == [(first.id, alice.id), (second.id, carol.id)]

    def test_ignores_messages_not_addressed_to_recipient(self, alice, bob, carol, caplog):
        """
        A forged receipt changes nothing.

        Why it matters: carol must not be able to mark alice's message
        to bob as read, nor learn anything from trying.
        """
        message = MessageFactory(sender=alice, recipient=bob)

        with caplog.at_level(logging.WARNING, logger="chat.services"):
            changed = MessageStore.advance_statuses(carol.id, [message.id], MessageStatus.READ)

        assert changed == []
        message.refresh_from_db()
        assert message.status == MessageStatus.SENT
        assert "not addressed to them" in caplog.text

    def test_empty_ids(self, bob):
        assert MessageStore.advance_statuses(bob.id, [], MessageStatus.READ) == []


# =============================================================================
# MessageStore.edit
# =============================================================================


class TestMessageStoreEdit:
    def test_sender_edits_content(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob, content="Helo")

        edited = MessageStore.edit(message.id, alice.id, "Hello")

        assert edited.content == "Hello"
        assert edited.is_edited is True
        assert edited.edit_count == 1
        assert edited.original_content == "Helo"
        assert MessageEdit.objects.get(message=message).content == "Helo"

    def test_edit_keeps_status(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob, status=MessageStatus.READ)

        edited = MessageStore.edit(message.id, alice.id, "Changed")

        assert edited.status == MessageStatus.READ

    def test_recipient_cannot_edit(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        with pytest.raises(AuthorizationError):
            MessageStore.edit(message.id, bob.id, "Hacked")

    def test_stranger_gets_not_found(self, alice, bob, carol):
        message = MessageFactory(sender=alice, recipient=bob)

        with pytest.raises(NotFoundError):
            MessageStore.edit(message.id, carol.id, "Hacked")

    def test_old_message_can_still_be_edited(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)
        Message.objects.filter(pk=message.pk).update(
            created_at=timezone.now() - timedelta(days=30)
        )

        edited = MessageStore.edit(message.id, alice.id, "Much later")

        assert edited.content == "Much later"

    def test_repeated_edits_keep_full_history(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob, content="v0")

        for version in range(1, 13):
            MessageStore.edit(message.id, alice.id, f"v{version}")

        message.refresh_from_db()
        assert message.content == "v12"
        assert message.edit_count == 12
        assert message.original_content == "v0"
        assert list(
            MessageEdit.objects.filter(message=message)
            .order_by("edit_number")
            .values_list("content", flat=True)
        ) == [f"v{n}" for n in range(12)]


# =============================================================================
# MessageStore deletes
# =============================================================================


class TestMessageStoreDelete:
    def test_delete_for_self_hides_only_for_requester(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        MessageStore.delete_for_self(message.id, bob.id)

        assert MessageStore.history(bob.id, alice.id) == []
        assert MessageStore.history(alice.id, bob.id) == [message]
        message.refresh_from_db()
        assert message.is_deleted is False

    def test_delete_for_self_is_idempotent(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        MessageStore.delete_for_self(message.id, bob.id)
        MessageStore.delete_for_self(message.id, bob.id)

        assert message.hidden_for.count() == 1

    def test_delete_for_self_by_stranger_not_found(self, alice, bob, carol):
        message = MessageFactory(sender=alice, recipient=bob)

        with pytest.raises(NotFoundError):
            MessageStore.delete_for_self(message.id, carol.id)

    def test_delete_for_everyone_sets_flag(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        MessageStore.delete_for_everyone(message.id, alice.id)

        message.refresh_from_db()
        assert message.is_deleted is True
        assert MessageStore.history(alice.id, bob.id) == []
        assert MessageStore.history(bob.id, alice.id) == []

    def test_only_sender_deletes_for_everyone(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)

        with pytest.raises(AuthorizationError):
            MessageStore.delete_for_everyone(message.id, bob.id)

    def test_deleted_message_cannot_be_edited(self, alice, bob):
        message = MessageFactory(sender=alice, recipient=bob)
        MessageStore.delete_for_everyone(message.id, alice.id)

        with pytest.raises(NotFoundError):
            MessageStore.edit(message.id, alice.id, "Back")


# =============================================================================
# MessageStore queries
# =============================================================================


class TestMessageStoreHistory:
    def test_returns_oldest_first(self, alice, bob):
        messages = [MessageFactory(sender=alice, recipient=bob) for _ in range(3)]

        assert MessageStore.history(bob.id, alice.id) == messages

    def test_limit_keeps_most_recent(self, alice, bob):
        messages = [MessageFactory(sender=alice, recipient=bob) for _ in range(5)]

        assert MessageStore.history(bob.id, alice.id, limit=2) == messages[-2:]

    def test_before_id_pages_backwards(self, alice, bob):
        messages = [MessageFactory(sender=alice, recipient=bob) for _ in range(5)]

        page = MessageStore.history(bob.id, alice.id, limit=2, before_id=messages[3].id)

        assert page == messages[1:3]

    def test_pending_for_lists_unread_from_peer(self, alice, bob, carol):
        unread = MessageFactory(sender=alice, recipient=bob)
        MessageFactory(sender=alice, recipient=bob, status=MessageStatus.READ)
        MessageFactory(sender=carol, recipient=bob)

        assert MessageStore.pending_for(bob.id, alice.id) == [unread.id]

    def test_unread_counts_per_sender(self, alice, bob, carol):
        MessageFactory(sender=alice, recipient=bob)
        MessageFactory(sender=alice, recipient=bob)
        MessageFactory(sender=carol, recipient=bob, status=MessageStatus.DELIVERED)
        MessageFactory(sender=carol, recipient=bob, status=MessageStatus.READ)

        assert MessageStore.unread_counts(bob.id) == {alice.id: 2, carol.id: 1}


def test_group_by_sender():
    assert group_by_sender([(1, 10), (2, 11), (3, 10)]) == {10: [1, 3], 11: [2]}


# =============================================================================
# RelationshipService
# =============================================================================


class TestRelationshipService:
    def test_block_is_idempotent(self, alice, bob):
        first = RelationshipService.block(alice, bob.id)
        second = RelationshipService.block(alice, bob.id)

        assert first.pk == second.pk

    def test_cannot_block_self(self, alice):
        with pytest.raises(ValidationError) as exc_info:
            RelationshipService.block(alice, alice.id)

        assert exc_info.value.error_code == "SELF_BLOCK"

    def test_block_unknown_user(self, alice):
        with pytest.raises(NotFoundError):
            RelationshipService.block(alice, 999999)

    def test_is_blocked_between_either_direction(self, alice, bob):
        RelationshipService.block(bob, alice.id)

        assert RelationshipService.is_blocked_between(alice.id, bob.id)
        assert RelationshipService.is_blocked_between(bob.id, alice.id)

    def test_unblock(self, alice, bob):
        RelationshipService.block(alice, bob.id)

        assert RelationshipService.unblock(alice, bob.id) is True
        assert RelationshipService.unblock(alice, bob.id) is False
        assert not RelationshipService.is_blocked_between(alice.id, bob.id)

    def test_blocked_ids_include_both_directions(self, alice, bob, carol):
        BlockFactory(blocker=alice, blocked=bob)
        BlockFactory(blocker=carol, blocked=alice)

        assert RelationshipService.blocked_ids(alice.id) == {bob.id, carol.id}

    def test_contacts(self, alice, bob):
        RelationshipService.add_contact(alice, bob.id)
        RelationshipService.add_contact(alice, bob.id)

        assert RelationshipService.contact_ids(alice.id) == {bob.id}
        assert RelationshipService.remove_contact(alice, bob.id) is True
        assert RelationshipService.contact_ids(alice.id) == set()

    def test_cannot_add_self_as_contact(self, alice):
        with pytest.raises(ValidationError):
            RelationshipService.add_contact(alice, alice.id)


# =============================================================================
# PresenceService
# =============================================================================


class TestPresenceService:
    def test_mark_online_and_offline(self, alice):
        PresenceService.mark_online(alice.id)
        assert PresenceService.get_snapshot(alice.id).is_online is True

        at = PresenceService.mark_offline(alice.id)
        snapshot = PresenceService.get_snapshot(alice.id)

        assert snapshot.is_online is False
        assert snapshot.last_seen == at

    @pytest.mark.django_db
    def test_snapshot_of_unknown_user(self):
        with pytest.raises(NotFoundError):
            PresenceService.get_snapshot(999999)

    def test_policy_everyone(self, alice, bob):
        policy = PresenceService.get_policy(alice.id)

        assert policy.allows(bob.id)

    def test_policy_nobody(self, bob):
        hidden = UserFactory(profile__last_seen_visibility=LastSeenVisibility.NOBODY)

        assert not PresenceService.get_policy(hidden.id).allows(bob.id)

    def test_policy_contacts_only(self, bob, carol):
        subject = UserFactory(profile__last_seen_visibility=LastSeenVisibility.CONTACTS)
        ContactFactory(owner=subject, contact=bob)

        policy = PresenceService.get_policy(subject.id)

        assert policy.allows(bob.id)
        assert not policy.allows(carol.id)

    def test_policy_hides_from_blocked_users(self, alice, bob):
        BlockFactory(blocker=bob, blocked=alice)

        assert not PresenceService.get_policy(alice.id).allows(bob.id)
        assert not PresenceService.get_policy(bob.id).allows(alice.id)
