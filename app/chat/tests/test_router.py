"""
Tests for DeliveryRouter.

Covers the end-to-end delivery paths:
- Online recipient: pushed to every device, then delivered
- Offline recipient: stored as sent, delivered by the next history fetch
- Correlation tokens: acks in send order, duplicate sends re-acked only
- Blocks, self-sends and unknown recipients
- Retries of transient store failures
- Assistant peer replies through the same pipeline
- Edit and delete fan-out
"""

import pytest
from channels.db import database_sync_to_async
from django.db import OperationalError

from chat.exceptions import AuthorizationError, BlockedError, TransientStoreError
from chat.models import Message, MessageStatus
from chat.realtime.router import AssistantPeer, HumanPeer
from chat.services import MessageStore
from chat.tests.factories import BlockFactory, MessageFactory
from core.exceptions import NotFoundError, ValidationError

pytestmark = [pytest.mark.django_db(transaction=True)]


@database_sync_to_async
def stored(message_id):
    return Message.objects.get(pk=message_id)


@database_sync_to_async
def history(requester, peer):
    return MessageStore.history(requester.id, peer.id)


def statuses(emitter, handle):
    return [
        (payload["messageIds"], payload["status"])
        for payload in emitter.payloads_for(handle, "message_status_changed")
    ]


# =============================================================================
# Peer resolution
# =============================================================================


class TestResolvePeer:
    async def test_person_is_human_peer(self, hub, bob):
        assert await hub.router.resolve_peer(bob.id) == HumanPeer(user_id=bob.id)

    async def test_assistant_account_is_assistant_peer(self, assistant_hub, assistant_user):
        peer = await assistant_hub.router.resolve_peer(assistant_user.id)

        assert isinstance(peer, AssistantPeer)
        assert peer.user_id == assistant_user.id

    async def test_assistant_without_responder_is_human(self, hub, assistant_user):
        """
        Why it matters: with no AI provider configured the assistant
        account behaves like any other user instead of failing sends.
        """
        assert isinstance(await hub.router.resolve_peer(assistant_user.id), HumanPeer)

    async def test_unknown_user(self, hub):
        with pytest.raises(NotFoundError):
            await hub.router.resolve_peer(999999)


# =============================================================================
# Online and offline delivery
# =============================================================================


class TestSendToOnlineRecipient:
    async def test_pushed_to_every_recipient_device(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-phone")
        await hub.connect(bob.id, "bob-laptop")
        emitter.clear()

        message = await hub.router.send(alice.id, bob.id, "Hi Bob", client_token="t1")

        for handle in ("bob-phone", "bob-laptop"):
            received = emitter.payloads_for(handle, "message_received")
            assert [payload["message"]["id"] for payload in received] == [message.pk]
        assert emitter.payloads_for("bob-phone", "message_received")[0]["message"][
            "content"
        ] == "Hi Bob"

    async def test_recipient_never_sees_correlation_token(self, hub, emitter, alice, bob):
        await hub.connect(bob.id, "bob-1")

        await hub.router.send(alice.id, bob.id, "Hi", client_token="secret-token")

        message = emitter.payloads_for("bob-1", "message_received")[0]["message"]
        assert "clientCorrelationToken" not in message

    async def test_sender_acked_then_told_delivered(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")
        emitter.clear()

        message = await hub.router.send(alice.id, bob.id, "Hi", client_token="t1")

        assert emitter.names_for("alice-1") == ["message_sent_ack", "message_status_changed"]
        ack = emitter.payloads_for("alice-1", "message_sent_ack")[0]
        assert ack["clientCorrelationToken"] == "t1"
        assert ack["message"]["id"] == message.pk
        assert statuses(emitter, "alice-1") == [([message.pk], "delivered")]
        assert (await stored(message.pk)).status == MessageStatus.DELIVERED

    async def test_every_sender_device_gets_the_ack(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-phone")
        await hub.connect(alice.id, "alice-laptop")

        await hub.router.send(alice.id, bob.id, "Hi", client_token="t1")

        assert emitter.names_for("alice-phone") == ["message_sent_ack"]
        assert emitter.names_for("alice-laptop") == ["message_sent_ack"]


class TestSendToOfflineRecipient:
    async def test_stored_as_sent(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-1")

        message = await hub.router.send(alice.id, bob.id, "hello")

        assert emitter.names_for("alice-1") == ["message_sent_ack"]
        page = await history(alice, bob)
        assert [m.pk for m in page] == [message.pk]
        assert page[0].status == MessageStatus.SENT

    async def test_history_fetch_delivers_then_mark_read_notifies_sender(
        self, hub, emitter, alice, bob
    ):
        """
        A sends "hello" to offline B; B connects, fetches and reads.

        Why it matters: history is the only redelivery path, so the
        fetch must move the message to delivered without pushing it a
        second time, and the read receipt must reach A live.
        """
        await hub.connect(alice.id, "alice-1")
        message = await hub.router.send(alice.id, bob.id, "hello")

        await hub.connect(bob.id, "bob-1")
        result = await hub.dispatch(bob.id, "bob-1", "fetch_history", {"peerId": alice.id})

        assert result.success
        fetched = emitter.payloads_for("bob-1", "history")[0]["messages"]
        assert [(m["id"], m["status"]) for m in fetched] == [(message.pk, "sent")]
        assert emitter.payloads_for("bob-1", "message_received") == []
        assert (await stored(message.pk)).status == MessageStatus.DELIVERED

        await hub.dispatch(bob.id, "bob-1", "mark_read", {"messageId": message.pk})

        assert statuses(emitter, "alice-1") == [
            ([message.pk], "delivered"),
            ([message.pk], "read"),
        ]

    async def test_second_fetch_does_not_renotify(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-1")
        await hub.router.send(alice.id, bob.id, "hello")
        await hub.connect(bob.id, "bob-1")

        await hub.dispatch(bob.id, "bob-1", "fetch_history", {"peerId": alice.id})
        await hub.dispatch(bob.id, "bob-1", "fetch_history", {"peerId": alice.id})

        assert len(statuses(emitter, "alice-1")) == 1


# =============================================================================
# Correlation tokens
# =============================================================================


class TestCorrelationTokens:
    async def test_rapid_sends_acked_in_order(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-1")

        await hub.router.send(alice.id, bob.id, "one", client_token="T1")
        await hub.router.send(alice.id, bob.id, "two", client_token="T2")

        acks = emitter.payloads_for("alice-1", "message_sent_ack")
        assert [ack["clientCorrelationToken"] for ack in acks] == ["T1", "T2"]
        ids = [ack["message"]["id"] for ack in acks]
        assert len(set(ids)) == 2

    async def test_duplicate_token_is_reacked_only(self, hub, emitter, alice, bob):
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")
        first = await hub.router.send(alice.id, bob.id, "Hi", client_token="T1")
        emitter.clear()

        second = await hub.router.send(alice.id, bob.id, "Hi", client_token="T1")

        assert second.pk == first.pk
        assert emitter.names_for("alice-1") == ["message_sent_ack"]
        assert emitter.names_for("bob-1") == []


# =============================================================================
# Refusals
# =============================================================================


class TestRefusals:
    async def test_blocked_send_stores_nothing(self, hub, emitter, alice, bob):
        await database_sync_to_async(BlockFactory)(blocker=bob, blocked=alice)
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")
        emitter.clear()

        with pytest.raises(BlockedError) as exc_info:
            await hub.router.send(alice.id, bob.id, "Hi")

        assert "block" not in exc_info.value.message.lower()
        assert emitter.sent == []
        assert await history(alice, bob) == []

    async def test_blocker_cannot_send_either(self, hub, alice, bob):
        await database_sync_to_async(BlockFactory)(blocker=bob, blocked=alice)

        with pytest.raises(BlockedError):
            await hub.router.send(bob.id, alice.id, "Hi")

    async def test_self_send(self, hub, alice):
        with pytest.raises(ValidationError) as exc_info:
            await hub.router.send(alice.id, alice.id, "Hi")

        assert exc_info.value.error_code == "SELF_MESSAGE"

    async def test_empty_content(self, hub, alice, bob):
        with pytest.raises(ValidationError) as exc_info:
            await hub.router.send(alice.id, bob.id, "   ")

        assert exc_info.value.error_code == "EMPTY_CONTENT"


# =============================================================================
# Transient failures
# =============================================================================


class TestRetries:
    async def test_transient_failure_is_retried(self, hub, emitter, alice, bob, monkeypatch):
        original = MessageStore.create.__func__
        attempts = []

        def flaky(cls, *args, **kwargs):
            attempts.append(args)
            if len(attempts) == 1:
                raise OperationalError("connection reset")
            return original(cls, *args, **kwargs)

        monkeypatch.setattr(MessageStore, "create", classmethod(flaky))
        await hub.connect(alice.id, "alice-1")

        message = await hub.router.send(alice.id, bob.id, "Hi", client_token="t1")

        assert len(attempts) == 2
        assert emitter.names_for("alice-1") == ["message_sent_ack"]
        assert (await stored(message.pk)).content == "Hi"

    async def test_gives_up_after_max_retries(self, hub, emitter, alice, bob, monkeypatch):
        attempts = []

        def down(cls, *args, **kwargs):
            attempts.append(args)
            raise OperationalError("database is down")

        monkeypatch.setattr(MessageStore, "create", classmethod(down))
        await hub.connect(alice.id, "alice-1")

        with pytest.raises(TransientStoreError):
            await hub.router.send(alice.id, bob.id, "Hi")

        assert len(attempts) == hub.router.max_retries + 1
        assert emitter.names_for("alice-1") == []

    async def test_lost_commit_without_token_stores_once(
        self, hub, emitter, alice, bob, monkeypatch
    ):
        """
        Why it matters: a connection can drop after the insert commits.
        Retrying that send must not store the message twice.
        """
        original = MessageStore.create.__func__
        attempts = []

        def commits_then_fails(cls, *args, **kwargs):
            message, created = original(cls, *args, **kwargs)
            attempts.append(created)
            if len(attempts) == 1:
                raise OperationalError("connection lost")
            return message, created

        monkeypatch.setattr(MessageStore, "create", classmethod(commits_then_fails))
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")

        message = await hub.router.send(alice.id, bob.id, "Hi")

        assert attempts == [True, False]
        count = await database_sync_to_async(
            Message.objects.filter(sender=alice, recipient=bob).count
        )()
        assert count == 1
        assert len(emitter.payloads_for("bob-1", "message_received")) == 1
        assert (await stored(message.pk)).status == MessageStatus.DELIVERED

    async def test_resend_after_failure_reaches_online_recipient(
        self, hub, emitter, alice, bob, monkeypatch
    ):
        """
        Why it matters: the first attempt may have stored the message
        before failing. The client's resend with the same token must
        still be pushed to the recipient, not just re-acked.
        """
        original = MessageStore.create.__func__

        def always_fails_after_commit(cls, *args, **kwargs):
            original(cls, *args, **kwargs)
            raise OperationalError("connection lost")

        monkeypatch.setattr(MessageStore, "create", classmethod(always_fails_after_commit))
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")

        with pytest.raises(TransientStoreError):
            await hub.router.send(alice.id, bob.id, "Hi", client_token="t1")
        assert emitter.payloads_for("bob-1", "message_received") == []

        monkeypatch.setattr(MessageStore, "create", classmethod(original))
        message = await hub.router.send(alice.id, bob.id, "Hi", client_token="t1")

        received = emitter.payloads_for("bob-1", "message_received")
        assert [event["message"]["id"] for event in received] == [message.pk]
        assert (await stored(message.pk)).status == MessageStatus.DELIVERED
        count = await database_sync_to_async(
            Message.objects.filter(sender=alice, client_token="t1").count
        )()
        assert count == 1


# =============================================================================
# Assistant peer
# =============================================================================


class TestAssistantPeer:
    async def test_reply_is_sent_back_as_a_message(
        self, assistant_hub, emitter, responder, alice, assistant_user
    ):
        await assistant_hub.connect(alice.id, "alice-1")

        await assistant_hub.router.send(
            alice.id, assistant_user.id, "What's up?", client_token="q1"
        )
        await assistant_hub.router.drain()

        assert responder.calls == [([], "What's up?", assistant_user.id)]
        received = emitter.payloads_for("alice-1", "message_received")
        assert len(received) == 1
        reply = received[0]["message"]
        assert reply["senderId"] == assistant_user.id
        assert reply["content"] == "Hello from Nova"

    async def test_question_is_delivered_then_read(
        self, assistant_hub, emitter, alice, assistant_user
    ):
        await assistant_hub.connect(alice.id, "alice-1")

        question = await assistant_hub.router.send(alice.id, assistant_user.id, "Hi")
        await assistant_hub.router.drain()

        assert statuses(emitter, "alice-1") == [
            ([question.pk], "delivered"),
            ([question.pk], "read"),
        ]
        assert (await stored(question.pk)).status == MessageStatus.READ

    async def test_prior_conversation_is_passed_as_context(
        self, assistant_hub, responder, alice, assistant_user
    ):
        earlier = await database_sync_to_async(MessageFactory)(
            sender=alice, recipient=assistant_user, content="Earlier"
        )

        await assistant_hub.router.send(alice.id, assistant_user.id, "Now")
        await assistant_hub.router.drain()

        prior, content, _ = responder.calls[0]
        assert [m.pk for m in prior] == [earlier.pk]
        assert content == "Now"

    async def test_responder_failure_is_contained(
        self, assistant_hub, emitter, responder, alice, assistant_user, monkeypatch
    ):
        async def broken(prior, content, assistant_id):
            raise RuntimeError("provider exploded")

        monkeypatch.setattr(responder, "reply", broken)
        await assistant_hub.connect(alice.id, "alice-1")

        await assistant_hub.router.send(alice.id, assistant_user.id, "Hi")
        await assistant_hub.router.drain()

        assert emitter.payloads_for("alice-1", "message_received") == []


# =============================================================================
# Edit and delete
# =============================================================================


class TestEditAndDelete:
    async def test_edit_reaches_both_parties(self, hub, emitter, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")

        await hub.router.edit(alice.id, message.pk, "Edited")

        for handle in ("alice-1", "bob-1"):
            edited = emitter.payloads_for(handle, "message_edited")
            assert edited[0]["messageId"] == message.pk
            assert edited[0]["content"] == "Edited"
            assert edited[0]["editedAt"] is not None

    async def test_edit_skips_recipient_who_hid_message(self, hub, emitter, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)
        await database_sync_to_async(message.hidden_for.add)(bob)
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")

        await hub.router.edit(alice.id, message.pk, "Edited")

        assert len(emitter.payloads_for("alice-1", "message_edited")) == 1
        assert emitter.payloads_for("bob-1", "message_edited") == []

    async def test_recipient_cannot_edit(self, hub, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)

        with pytest.raises(AuthorizationError):
            await hub.router.edit(bob.id, message.pk, "Mine now")

    async def test_delete_for_self_only_tells_requester(self, hub, emitter, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")

        await hub.router.delete(bob.id, message.pk, "self")

        assert emitter.payloads_for("bob-1", "message_deleted") == [
            {"messageId": message.pk, "scope": "self"}
        ]
        assert emitter.names_for("alice-1") == []

    async def test_delete_for_everyone_tells_both(self, hub, emitter, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)
        await hub.connect(alice.id, "alice-1")
        await hub.connect(bob.id, "bob-1")

        await hub.router.delete(alice.id, message.pk, "everyone")

        for handle in ("alice-1", "bob-1"):
            assert emitter.payloads_for(handle, "message_deleted") == [
                {"messageId": message.pk, "scope": "everyone"}
            ]
        assert (await stored(message.pk)).is_deleted is True

    async def test_non_sender_delete_for_everyone_leaves_message(self, hub, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)

        with pytest.raises(AuthorizationError):
            await hub.router.delete(bob.id, message.pk, "everyone")

        assert (await stored(message.pk)).is_deleted is False

    async def test_unknown_scope(self, hub, alice, bob):
        message = await database_sync_to_async(MessageFactory)(sender=alice, recipient=bob)

        with pytest.raises(ValidationError) as exc_info:
            await hub.router.delete(alice.id, message.pk, "galaxy")

        assert exc_info.value.error_code == "INVALID_SCOPE"
