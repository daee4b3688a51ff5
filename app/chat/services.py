"""
Chat system service layer.

This module provides the synchronous business logic for one-to-one
messaging. The realtime layer (chat/realtime/) calls into it through
database_sync_to_async; REST views call it directly.

Services:
    MessageStore: Message consistency rules (create, status CAS, edit,
        delete for self / everyone, visibility-filtered history)
    RelationshipService: Block list and contact list
    PresenceService: Persisted presence snapshot and presence audiences

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures raise core/chat exceptions; the realtime dispatcher
      and the views turn them into ServiceResult / HTTP errors
    - Status only moves forward and is written with a compare-and-set
    - Edits and deletes write through update_fields and never touch status

Usage:
    from chat.services import MessageStore, RelationshipService

    message, created = MessageStore.create(alice.id, bob.id, "Hello!")
    changed = MessageStore.append_status(message.id, MessageStatus.DELIVERED)
    RelationshipService.block(alice, bob.id)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q
from django.db.models.functions import Coalesce
from django.utils import timezone

from authentication.models import LastSeenVisibility, Profile
from core.exceptions import NotFoundError, ValidationError
from core.services import BaseService

from chat.constants import MESSAGE_CONFIG
from chat.exceptions import AuthorizationError
from chat.models import (
    Block,
    Contact,
    Message,
    MessageEdit,
    MessageKind,
    MessageStatus,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)


def _user_id(user: User | int):
    return getattr(user, "pk", user)


# =============================================================================
# MessageStore
# =============================================================================


class MessageStore(BaseService):
    """
    Consistency rules over persisted messages.

    Methods:
        create: Persist a new message (deduplicated by client token)
        get_visible: Fetch a message the caller may see
        append_status: Advance one message's status (compare-and-set)
        advance_statuses: Advance many messages addressed to one recipient
        edit: Sender-only content edit with history
        delete_for_self: Hide a message for one party
        delete_for_everyone: Sender-only global delete
        history: Visible messages between two users, oldest first
        conversation_queryset: Same filter, as a queryset for REST paging
        pending_for: Messages addressed to a user below a status
        unread_counts: Unread message count per peer
    """

    @classmethod
    def _with_parties(cls) -> QuerySet:
        return Message.objects.select_related("sender__profile", "recipient__profile")

    @classmethod
    def create(
        cls,
        sender_id,
        recipient_id,
        content: str,
        client_token: str = "",
        kind: str = MessageKind.TEXT,
        attachment_url: str = "",
        attachment_name: str = "",
        send_key: UUID | None = None,
    ) -> tuple[Message, bool]:
        """
        Persist a new message in SENT status.

        A non-empty client_token identifies the sender's optimistic
        placeholder. Sending the same token twice returns the message
        persisted the first time with created=False.

        send_key identifies one server-side send, so a retry of a call
        that committed but reported a failure finds the stored row.

        Args:
            sender_id: Author
            recipient_id: The single peer addressed
            content: Text, or caption for attachments
            client_token: Client correlation token (optional)
            kind: MessageKind value
            attachment_url: Out-of-band media location for non-text kinds
            attachment_name: Original file name of the attachment
            send_key: Idempotency key of the calling send (optional)

        Returns:
            (message, created) like QuerySet.get_or_create

        Raises:
            ValidationError: Empty content, self-addressed message,
                content too long, bad kind or token
            NotFoundError: Recipient does not exist or is inactive
        """
        content = (content or "").strip()
        client_token = (client_token or "").strip()
        attachment_url = (attachment_url or "").strip()

        if sender_id == recipient_id:
            raise ValidationError(
                "You cannot send a message to yourself",
                error_code="SELF_MESSAGE",
            )
        if kind not in MessageKind.values:
            raise ValidationError(
                f"Unknown message kind: {kind}",
                error_code="INVALID_KIND",
            )
        if kind == MessageKind.TEXT and not content:
            raise ValidationError(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if kind != MessageKind.TEXT and not attachment_url:
            raise ValidationError(
                "Attachment messages require an attachment URL",
                error_code="MISSING_ATTACHMENT",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Message content exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        if len(client_token) > MESSAGE_CONFIG.MAX_CLIENT_TOKEN_LENGTH:
            raise ValidationError(
                "Correlation token is too long",
                error_code="INVALID_CLIENT_TOKEN",
            )

        existing = cls._find_duplicate(sender_id, client_token, send_key)
        if existing is not None:
            logger.debug(
                f"Duplicate send suppressed: sender={sender_id} token={client_token}"
            )
            return existing, False

        if not Profile.objects.filter(user_id=recipient_id, user__is_active=True).exists():
            raise NotFoundError("Recipient not found", error_code="RECIPIENT_NOT_FOUND")

        try:
            with transaction.atomic():
                message = Message.objects.create(
                    sender_id=sender_id,
                    recipient_id=recipient_id,
                    kind=kind,
                    content=content,
                    attachment_url=attachment_url,
                    attachment_name=attachment_name or "",
                    client_token=client_token,
                    send_key=send_key,
                )
        except IntegrityError:
            # Concurrent send with the same token or key won the insert
            existing = cls._find_duplicate(sender_id, client_token, send_key)
            if existing is None:
                raise
            return existing, False

        logger.info(
            f"Message {message.pk} stored: {sender_id} -> {recipient_id} ({kind})"
        )
        return cls._with_parties().get(pk=message.pk), True

    @classmethod
    def _find_duplicate(cls, sender_id, client_token: str, send_key) -> Message | None:
        duplicates = Q()
        if client_token:
            duplicates |= Q(sender_id=sender_id, client_token=client_token)
        if send_key:
            duplicates |= Q(send_key=send_key)
        if not duplicates:
            return None
        return cls._with_parties().filter(duplicates).first()

    @classmethod
    def get(cls, message_id) -> Message:
        """
        Fetch a message regardless of visibility.

        Raises:
            NotFoundError: No such message
        """
        try:
            return cls._with_parties().get(pk=message_id)
        except (Message.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")

    @classmethod
    def viewers(cls, message: Message) -> list[int]:
        """Parties of the message that have not hidden it."""
        hidden = set(message.hidden_for.values_list("id", flat=True))
        return [
            user_id
            for user_id in (message.sender_id, message.recipient_id)
            if user_id not in hidden
        ]

    @classmethod
    def get_visible(cls, message_id, user_id) -> Message:
        """
        Fetch a message the user is a party to and can still see.

        Raises:
            NotFoundError: Missing, not a party, deleted, or hidden for user
        """
        message = cls.get(message_id)
        if (
            not message.is_party(user_id)
            or message.is_deleted
            or message.hidden_for.filter(pk=user_id).exists()
        ):
            raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")
        return message

    @staticmethod
    def _status_updates(new_status: int) -> dict:
        now = timezone.now()
        updates = {"status": new_status, "updated_at": now}
        if new_status >= MessageStatus.DELIVERED:
            updates["delivered_at"] = Coalesce(F("delivered_at"), now)
        if new_status >= MessageStatus.READ:
            updates["read_at"] = Coalesce(F("read_at"), now)
        return updates

    @classmethod
    def append_status(cls, message_id, new_status: int) -> bool:
        """
        Advance a message's status if new_status is strictly greater.

        Implemented as UPDATE ... WHERE status < new_status, so concurrent
        delivered/read notifications cannot lower the final status and
        duplicates are no-ops.

        Returns:
            True if the stored status changed
        """
        new_status = MessageStatus(new_status)
        updated = Message.objects.filter(pk=message_id, status__lt=new_status).update(
            **cls._status_updates(new_status)
        )
        if updated:
            logger.debug(f"Message {message_id} advanced to {new_status.label}")
        return bool(updated)

    @classmethod
    def advance_statuses(
        cls, recipient_id, message_ids: Iterable, new_status: int
    ) -> list[tuple[int, int]]:
        """
        Advance every listed message addressed to recipient_id.

        Ids that are not addressed to the recipient are ignored and
        logged, so a forged receipt changes nothing and reveals nothing.
        Messages deleted for everyone or hidden by the recipient are
        skipped silently.

        Returns:
            (message_id, sender_id) for each message whose status changed
        """
        new_status = MessageStatus(new_status)
        ids = {int(message_id) for message_id in message_ids}
        if not ids:
            return []

        with transaction.atomic():
            changed = list(
                Message.objects.visible_to(recipient_id)
                .select_for_update()
                .filter(pk__in=ids, recipient_id=recipient_id, status__lt=new_status)
                .order_by("id")
                .values_list("id", "sender_id")
            )
            if changed:
                Message.objects.filter(
                    pk__in=[message_id for message_id, _ in changed],
                    status__lt=new_status,
                ).update(**cls._status_updates(new_status))

        if len(changed) < len(ids):
            addressed = set(
                Message.objects.filter(pk__in=ids, recipient_id=recipient_id).values_list(
                    "id", flat=True
                )
            )
            foreign = ids - addressed
            if foreign:
                logger.warning(
                    f"User {recipient_id} sent a {new_status.label} receipt for "
                    f"message(s) not addressed to them: {sorted(foreign)}"
                )

        if changed:
            logger.debug(
                f"{len(changed)} message(s) for user {recipient_id} advanced to "
                f"{new_status.label}"
            )
        return changed

    @classmethod
    def edit(cls, message_id, editor_id, new_content: str) -> Message:
        """
        Replace the content of the editor's own message.

        Only content and edit tracking are written. Status, sender,
        recipient and created_at are never touched.

        Raises:
            ValidationError: Empty or too long content
            NotFoundError: Message missing or not visible to the editor
            AuthorizationError: Editor is not the sender
        """
        new_content = (new_content or "").strip()
        message = cls.get_visible(message_id, editor_id)

        if message.sender_id != editor_id:
            raise AuthorizationError("You can only edit your own messages")
        if not new_content and message.kind == MessageKind.TEXT:
            raise ValidationError(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(new_content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Message content exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )

        with transaction.atomic():
            # Re-fetch with lock to serialize concurrent edits
            locked = Message.objects.select_for_update().get(pk=message.pk)
            if locked.is_deleted:
                raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")

            if locked.edit_count == 0:
                locked.original_content = locked.content

            MessageEdit.objects.create(
                message=locked,
                content=locked.content,
                edit_number=locked.edit_count + 1,
            )

            locked.content = new_content
            locked.is_edited = True
            locked.edited_at = timezone.now()
            locked.edit_count = F("edit_count") + 1
            locked.save(
                update_fields=[
                    "content",
                    "original_content",
                    "is_edited",
                    "edited_at",
                    "edit_count",
                    "updated_at",
                ]
            )

        logger.info(f"Message {message.pk} edited by user {editor_id}")
        return cls.get(message.pk)

    @classmethod
    def delete_for_self(cls, message_id, user_id) -> Message:
        """
        Hide a message from one party's history. Idempotent.

        The other party keeps seeing the message and the global-delete
        flag is untouched.

        Raises:
            NotFoundError: Message missing or user is not a party
        """
        message = cls.get(message_id)
        if not message.is_party(user_id):
            raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")

        message.hidden_for.add(user_id)
        logger.debug(f"Message {message.pk} hidden for user {user_id}")
        return message

    @classmethod
    def delete_for_everyone(cls, message_id, requester_id) -> Message:
        """
        Delete a message for both parties by setting the global flag.

        The row is kept; is_deleted hides it from every history query.
        Repeating the call is a no-op.

        Raises:
            NotFoundError: Message missing, requester not a party, or
                already hidden for the requester
            AuthorizationError: Requester is not the sender
        """
        message = cls.get(message_id)
        if not message.is_party(requester_id) or message.hidden_for.filter(
            pk=requester_id
        ).exists():
            raise NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")
        if message.sender_id != requester_id:
            raise AuthorizationError("You can only delete your own messages for everyone")

        message.soft_delete()
        logger.info(f"Message {message.pk} deleted for everyone by user {requester_id}")
        return message

    @classmethod
    def conversation_queryset(cls, requester_id, peer_id) -> QuerySet:
        """Visible messages between requester and peer, as a queryset."""
        return (
            cls._with_parties()
            .between(requester_id, peer_id)
            .visible_to(requester_id)
        )

    @classmethod
    def history(
        cls,
        requester_id,
        peer_id,
        limit: int = 50,
        before_id=None,
    ) -> list[Message]:
        """
        Return visible messages between two users, oldest first.

        Args:
            requester_id: User asking; visibility is evaluated for them
            peer_id: The other party
            limit: Maximum number of messages (the most recent ones)
            before_id: Only messages with a smaller id (older page)
        """
        limit = max(1, min(int(limit), MESSAGE_CONFIG.MAX_HISTORY_PAGE_SIZE))
        queryset = cls.conversation_queryset(requester_id, peer_id)
        if before_id is not None:
            queryset = queryset.filter(pk__lt=before_id)
        page = list(queryset.order_by("-created_at", "-id")[:limit])
        page.reverse()
        return page

    @classmethod
    def pending_for(cls, recipient_id, peer_id=None, below=MessageStatus.READ) -> list[int]:
        """Ids of visible messages addressed to recipient with status < below."""
        queryset = Message.objects.filter(
            recipient_id=recipient_id, status__lt=below
        ).visible_to(recipient_id)
        if peer_id is not None:
            queryset = queryset.filter(sender_id=peer_id)
        return list(queryset.order_by("id").values_list("id", flat=True))

    @classmethod
    def unread_counts(cls, user_id) -> dict[int, int]:
        """Unread message count per sender for messages addressed to user."""
        rows = (
            Message.objects.filter(recipient_id=user_id, status__lt=MessageStatus.READ)
            .visible_to(user_id)
            .values("sender_id")
            .annotate(count=Count("id"))
        )
        return {row["sender_id"]: row["count"] for row in rows}


# =============================================================================
# RelationshipService
# =============================================================================


class RelationshipService(BaseService):
    """
    Block list and contact list management.

    Methods:
        get_peer: Resolve an active user's profile
        block / unblock / is_blocked_between / blocked_ids
        add_contact / remove_contact / contact_ids
    """

    @classmethod
    def get_peer(cls, user_id) -> Profile:
        """
        Return the profile of an active user.

        Raises:
            NotFoundError: No such active user
        """
        try:
            return Profile.objects.select_related("user").get(
                user_id=user_id, user__is_active=True
            )
        except (Profile.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND")

    @classmethod
    def block(cls, blocker: User, blocked_id) -> Block:
        """
        Add a user to the blocker's block list. Idempotent.

        Raises:
            ValidationError: Blocking yourself
            NotFoundError: Target user does not exist
        """
        if _user_id(blocker) == blocked_id:
            raise ValidationError("You cannot block yourself", error_code="SELF_BLOCK")
        cls.get_peer(blocked_id)

        block, created = Block.objects.get_or_create(
            blocker_id=_user_id(blocker), blocked_id=blocked_id
        )
        if created:
            logger.info(f"User {_user_id(blocker)} blocked user {blocked_id}")
        return block

    @classmethod
    def unblock(cls, blocker: User, blocked_id) -> bool:
        """Remove a block. Returns whether one existed."""
        deleted, _ = Block.objects.filter(
            blocker_id=_user_id(blocker), blocked_id=blocked_id
        ).delete()
        if deleted:
            logger.info(f"User {_user_id(blocker)} unblocked user {blocked_id}")
        return bool(deleted)

    @classmethod
    def is_blocked_between(cls, user_a, user_b) -> bool:
        """Whether either user has blocked the other."""
        return Block.exists_between(user_a, user_b)

    @classmethod
    def blocked_ids(cls, user_id) -> set:
        """Users blocked by, or blocking, the given user."""
        made = Block.objects.filter(blocker_id=user_id).values_list("blocked_id", flat=True)
        received = Block.objects.filter(blocked_id=user_id).values_list(
            "blocker_id", flat=True
        )
        return set(made) | set(received)

    @classmethod
    def list_blocks(cls, blocker: User) -> QuerySet:
        return Block.objects.filter(blocker_id=_user_id(blocker)).select_related(
            "blocked__profile"
        )

    @classmethod
    def add_contact(cls, owner: User, contact_id) -> Contact:
        """
        Add a user to the owner's contact list. Idempotent.

        Raises:
            ValidationError: Adding yourself
            NotFoundError: Target user does not exist
        """
        if _user_id(owner) == contact_id:
            raise ValidationError(
                "You cannot add yourself as a contact", error_code="SELF_CONTACT"
            )
        cls.get_peer(contact_id)

        contact, _ = Contact.objects.get_or_create(
            owner_id=_user_id(owner), contact_id=contact_id
        )
        return contact

    @classmethod
    def remove_contact(cls, owner: User, contact_id) -> bool:
        """Remove a contact. Returns whether one existed."""
        deleted, _ = Contact.objects.filter(
            owner_id=_user_id(owner), contact_id=contact_id
        ).delete()
        return bool(deleted)

    @classmethod
    def contact_ids(cls, owner_id) -> set:
        return set(
            Contact.objects.filter(owner_id=owner_id).values_list("contact_id", flat=True)
        )

    @classmethod
    def list_contacts(cls, owner: User) -> QuerySet:
        return Contact.objects.filter(owner_id=_user_id(owner)).select_related(
            "contact__profile"
        )


# =============================================================================
# PresenceService
# =============================================================================


@dataclass
class PresencePolicy:
    """
    Who may observe a subject's presence.

    Attributes:
        visibility: LastSeenVisibility of the subject
        contact_ids: Subject's contact list
        blocked_ids: Users blocked by or blocking the subject
    """

    visibility: str
    contact_ids: set = field(default_factory=set)
    blocked_ids: set = field(default_factory=set)

    def allows(self, viewer_id) -> bool:
        """Whether viewer_id may learn the subject's presence."""
        if viewer_id in self.blocked_ids:
            return False
        if self.visibility == LastSeenVisibility.NOBODY:
            return False
        if self.visibility == LastSeenVisibility.CONTACTS:
            return viewer_id in self.contact_ids
        return True


@dataclass
class PresenceSnapshot:
    """Persisted presence of one user."""

    user_id: int
    is_online: bool
    last_seen: datetime | None


class PresenceService(BaseService):
    """
    Persisted presence snapshot and presence audiences.

    The realtime PresenceTracker decides transitions; this service only
    records them on Profile and answers policy questions.

    Methods:
        mark_online: Persist is_online=True
        mark_offline: Persist is_online=False and stamp last_seen
        get_snapshot: Read the persisted presence of a user
        get_policy: Visibility, contacts and blocks of a subject
    """

    @classmethod
    def mark_online(cls, user_id) -> None:
        Profile.objects.filter(user_id=user_id).update(
            is_online=True, updated_at=timezone.now()
        )

    @classmethod
    def mark_offline(cls, user_id, at: datetime | None = None) -> datetime:
        """Persist offline state; returns the last-seen timestamp written."""
        at = at or timezone.now()
        Profile.objects.filter(user_id=user_id).update(
            is_online=False, last_seen=at, updated_at=timezone.now()
        )
        return at

    @classmethod
    def get_snapshot(cls, user_id) -> PresenceSnapshot:
        """
        Raises:
            NotFoundError: No such user
        """
        row = (
            Profile.objects.filter(user_id=user_id)
            .values("is_online", "last_seen")
            .first()
        )
        if row is None:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND")
        return PresenceSnapshot(
            user_id=user_id, is_online=row["is_online"], last_seen=row["last_seen"]
        )

    @classmethod
    def get_policy(cls, subject_id) -> PresencePolicy:
        """Build the presence audience policy for a subject."""
        visibility = (
            Profile.objects.filter(user_id=subject_id)
            .values_list("last_seen_visibility", flat=True)
            .first()
        ) or LastSeenVisibility.EVERYONE
        return PresencePolicy(
            visibility=visibility,
            contact_ids=RelationshipService.contact_ids(subject_id),
            blocked_ids=RelationshipService.blocked_ids(subject_id),
        )


def group_by_sender(changed: Iterable[tuple[int, int]]) -> dict[int, list[int]]:
    """Group (message_id, sender_id) pairs into sender -> [message ids]."""
    grouped: dict[int, list[int]] = defaultdict(list)
    for message_id, sender_id in changed:
        grouped[sender_id].append(message_id)
    return dict(grouped)
