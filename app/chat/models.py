"""
Chat system models.

This module defines the data models for one-to-one messaging:

Models:
    Message: A message from one user to exactly one other user
    MessageEdit: Content of a message before each edit
    Contact: One entry of a user's contact list
    Block: One entry of a user's block list

Design Decisions:
    - Conversations are implicit: the unordered pair (sender, recipient)
    - Status is an ordered integer so "advance only" is a single
      UPDATE ... WHERE status < new
    - Delete-for-everyone is flag-based (SoftDeleteMixin) and keeps the row
    - Delete-for-self adds the user to hidden_for; the other party still
      sees the message
    - client_token is the client's correlation token; it is only used to
      suppress duplicate sends and is never the message identity
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.models import BaseModel
from core.model_mixins import SoftDeleteMixin

if TYPE_CHECKING:
    from authentication.models import User


class MessageKind(models.TextChoices):
    """
    Kind of message content.

    TEXT: Plain text in content
    IMAGE/FILE/AUDIO: attachment_url points to media stored out of band;
        content is an optional caption
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    FILE = "file", "File"
    AUDIO = "audio", "Audio"


class MessageStatus(models.IntegerChoices):
    """
    Delivery status of a message.

    Ordered: SENT < DELIVERED < READ. Status only ever moves forward.
    """

    SENT = 1, "sent"
    DELIVERED = 2, "delivered"
    READ = 3, "read"


class MessageQuerySet(models.QuerySet):
    """Query helpers for direct messages."""

    def between(self, user_a_id, user_b_id) -> MessageQuerySet:
        """Messages exchanged in either direction between two users."""
        return self.filter(
            Q(sender_id=user_a_id, recipient_id=user_b_id)
            | Q(sender_id=user_b_id, recipient_id=user_a_id)
        )

    def visible_to(self, user_id) -> MessageQuerySet:
        """Exclude globally deleted messages and ones the user hid."""
        return self.filter(is_deleted=False).exclude(hidden_for__id=user_id)

    def involving(self, user_id) -> MessageQuerySet:
        """Messages the user sent or received."""
        return self.filter(Q(sender_id=user_id) | Q(recipient_id=user_id))


class Message(SoftDeleteMixin, BaseModel):
    """
    A direct message from sender to recipient.

    Status Behavior:
        SENT: Persisted; recipient had no live connection
        DELIVERED: Pushed to a live connection of the recipient, or fetched
        READ: Recipient marked it read
        Status is advanced with a compare-and-set and never regresses.

    Soft Delete Behavior:
        is_deleted=True: Deleted for everyone; hidden from both parties
        hidden_for: Users who deleted it for themselves only

    Editing:
        Only the sender may edit. Edits never touch status, sender,
        recipient or created_at. The first content is kept in
        original_content and every prior version in MessageEdit.

    Fields:
        sender: Author
        recipient: The single peer the message is addressed to
        kind: text/image/file/audio
        content: Text or caption
        attachment_url: Out-of-band media location
        attachment_name: Original file name of the attachment
        client_token: Client correlation token, unique per sender when set
        send_key: Server idempotency key of the send() call that stored it
        status: MessageStatus value
        delivered_at: When status first reached DELIVERED
        read_at: When status first reached READ
        is_edited, edited_at, edit_count, original_content: Edit tracking
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_messages",
        help_text="User this message is addressed to",
    )

    kind = models.CharField(
        max_length=10,
        choices=MessageKind.choices,
        default=MessageKind.TEXT,
        help_text="Kind of message content",
    )
    content = models.TextField(
        blank=True,
        default="",
        help_text="Message text, or caption for attachments",
    )
    attachment_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Location of out-of-band media",
    )
    attachment_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Original file name of the attachment",
    )

    client_token = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Client correlation token used to suppress duplicate sends",
    )
    send_key = models.UUIDField(
        null=True,
        blank=True,
        unique=True,
        editable=False,
        help_text="Idempotency key of the send that stored this message",
    )

    status = models.PositiveSmallIntegerField(
        choices=MessageStatus.choices,
        default=MessageStatus.SENT,
        help_text="Delivery status (sent < delivered < read)",
    )
    delivered_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the message first reached delivered",
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the message first reached read",
    )

    is_edited = models.BooleanField(
        default=False,
        help_text="Whether the message has been edited",
    )
    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the message was last edited",
    )
    edit_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of times the message has been edited",
    )
    original_content = models.TextField(
        blank=True,
        default="",
        help_text="Content before the first edit",
    )

    hidden_for = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="hidden_messages",
        help_text="Users who deleted this message for themselves",
    )

    objects = MessageQuerySet.as_manager()

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Conversation history in both directions
            models.Index(
                fields=["sender", "recipient", "created_at"],
                name="chat_msg_pair_idx",
            ),
            # Undelivered/unread messages for a recipient
            models.Index(
                fields=["recipient", "status"],
                name="chat_msg_recipient_status_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["sender", "client_token"],
                condition=~Q(client_token=""),
                name="chat_msg_unique_client_token",
            ),
            models.CheckConstraint(
                condition=~Q(sender=models.F("recipient")),
                name="chat_msg_not_self_addressed",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"User {self.sender_id} -> User {self.recipient_id}: {preview}{deleted_str}"

    @property
    def status_name(self) -> str:
        """Lowercase status label used on the wire."""
        return MessageStatus(self.status).label

    def peer_of(self, user_id):
        """Return the other party's id from user_id's point of view."""
        return self.recipient_id if self.sender_id == user_id else self.sender_id

    def is_party(self, user_id) -> bool:
        """Whether the user sent or received this message."""
        return user_id in (self.sender_id, self.recipient_id)


class MessageEdit(BaseModel):
    """
    Content of a message before one of its edits.

    edit_number 1 holds the content before the first edit, and so on.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="edit_history",
        help_text="Message this edit belongs to",
    )
    content = models.TextField(
        help_text="Message content before this edit",
    )
    edit_number = models.PositiveSmallIntegerField(
        help_text="Sequential edit number (1 = first edit)",
    )

    class Meta:
        db_table = "chat_message_edit"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "edit_number"],
                name="unique_message_edit_number",
            ),
        ]

    def __str__(self) -> str:
        return f"Edit {self.edit_number} of message {self.message_id}"


class Contact(BaseModel):
    """
    A user on someone's contact list.

    Contacts are one-directional: owner lists contact. The list decides
    who sees presence when the owner's visibility is "contacts".
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="contact_entries",
        help_text="User whose contact list this entry belongs to",
    )
    contact = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="listed_by",
        help_text="User on the list",
    )

    class Meta:
        db_table = "chat_contact"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "contact"],
                name="unique_contact_pair",
            ),
            models.CheckConstraint(
                condition=~Q(owner=models.F("contact")),
                name="chat_contact_not_self",
            ),
        ]

    def __str__(self) -> str:
        return f"User {self.owner_id} lists User {self.contact_id}"


class Block(BaseModel):
    """
    A user on someone's block list.

    A block in either direction stops messages both ways and hides
    presence both ways.
    """

    blocker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blocks_made",
        help_text="User who blocked",
    )
    blocked = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blocks_received",
        help_text="User who was blocked",
    )

    class Meta:
        db_table = "chat_block"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["blocker", "blocked"],
                name="unique_block_pair",
            ),
            models.CheckConstraint(
                condition=~Q(blocker=models.F("blocked")),
                name="chat_block_not_self",
            ),
        ]

    def __str__(self) -> str:
        return f"User {self.blocker_id} blocked User {self.blocked_id}"

    @classmethod
    def exists_between(cls, user_a: User | int, user_b: User | int) -> bool:
        """Whether either user has blocked the other."""
        a = getattr(user_a, "pk", user_a)
        b = getattr(user_b, "pk", user_b)
        return cls.objects.filter(
            Q(blocker_id=a, blocked_id=b) | Q(blocker_id=b, blocked_id=a)
        ).exists()
