"""
Serializers for chat API and socket events.

This module provides two groups of serializers:
- REST serializers (snake_case): messages, contacts, blocks, presence
- Inbound socket event serializers (camelCase keys, snake_case
  validated_data through ``source``)

Serializer Hierarchy:
    MessageSerializer: Message as seen by the requesting user
    ContactSerializer / BlockSerializer: List entries with the other user
    UserReferenceSerializer: {"user_id"} body for contact/block creation
    PresenceSerializer: Privacy-aware presence of one user

    SendMessageEventSerializer: send_message
    PeerEventSerializer: typing_start, typing_stop, mark_conversation_read
    MarkReadEventSerializer: mark_read
    EditMessageEventSerializer: edit_message
    DeleteMessageEventSerializer: delete_message
    FetchHistoryEventSerializer: fetch_history

Design Decisions:
    - Content rules (empty, too long, self-addressed) are enforced by
      MessageStore so REST and socket report the same error codes
    - Status is rendered per viewer (read receipts privacy)
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import PublicUserSerializer
from chat.constants import DELETE_SCOPES, MESSAGE_CONFIG, realtime_setting
from chat.models import Block, Contact, Message, MessageKind
from chat.realtime.events import status_for_viewer


# =============================================================================
# REST Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Message as seen by the requesting user.

    Requires ``request`` in the serializer context. The correlation token
    is only returned to the sender.
    """

    status = serializers.SerializerMethodField(
        help_text="sent, delivered or read as visible to the requester"
    )
    sender_name = serializers.SerializerMethodField(
        help_text="Display name of the sender"
    )
    client_token = serializers.SerializerMethodField(
        help_text="Sender's correlation token (sender only)"
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "sender_id",
            "sender_name",
            "recipient_id",
            "kind",
            "content",
            "attachment_url",
            "attachment_name",
            "client_token",
            "status",
            "created_at",
            "is_edited",
            "edited_at",
        ]
        read_only_fields = fields

    def _viewer_id(self):
        request = self.context.get("request")
        return request.user.pk if request else None

    def get_status(self, obj: Message) -> str:
        return status_for_viewer(obj, self._viewer_id())

    def get_sender_name(self, obj: Message) -> str:
        return obj.sender.profile.display_name

    def get_client_token(self, obj: Message) -> str | None:
        if obj.sender_id != self._viewer_id():
            return None
        return obj.client_token or None


class ContactSerializer(serializers.ModelSerializer):
    user = PublicUserSerializer(source="contact", read_only=True)

    class Meta:
        model = Contact
        fields = ["user", "created_at"]
        read_only_fields = fields


class BlockSerializer(serializers.ModelSerializer):
    user = PublicUserSerializer(source="blocked", read_only=True)

    class Meta:
        model = Block
        fields = ["user", "created_at"]
        read_only_fields = fields


class UserReferenceSerializer(serializers.Serializer):
    """Request body naming another user."""

    user_id = serializers.IntegerField(min_value=1)


class PresenceSerializer(serializers.Serializer):
    """
    Presence of a user.

    ``visible`` is False when the user's privacy settings (or a block)
    hide their presence from the requester; online and last_seen are
    then null.
    """

    user_id = serializers.IntegerField()
    visible = serializers.BooleanField()
    online = serializers.SerializerMethodField()
    last_seen = serializers.DateTimeField(allow_null=True)

    def get_online(self, obj) -> bool | None:
        return obj.online if obj.visible else None


# =============================================================================
# Inbound Socket Event Serializers
# =============================================================================


class SendMessageEventSerializer(serializers.Serializer):
    recipientId = serializers.IntegerField(source="recipient_id", min_value=1)
    content = serializers.CharField(
        required=False, allow_blank=True, trim_whitespace=False, default=""
    )
    clientCorrelationToken = serializers.CharField(
        source="client_token",
        required=False,
        allow_blank=True,
        max_length=MESSAGE_CONFIG.MAX_CLIENT_TOKEN_LENGTH,
        default="",
    )
    kind = serializers.ChoiceField(choices=MessageKind.choices, default=MessageKind.TEXT)
    attachmentUrl = serializers.URLField(
        source="attachment_url", required=False, allow_blank=True, default=""
    )
    attachmentName = serializers.CharField(
        source="attachment_name",
        required=False,
        allow_blank=True,
        max_length=255,
        default="",
    )


class PeerEventSerializer(serializers.Serializer):
    peerId = serializers.IntegerField(source="peer_id", min_value=1)


class MarkReadEventSerializer(serializers.Serializer):
    """Accepts messageId, messageIds, or both."""

    messageId = serializers.IntegerField(source="message_id", min_value=1, required=False)
    messageIds = serializers.ListField(
        source="message_ids",
        child=serializers.IntegerField(min_value=1),
        required=False,
        max_length=MESSAGE_CONFIG.MAX_HISTORY_PAGE_SIZE,
    )

    def validate(self, attrs):
        ids = list(attrs.pop("message_ids", []))
        if "message_id" in attrs:
            ids.append(attrs.pop("message_id"))
        if not ids:
            raise serializers.ValidationError("messageId or messageIds is required")
        attrs["message_ids"] = ids
        return attrs


class EditMessageEventSerializer(serializers.Serializer):
    messageId = serializers.IntegerField(source="message_id", min_value=1)
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)


class DeleteMessageEventSerializer(serializers.Serializer):
    messageId = serializers.IntegerField(source="message_id", min_value=1)
    scope = serializers.ChoiceField(choices=DELETE_SCOPES.CHOICES, default=DELETE_SCOPES.SELF)


class FetchHistoryEventSerializer(serializers.Serializer):
    peerId = serializers.IntegerField(source="peer_id", min_value=1)
    limit = serializers.IntegerField(
        min_value=1,
        max_value=MESSAGE_CONFIG.MAX_HISTORY_PAGE_SIZE,
        default=lambda: realtime_setting("HISTORY_PAGE_SIZE"),
    )
    beforeId = serializers.IntegerField(source="before_id", min_value=1, required=False)
