"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, editing)
- Realtime delivery (typing timeout, presence grace, store timeouts)
- Socket event names shared by the consumer, dispatcher and router

Realtime values can be overridden through settings.CHAT_REALTIME.
Import example:
    from chat.constants import MESSAGE_CONFIG, realtime_setting
"""

from typing import Final

from django.conf import settings


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MAX_CLIENT_TOKEN_LENGTH: Final[int] = 64

    # History settings
    MAX_HISTORY_PAGE_SIZE: Final[int] = 200


# =============================================================================
# Realtime Configuration
# =============================================================================


REALTIME_DEFAULTS: Final[dict] = {
    "TYPING_TIMEOUT_SECONDS": 1.0,
    "PRESENCE_GRACE_SECONDS": 0.0,
    "STORE_TIMEOUT_SECONDS": 5.0,
    "STORE_MAX_RETRIES": 2,
    "STORE_RETRY_BACKOFF_SECONDS": 0.05,
    "HISTORY_PAGE_SIZE": 50,
}


def realtime_setting(name: str):
    """Read a CHAT_REALTIME value, falling back to REALTIME_DEFAULTS."""
    overrides = getattr(settings, "CHAT_REALTIME", {}) or {}
    return overrides.get(name, REALTIME_DEFAULTS[name])


# =============================================================================
# WebSocket Close Codes
# =============================================================================


class CLOSE_CODES:
    """Application close codes (4000-4999 range)."""

    UNAUTHENTICATED: Final[int] = 4001


# =============================================================================
# Event Names
# =============================================================================


class INBOUND_EVENTS:
    """Event names clients send over the socket."""

    SEND_MESSAGE: Final[str] = "send_message"
    TYPING_START: Final[str] = "typing_start"
    TYPING_STOP: Final[str] = "typing_stop"
    MARK_READ: Final[str] = "mark_read"
    MARK_CONVERSATION_READ: Final[str] = "mark_conversation_read"
    EDIT_MESSAGE: Final[str] = "edit_message"
    DELETE_MESSAGE: Final[str] = "delete_message"
    FETCH_HISTORY: Final[str] = "fetch_history"


class OUTBOUND_EVENTS:
    """Event names the server pushes to connections."""

    PRESENCE_CHANGED: Final[str] = "presence_changed"
    MESSAGE_SENT_ACK: Final[str] = "message_sent_ack"
    MESSAGE_RECEIVED: Final[str] = "message_received"
    MESSAGE_STATUS_CHANGED: Final[str] = "message_status_changed"
    TYPING_CHANGED: Final[str] = "typing_changed"
    MESSAGE_EDITED: Final[str] = "message_edited"
    MESSAGE_DELETED: Final[str] = "message_deleted"
    HISTORY: Final[str] = "history"
    ERROR: Final[str] = "error"


class DELETE_SCOPES:
    """Scopes of delete_message."""

    SELF: Final[str] = "self"
    EVERYONE: Final[str] = "everyone"

    CHOICES: Final[tuple] = (SELF, EVERYONE)
