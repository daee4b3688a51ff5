"""
Chat application configuration.

This app provides one-to-one messaging with:
- Store-and-forward delivery and monotonic delivered/read status
- Presence with privacy controls
- Typing indicators
- Message editing and soft deletion
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
