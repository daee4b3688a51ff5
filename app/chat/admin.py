"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Message moderation (status is read-only)
- Contact and block list inspection
"""

from django.contrib import admin

from chat.models import Block, Contact, Message, MessageEdit


class MessageEditInline(admin.TabularInline):
    """Inline display of prior versions in message admin."""

    model = MessageEdit
    extra = 0
    readonly_fields = ["edit_number", "content", "created_at"]
    can_delete = False


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "sender",
        "recipient",
        "kind",
        "content_preview",
        "status",
        "is_edited",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["kind", "status", "is_edited", "is_deleted", "created_at"]
    search_fields = ["content", "sender__email", "recipient__email", "client_token"]
    readonly_fields = [
        "status",
        "delivered_at",
        "read_at",
        "client_token",
        "send_key",
        "edit_count",
        "edited_at",
        "original_content",
        "created_at",
        "updated_at",
        "deleted_at",
    ]
    raw_id_fields = ["sender", "recipient", "hidden_for"]
    inlines = [MessageEditInline]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ["id", "owner", "contact", "created_at"]
    search_fields = ["owner__email", "contact__email"]
    raw_id_fields = ["owner", "contact"]
    ordering = ["-created_at"]


@admin.register(Block)
class BlockAdmin(admin.ModelAdmin):
    list_display = ["id", "blocker", "blocked", "created_at"]
    search_fields = ["blocker__email", "blocked__email"]
    raw_id_fields = ["blocker", "blocked"]
    ordering = ["-created_at"]
