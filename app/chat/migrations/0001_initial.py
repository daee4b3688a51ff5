"""
Initial schema for the chat app.

Creates direct messages with ordered delivery status, edit history,
contact lists and block lists.
"""

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Message",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "is_deleted",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether this record has been soft deleted",
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="Timestamp when this record was soft deleted",
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("text", "Text"),
                            ("image", "Image"),
                            ("file", "File"),
                            ("audio", "Audio"),
                        ],
                        default="text",
                        help_text="Kind of message content",
                        max_length=10,
                    ),
                ),
                (
                    "content",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Message text, or caption for attachments",
                    ),
                ),
                (
                    "attachment_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Location of out-of-band media",
                        max_length=500,
                    ),
                ),
                (
                    "attachment_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Original file name of the attachment",
                        max_length=255,
                    ),
                ),
                (
                    "client_token",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Client correlation token used to suppress duplicate sends",
                        max_length=64,
                    ),
                ),
                (
                    "send_key",
                    models.UUIDField(
                        blank=True,
                        editable=False,
                        help_text="Idempotency key of the send that stored this message",
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    models.PositiveSmallIntegerField(
                        choices=[(1, "sent"), (2, "delivered"), (3, "read")],
                        default=1,
                        help_text="Delivery status (sent < delivered < read)",
                    ),
                ),
                (
                    "delivered_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When the message first reached delivered",
                    ),
                ),
                (
                    "read_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When the message first reached read",
                    ),
                ),
                (
                    "is_edited",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the message has been edited",
                    ),
                ),
                (
                    "edited_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When the message was last edited",
                    ),
                ),
                (
                    "edit_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of times the message has been edited",
                    ),
                ),
                (
                    "original_content",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Content before the first edit",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        help_text="User who sent this message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sent_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User this message is addressed to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="received_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "hidden_for",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Users who deleted this message for themselves",
                        related_name="hidden_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="MessageEdit",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "content",
                    models.TextField(help_text="Message content before this edit"),
                ),
                (
                    "edit_number",
                    models.PositiveSmallIntegerField(
                        help_text="Sequential edit number (1 = first edit)",
                    ),
                ),
                (
                    "message",
                    models.ForeignKey(
                        help_text="Message this edit belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="edit_history",
                        to="chat.message",
                    ),
                ),
            ],
            options={
                "db_table": "chat_message_edit",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Contact",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User whose contact list this entry belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contact_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "contact",
                    models.ForeignKey(
                        help_text="User on the list",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="listed_by",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_contact",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Block",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "blocker",
                    models.ForeignKey(
                        help_text="User who blocked",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks_made",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "blocked",
                    models.ForeignKey(
                        help_text="User who was blocked",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="blocks_received",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_block",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="message",
            index=models.Index(
                fields=["sender", "recipient", "created_at"],
                name="chat_msg_pair_idx",
            ),
        ),
        migrations.AddIndex(
            model_name="message",
            index=models.Index(
                fields=["recipient", "status"],
                name="chat_msg_recipient_status_idx",
            ),
        ),
        migrations.AddConstraint(
            model_name="message",
            constraint=models.UniqueConstraint(
                condition=models.Q(("client_token", ""), _negated=True),
                fields=("sender", "client_token"),
                name="chat_msg_unique_client_token",
            ),
        ),
        migrations.AddConstraint(
            model_name="message",
            constraint=models.CheckConstraint(
                condition=models.Q(("sender", models.F("recipient")), _negated=True),
                name="chat_msg_not_self_addressed",
            ),
        ),
        migrations.AddConstraint(
            model_name="messageedit",
            constraint=models.UniqueConstraint(
                fields=("message", "edit_number"),
                name="unique_message_edit_number",
            ),
        ),
        migrations.AddConstraint(
            model_name="contact",
            constraint=models.UniqueConstraint(
                fields=("owner", "contact"),
                name="unique_contact_pair",
            ),
        ),
        migrations.AddConstraint(
            model_name="contact",
            constraint=models.CheckConstraint(
                condition=models.Q(("owner", models.F("contact")), _negated=True),
                name="chat_contact_not_self",
            ),
        ),
        migrations.AddConstraint(
            model_name="block",
            constraint=models.UniqueConstraint(
                fields=("blocker", "blocked"),
                name="unique_block_pair",
            ),
        ),
        migrations.AddConstraint(
            model_name="block",
            constraint=models.CheckConstraint(
                condition=models.Q(("blocker", models.F("blocked")), _negated=True),
                name="chat_block_not_self",
            ),
        ),
    ]
