"""
Django admin configuration for authentication models.

This module registers User and Profile with the Django admin site.

Related files:
    - models.py: Model definitions
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User, Profile


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin configuration for User model (slim version).

    Customized for email-based authentication. Profile data (name,
    presence, privacy) is managed via ProfileAdmin.
    """

    list_display = (
        "email",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = (
        "is_active",
        "is_staff",
        "is_superuser",
        "date_joined",
    )
    search_fields = ("email",)
    ordering = ("-date_joined",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        (
            "Status",
            {"fields": ("is_active", "is_staff", "is_superuser")},
        ),
        (
            "Permissions",
            {"fields": ("groups", "user_permissions")},
        ),
        (
            "Important dates",
            {"fields": ("date_joined", "last_login")},
        ),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("date_joined", "last_login")


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    """
    Admin configuration for Profile model.

    Presence fields are read-only here: they are owned by the realtime
    presence tracker.
    """

    list_display = (
        "user",
        "username",
        "is_online",
        "last_seen",
        "last_seen_visibility",
        "is_assistant",
    )
    list_filter = ("is_online", "last_seen_visibility", "is_assistant")
    search_fields = ("user__email", "username", "first_name", "last_name")
    ordering = ("-created_at",)

    raw_id_fields = ("user",)
    readonly_fields = ("is_online", "last_seen", "created_at", "updated_at")

    fieldsets = (
        (
            "User",
            {"fields": ("user", "is_assistant")},
        ),
        (
            "Identity",
            {"fields": ("username", "first_name", "last_name", "bio", "avatar_url")},
        ),
        (
            "Privacy",
            {"fields": ("last_seen_visibility", "read_receipts_enabled")},
        ),
        (
            "Presence",
            {"fields": ("is_online", "last_seen")},
        ),
        (
            "Timestamps",
            {"fields": ("created_at", "updated_at")},
        ),
    )
