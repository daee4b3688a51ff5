"""
Authentication models.

This module defines the identity models the chat core relies on:
- User: Custom user model with email-based authentication (slim, auth-focused)
- Profile: Display data, presence snapshot and privacy preferences

Related files:
    - managers.py: Custom user manager for email-based creation
    - signals.py: Auto-create profile on user creation
    - chat.services.PresenceService: Writes is_online / last_seen

Presence fields:
    Profile.is_online and Profile.last_seen are a persisted snapshot of
    what the realtime presence tracker decided. The live truth is the
    in-memory connection registry; the snapshot serves REST reads and
    survives restarts.
"""

import re

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Lower

from authentication.managers import UserManager
from core.models import BaseModel


# Reserved usernames that cannot be used
RESERVED_USERNAMES = frozenset([
    "admin", "administrator", "root", "system", "api", "support",
    "help", "null", "undefined", "anonymous", "staff", "moderator",
])


def validate_username_not_reserved(value):
    """Validate that username is not in the reserved list."""
    if value.lower() in RESERVED_USERNAMES:
        raise ValidationError(
            f"The username '{value}' is reserved and cannot be used."
        )


def validate_username_format(value):
    """Validate username format: 3-30 chars, alphanumeric + _ + -."""
    if not re.match(r"^[a-zA-Z0-9_-]{3,30}$", value):
        raise ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, underscores, and hyphens."
        )


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Profile data (name, presence, privacy) is stored in the Profile model.

    Fields:
        email: Primary identifier, unique, used for login
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        """Return the user's email as string representation."""
        return self.email

    def get_full_name(self):
        """Return the display name from profile, or email if unset."""
        try:
            return self.profile.display_name
        except Profile.DoesNotExist:
            return self.email

    def get_short_name(self):
        """Return the first name from profile, or the email local part."""
        try:
            return self.profile.first_name or self.email.split("@")[0]
        except Profile.DoesNotExist:
            return self.email.split("@")[0]


class LastSeenVisibility(models.TextChoices):
    """
    Who may see a user's presence and last-seen timestamp.

    EVERYONE: Any user not blocked by / blocking the subject
    CONTACTS: Only users on the subject's contact list
    NOBODY: Presence is never broadcast or disclosed
    """

    EVERYONE = "everyone", "Everyone"
    CONTACTS = "contacts", "My contacts"
    NOBODY = "nobody", "Nobody"


class Profile(BaseModel):
    """
    Extended user profile data.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        username: Unique username (3-30 chars, alphanumeric + _ + -)
        first_name: User's first name
        last_name: User's last name
        bio: Short free-text description
        avatar_url: URL of an avatar stored out of band
        is_online: Persisted presence snapshot
        last_seen: When the user's last connection closed
        last_seen_visibility: Audience for presence broadcasts
        read_receipts_enabled: Whether senders learn that messages were read
        is_assistant: Marks the AI peer account

    Note:
        Profile is automatically created via signals when a User is created.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        primary_key=True,
        help_text="User this profile belongs to",
    )

    first_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's first name",
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="User's last name",
    )
    username = models.CharField(
        max_length=30,
        blank=True,
        db_index=True,
        validators=[validate_username_format, validate_username_not_reserved],
        help_text="Unique username (3-30 chars, alphanumeric + _ + -)",
    )
    bio = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Short description shown on the profile",
    )
    avatar_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Avatar location (uploads are stored out of band)",
    )

    is_online = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the user currently has a live connection",
    )
    last_seen = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user's last live connection closed",
    )

    last_seen_visibility = models.CharField(
        max_length=10,
        choices=LastSeenVisibility.choices,
        default=LastSeenVisibility.EVERYONE,
        help_text="Who may see presence and last-seen",
    )
    read_receipts_enabled = models.BooleanField(
        default=True,
        help_text="Whether senders are told when this user reads their messages",
    )

    is_assistant = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Marks the AI assistant account",
    )

    class Meta:
        db_table = "authentication_profile"
        verbose_name = "profile"
        verbose_name_plural = "profiles"
        constraints = [
            # Case-insensitive unique constraint for username
            models.UniqueConstraint(
                Lower("username"),
                name="unique_username_case_insensitive",
                condition=models.Q(username__gt=""),
            ),
        ]

    def __str__(self):
        """Return username or user email."""
        return self.username or str(self.user)

    @property
    def full_name(self):
        """Return full name or empty string."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self):
        """Name shown to other users: full name, then username, then email."""
        return self.full_name or self.username or self.user.email

    def save(self, *args, **kwargs):
        """Normalize username before saving."""
        if self.username:
            self.username = self.username.lower()
        super().save(*args, **kwargs)
