"""
Serializers for authentication models.

This module provides DRF serializers for:
- Registration and logout requests
- Profile model (read operations for the owner)
- Profile updates (display fields and privacy preferences)
- Public user cards shown to other users (contacts, blocks, messages)

Related files:
    - models.py: User and Profile models
    - views.py: Views that use these serializers

Security:
    - Presence fields are never part of the public card; other users read
      presence through the privacy-aware presence endpoint or the user
      directory, both of which apply the subject's presence policy.
"""

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from authentication.models import Profile, RESERVED_USERNAMES, User
from authentication.models import validate_username_format
from authentication.services import AuthService


def clean_username(value: str, exclude_user=None) -> str:
    """
    Normalize a requested username and check format, reserved names and
    case-insensitive uniqueness. Blank means "no username".
    """
    username = value.lower().strip()
    if not username:
        return username

    try:
        validate_username_format(username)
    except DjangoValidationError as exc:
        raise serializers.ValidationError(list(exc.messages)) from exc

    if username in RESERVED_USERNAMES:
        raise serializers.ValidationError(
            f"The username '{username}' is reserved and cannot be used."
        )

    existing = Profile.objects.filter(username__iexact=username)
    if exclude_user:
        existing = existing.exclude(user=exclude_user)
    if existing.exists():
        raise serializers.ValidationError("This username is already taken.")

    return username


class RegisterSerializer(serializers.Serializer):
    """
    Serializer for email/password registration.

    Profile display fields are optional here and can be filled in later
    through the profile endpoint.
    """

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="Checked against the configured password validators.",
    )
    username = serializers.CharField(
        min_length=3,
        max_length=30,
        required=False,
        allow_blank=True,
        help_text="Unique username (3-30 chars, alphanumeric + _ + -)",
    )
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_email(self, value):
        """Validate that email is not already in use."""
        email = value.lower().strip()
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return email

    def validate_username(self, value):
        return clean_username(value)

    def validate(self, attrs):
        try:
            validate_password(attrs["password"], user=User(email=attrs["email"]))
        except DjangoValidationError as exc:
            raise serializers.ValidationError({"password": list(exc.messages)}) from exc
        return attrs

    def create(self, validated_data):
        return AuthService.create_user(
            validated_data["email"],
            validated_data["password"],
            username=validated_data.get("username", ""),
            first_name=validated_data.get("first_name", ""),
            last_name=validated_data.get("last_name", ""),
        )


class LogoutSerializer(serializers.Serializer):
    """Refresh token to revoke."""

    refresh = serializers.CharField(required=True)


class ProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for Profile model (read operations for the owner).

    The owner sees their own presence snapshot and privacy settings.
    """

    user_id = serializers.IntegerField(source="user.id", read_only=True)
    user_email = serializers.EmailField(source="user.email", read_only=True)
    full_name = serializers.CharField(read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Profile
        fields = [
            "user_id",
            "user_email",
            "username",
            "first_name",
            "last_name",
            "full_name",
            "display_name",
            "bio",
            "avatar_url",
            "is_online",
            "last_seen",
            "last_seen_visibility",
            "read_receipts_enabled",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Serializer for updating profile information.

    Presence fields are not writable; they belong to the presence tracker.
    """

    username = serializers.CharField(
        min_length=3,
        max_length=30,
        required=False,
        allow_blank=True,
        help_text="Unique username (3-30 chars, alphanumeric + _ + -)",
    )

    class Meta:
        model = Profile
        fields = [
            "username",
            "first_name",
            "last_name",
            "bio",
            "avatar_url",
            "last_seen_visibility",
            "read_receipts_enabled",
        ]

    def validate_username(self, value):
        """Validate username format, uniqueness, and reserved names."""
        return clean_username(value, exclude_user=self.context.get("user"))


class PublicUserSerializer(serializers.ModelSerializer):
    """
    Compact user card shown to other users.

    Used for contact lists, block lists and message authors.
    """

    username = serializers.CharField(source="profile.username", read_only=True)
    display_name = serializers.CharField(
        source="profile.display_name", read_only=True
    )
    avatar_url = serializers.CharField(source="profile.avatar_url", read_only=True)
    is_assistant = serializers.BooleanField(
        source="profile.is_assistant", read_only=True
    )

    class Meta:
        model = User
        fields = ["id", "username", "display_name", "avatar_url", "is_assistant"]
        read_only_fields = fields


class DirectoryUserSerializer(PublicUserSerializer):
    """
    User card with presence, for the user directory.

    Expects context["presence"]: user id -> PresenceView. Presence the
    viewer may not see is reported as null.
    """

    presence_visible = serializers.SerializerMethodField()
    is_online = serializers.SerializerMethodField()
    last_seen = serializers.SerializerMethodField()

    class Meta(PublicUserSerializer.Meta):
        fields = PublicUserSerializer.Meta.fields + [
            "presence_visible",
            "is_online",
            "last_seen",
        ]
        read_only_fields = fields

    def _presence(self, obj):
        return self.context["presence"].get(obj.pk)

    def get_presence_visible(self, obj) -> bool:
        presence = self._presence(obj)
        return bool(presence and presence.visible)

    def get_is_online(self, obj) -> bool | None:
        presence = self._presence(obj)
        if not presence or not presence.visible:
            return None
        return presence.online

    def get_last_seen(self, obj) -> str | None:
        presence = self._presence(obj)
        if not presence or not presence.visible or presence.last_seen is None:
            return None
        return serializers.DateTimeField().to_representation(presence.last_seen)
