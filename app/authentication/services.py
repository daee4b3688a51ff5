"""
Authentication services.

This module provides the AuthService class for registration, profile
lookup and the service account that represents the AI assistant in
conversations.

Related files:
    - models.py: User, Profile
    - signals.py: Profile auto-creation
    - chat/realtime/router.py: Resolves the assistant peer by profile flag
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

if TYPE_CHECKING:
    from authentication.models import User, Profile

logger = logging.getLogger(__name__)


class AuthService:
    """
    Centralized authentication business logic.

    Usage:
        from authentication.services import AuthService

        user = AuthService.create_user(email, password, username="alice")
        profile = AuthService.get_or_create_profile(user)
        assistant = AuthService.get_or_create_assistant()
    """

    @staticmethod
    def get_or_create_profile(user: User) -> Profile:
        """
        Return the user's profile, creating it when the signal did not run.

        Args:
            user: The user whose profile to fetch

        Returns:
            The Profile instance
        """
        from authentication.models import Profile

        profile, created = Profile.objects.get_or_create(user=user)
        if created:
            logger.info(f"Profile created on demand for user {user.pk}")
        return profile

    @staticmethod
    def get_or_create_assistant() -> User:
        """
        Return the assistant service account, creating it on first use.

        The account's email comes from CHAT_ASSISTANT["EMAIL"]. It has no
        usable password and its profile carries is_assistant=True, which is
        how the delivery router recognizes it as an AI peer.
        """
        from authentication.models import Profile, User

        config = getattr(settings, "CHAT_ASSISTANT", {})
        email = config.get("EMAIL", "assistant@novachat.local")

        with transaction.atomic():
            user = User.objects.filter(email__iexact=email).first()
            if user is None:
                user = User.objects.create_user(email=email)
                logger.info(f"Assistant account created: {email}")

            Profile.objects.update_or_create(
                user=user,
                defaults={
                    "is_assistant": True,
                    "first_name": config.get("DISPLAY_NAME", "Nova"),
                },
            )
        return user

    @staticmethod
    def create_user(email: str, password: str, **profile_fields) -> User:
        """
        Create a user with a password and fill in the auto-created profile.

        Args:
            email: User's email address
            password: Raw password (already validated)
            **profile_fields: username, first_name, last_name

        Returns:
            Created User instance

        Raises:
            ValueError: If a user with this email already exists
        """
        from authentication.models import Profile, User

        email = email.lower().strip()
        if User.objects.filter(email__iexact=email).exists():
            raise ValueError("A user with this email already exists")

        with transaction.atomic():
            user = User.objects.create_user(email=email, password=password)
            fields = {key: value for key, value in profile_fields.items() if value}
            if fields:
                Profile.objects.filter(user=user).update(**fields)

        logger.info(f"User registered: {user.pk}")
        return user
