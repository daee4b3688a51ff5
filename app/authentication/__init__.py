"""
Authentication application.

This app provides the identity side of the chat backend: the email-based
User, the Profile carrying presence and privacy preferences, and JWT
token issuance for REST and WebSocket clients.

Key components:
    - User model: Custom email-based user authentication
    - Profile model: Display data, presence snapshot, privacy preferences
    - AuthService: Profile lookup and the assistant service account

Usage:
    from authentication.models import User, Profile
    from authentication.services import AuthService
"""

default_app_config = "authentication.apps.AuthenticationConfig"
