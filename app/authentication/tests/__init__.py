"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: User and Profile model tests
- test_managers.py: UserManager tests
- test_signals.py: Profile auto-creation
- test_services.py: AuthService tests
- test_views.py: Token and profile endpoint tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""
