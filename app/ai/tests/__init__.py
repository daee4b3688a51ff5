"""
Tests for AI app.

This package contains test modules for:
- test_providers.py: Provider registry and message normalization
- test_services.py: AssistantResponder tests

Usage:
    pytest ai/tests/
"""
