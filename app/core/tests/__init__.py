"""
Tests for core app.

This package contains test modules for:
- test_exceptions.py: Application exception hierarchy
- test_services.py: ServiceResult and BaseService
- test_soft_delete_mixin.py: SoftDeleteMixin (exercised through chat.Message)
- test_views.py: Health check endpoint
"""
