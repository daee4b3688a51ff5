"""
Tests for chat app.

This package contains test modules for:
- test_models.py / test_services.py: Message store and relationships
- test_registry.py, test_presence.py, test_typing.py: Realtime state
- test_router.py, test_receipts.py, test_dispatch.py: Delivery pipeline
- test_views.py: REST API endpoint tests
- test_middleware.py, test_consumer.py: WebSocket transport

Usage:
    pytest chat/tests/
    pytest chat/tests/test_router.py
"""
