"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: Use for expected failures crossing a boundary
      (socket handlers, REST views)
    - Exceptions: Raised by the domain layer (core.exceptions and the
      per-app exception modules) and converted at that boundary

Usage:
    from core.services import BaseService, ServiceResult

    class ContactService(BaseService):
        @classmethod
        def add(cls, owner, contact) -> ServiceResult[Contact]:
            if owner.pk == contact.pk:
                return ServiceResult.failure(
                    "You cannot add yourself as a contact",
                    error_code="SELF_CONTACT",
                )
            with cls.atomic():
                entry, _ = Contact.objects.get_or_create(owner=owner, contact=contact)
            cls.get_logger().info(f"User {owner.pk} added contact {contact.pk}")
            return ServiceResult.success(entry)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = ServiceResult.success(message)
        result = ServiceResult.failure("Message not found", "NOT_FOUND")

        if result:
            send(result.data)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T = None) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(
        cls, exc: BaseApplicationError, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Create a failed result from an application exception.

        Field details carried by the exception become ``errors``.
        """
        return cls(
            success=False,
            error=exc.message,
            error_code=error_code or exc.error_code,
            errors=exc.details or None,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API/socket response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Raise core.exceptions subclasses for domain failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Thin wrapper around Django's transaction.atomic() that makes
        transaction boundaries explicit in service code.
        """
        with transaction.atomic():
            yield
