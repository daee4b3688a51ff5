"""
Chat-specific exceptions.

These extend the core hierarchy so that both the REST layer and the socket
dispatcher can turn them into error payloads with to_dict().

Exception Hierarchy:
    PermissionDeniedError
    ├── AuthorizationError - Non-owner edit/delete, forged receipt
    └── BlockedError - Either party has blocked the other
    ExternalServiceError
    └── TransientStoreError - Persistence timeout or unavailability
    RuntimeError
    └── UnauthenticatedConnectionError - Registering a connection with no user
"""

from core.exceptions import ExternalServiceError, PermissionDeniedError


class AuthorizationError(PermissionDeniedError):
    """Raised when a user acts on a message they do not own."""

    default_error_code: str = "NOT_AUTHOR"


class BlockedError(PermissionDeniedError):
    """
    Raised when either party of a conversation has blocked the other.

    The message never says which side blocked.
    """

    default_error_code: str = "BLOCKED"


class TransientStoreError(ExternalServiceError):
    """Raised when a persistence call times out or the database is unavailable."""

    default_error_code: str = "STORE_UNAVAILABLE"


class UnauthenticatedConnectionError(RuntimeError):
    """
    Raised when a connection is registered before it was authenticated.

    This signals a bug in the transport layer. It is not a
    BaseApplicationError and never reaches clients.
    """
