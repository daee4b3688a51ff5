"""
Core application - shared infrastructure for the chat backend.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Flag-based deletion (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for the service layer
    - ServiceResult: Result wrapper for expected success/failure

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found (or not visible to the caller)
    - PermissionDeniedError: Authorization failures
    - ExternalServiceError: Failures of collaborators we do not own

Views (import from core.views):
    - health_check: Database and cache health probe

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin
    from core.services import BaseService, ServiceResult

    class Note(SoftDeleteMixin, BaseModel):
        body = models.TextField()
"""
