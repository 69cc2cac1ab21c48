"""
Core Application - shared infrastructure.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: root of the application exception hierarchy

Note:
    Models and mixins are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

from .exceptions import BaseApplicationError
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
]
