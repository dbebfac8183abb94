"""
Core Application - Infrastructure & Base Classes

Models (import from core.models / core.model_mixins):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)
    - UUIDPrimaryKeyMixin, MetadataMixin

Circuit breaker (import from core.circuit_breaker):
    - CircuitBreaker: Cache-backed breaker shared by all workers

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its HTTP-mapped subclasses
    - application_exception_handler: DRF EXCEPTION_HANDLER

Note:
    Models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

import importlib

# Re-exports are resolved lazily: core.exceptions imports DRF, which must not
# load while Django is still populating INSTALLED_APPS.
_LAZY_EXPORTS = {
    "BaseApplicationError": ".exceptions",
    "ConflictError": ".exceptions",
    "ExternalServiceError": ".exceptions",
    "NotFoundError": ".exceptions",
    "PermissionDeniedError": ".exceptions",
    "ValidationError": ".exceptions",
    "BaseService": ".services",
    "ServiceResult": ".services",
}


def __getattr__(name):
    if name in _LAZY_EXPORTS:
        module = importlib.import_module(_LAZY_EXPORTS[name], __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "ExternalServiceError",
]
