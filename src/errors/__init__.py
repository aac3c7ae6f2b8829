"""Error handling framework for chatbridge.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions that carry HTTP status and registry code

Error categories:
- E-1xxx: Session and resource lifecycle errors
- E-2xxx: Validation errors
- E-3xxx: Upstream service errors
- E-4xxx: System/store errors
- E-5xxx: Authentication/authorization errors
"""

from src.errors.domain import (
    DomainError,
    ForbiddenError,
    GoneError,
    InvalidSessionError,
    MigrationFailedError,
    NotFoundError,
    StoreUnavailableError,
    TemporaryConversationError,
    UnauthorizedError,
    UpstreamUnavailableError,
    ValidationError,
)
from src.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    # Domain exceptions
    "DomainError",
    "ValidationError",
    "TemporaryConversationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "GoneError",
    "InvalidSessionError",
    "MigrationFailedError",
    "StoreUnavailableError",
    "UpstreamUnavailableError",
]
