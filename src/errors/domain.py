"""Typed domain exceptions for API error mapping.

Every exception carries its HTTP status and registry code so a single
exception handler in src/api/main.py can render any of them. Services
raise these; routes let them propagate.

Usage:
    # In service layer
    raise NotFoundError("Conversation", conversation_id)

    # Rendered by the API as
    {"error_code": "E-1002", "message": "...", "remediation": "..."}
"""

from src.errors.registry import render_error


class DomainError(Exception):
    """Base exception for all domain errors."""

    status_code = 500
    code = "E-4002"

    def __init__(self, message: str | None = None, **context: str) -> None:
        rendered, remediation = render_error(self.code, **context)
        self.message = message or rendered
        self.remediation = remediation
        super().__init__(self.message)


class ValidationError(DomainError):
    """Bad or missing input. Maps to HTTP 400."""

    status_code = 400
    code = "E-2001"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class TemporaryConversationError(ValidationError):
    """Client referenced a conversation id that was never persisted."""

    code = "E-2002"

    def __init__(self, identifier: str) -> None:
        DomainError.__init__(self, identifier=identifier)
        self.identifier = identifier


class UnauthorizedError(DomainError):
    """No identity where one is required. Maps to HTTP 401."""

    status_code = 401
    code = "E-5001"

    def __init__(self, action: str = "do this") -> None:
        super().__init__(action=action)


class ForbiddenError(DomainError):
    """Identity present but not the owner. Maps to HTTP 403."""

    status_code = 403
    code = "E-5002"

    def __init__(self, action: str = "modify this resource") -> None:
        super().__init__(action=action)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    status_code = 404
    code = "E-1002"

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(resource_type=resource_type, identifier=identifier)
        self.resource_type = resource_type
        self.identifier = identifier


class GoneError(DomainError):
    """Resource existed but has expired. Maps to HTTP 410."""

    status_code = 410
    code = "E-1003"

    def __init__(self, resource_type: str) -> None:
        super().__init__(resource_type=resource_type)
        self.resource_type = resource_type


class InvalidSessionError(DomainError):
    """Guest token is unknown or expired. Maps to HTTP 404."""

    status_code = 404
    code = "E-1001"

    def __init__(self) -> None:
        super().__init__()


class MigrationFailedError(DomainError):
    """Bulk re-owning failed; the guest session was kept. Maps to HTTP 500."""

    status_code = 500
    code = "E-1004"

    def __init__(self, guest_session_id: str) -> None:
        super().__init__()
        self.guest_session_id = guest_session_id


class StoreUnavailableError(DomainError):
    """Backing store error. Maps to HTTP 500 with a generic message."""

    status_code = 500
    code = "E-4001"

    def __init__(self, operation: str = "") -> None:
        super().__init__()
        self.operation = operation


class UpstreamUnavailableError(DomainError):
    """Third-party API failed or timed out. Maps to HTTP 502."""

    status_code = 502

    def __init__(self, service: str) -> None:
        self.code = "E-3001" if service == "llm" else "E-3002"
        super().__init__(service=service)
        self.service = service
