"""Registry of E-XXXX error codes returned in API error bodies.

Codes are grouped by their first digit:
- E-1xxx: Session and resource lifecycle errors
- E-2xxx: Validation errors
- E-3xxx: Upstream service errors (LLM, weather, news, geo-IP)
- E-4xxx: System/store errors
- E-5xxx: Authentication and authorization errors
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    SESSION = "session"  # E-1xxx
    VALIDATION = "validation"  # E-2xxx
    UPSTREAM = "upstream"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    AUTH = "auth"  # E-5xxx


@dataclass(frozen=True)
class ErrorCode:
    """One registry entry.

    message_template may hold {placeholders} filled by render_error.
    is_retryable marks failures a client can retry unchanged.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Session and resource errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.SESSION,
        title="Invalid Guest Session",
        message_template="Guest session is invalid or has expired.",
        remediation="Start a new guest session. There is nothing left to migrate.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.SESSION,
        title="Resource Not Found",
        message_template="{resource_type} '{identifier}' was not found.",
        remediation="Check the identifier and retry.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.SESSION,
        title="Resource Expired",
        message_template="{resource_type} has expired.",
        remediation="Ask the owner for a new link.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.SESSION,
        title="Migration Failed",
        message_template="Guest conversations could not be moved to your account.",
        remediation="Retry the sign-in. Your guest conversations are still available.",
        is_retryable=True,
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid Request",
        message_template="{detail}",
        remediation="Correct the request and retry.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Unsaved Conversation",
        message_template="Conversation '{identifier}' has not been saved yet.",
        remediation="Send at least one message before sharing the conversation.",
    ),
    # Upstream errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.UPSTREAM,
        title="Assistant Unavailable",
        message_template="The assistant is temporarily unavailable.",
        remediation="Please try again in a moment.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.UPSTREAM,
        title="Utility Service Unavailable",
        message_template="The {service} service is temporarily unavailable.",
        remediation="Please try again in a moment.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Storage Unavailable",
        message_template="Your data could not be reached right now.",
        remediation="Please try again in a moment.",
        is_retryable=True,
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Internal Error",
        message_template="An unexpected error occurred.",
        remediation="Please try again. If the problem persists, contact support.",
    ),
    # Authentication/authorization errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Authentication Required",
        message_template="You must be signed in to {action}.",
        remediation="Sign in and retry.",
    ),
    "E-5002": ErrorCode(
        code="E-5002",
        category=ErrorCategory.AUTH,
        title="Not Permitted",
        message_template="You do not have permission to {action}.",
        remediation="Use the account that owns this resource.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    return ERROR_REGISTRY.get(code)


def render_error(code: str, **context: str) -> tuple[str, str]:
    """Render a registry entry into (message, remediation).

    Missing placeholders leave the template text as-is.
    """
    error = get_error(code)
    if error is None:
        raise KeyError(f"Unknown error code: {code}")
    try:
        message = error.message_template.format(**context)
    except (KeyError, IndexError):
        message = error.message_template
    return message, error.remediation
