"""Helpers that keep bearer secrets out of logs and error payloads.

Guest tokens, share tokens and the upstream API keys (OpenWeather appid,
NewsAPI apiKey) grant access on their own. Services log a short
token preview instead of the token, pass outbound query parameters
through redact_for_logging, and run upstream error strings through
sanitize_error_message before logging them.
"""

import re
from typing import Any

MASK = "***REDACTED***"

SENSITIVE_KEY_FRAGMENTS = frozenset({
    "secret", "token", "authorization", "api_key", "api-key", "apikey", "password",
    "credential", "appid",
})

# Masked wholesale, whatever they contain
OPAQUE_KEYS = frozenset({"credentials", "headers"})

_PREVIEW_CHARS = 8


def token_preview(token: str | None) -> str:
    """Return a short, log-safe preview of a bearer token.

    Tokens of eight characters or fewer are masked entirely.
    """
    if not token:
        return "<none>"
    if len(token) <= _PREVIEW_CHARS:
        return "***"
    return f"{token[:_PREVIEW_CHARS]}..."


def _should_mask(key: str, fragments: frozenset[str]) -> bool:
    lowered = key.lower()
    if lowered in OPAQUE_KEYS:
        return True
    return any(fragment in lowered for fragment in fragments)


def _redact_value(value: Any, fragments: frozenset[str]) -> Any:
    if isinstance(value, dict):
        return redact_for_logging(value, fragments)
    if isinstance(value, list):
        return [_redact_value(item, fragments) for item in value]
    return value


def redact_for_logging(
    obj: dict,
    sensitive_patterns: frozenset[str] = SENSITIVE_KEY_FRAGMENTS,
) -> dict:
    """Return a copy of obj with secret-looking values masked.

    Keys are matched case-insensitively against sensitive_patterns as
    substrings. Nested dicts and lists are walked; the input is left
    untouched.
    """
    return {
        key: MASK if _should_mask(key, sensitive_patterns) else _redact_value(value, sensitive_patterns)
        for key, value in obj.items()
    }


_KEYWORDS = r"secret|token|password|api_key|apikey|appid|authorization|credential|key"

_FREE_TEXT_SECRETS = re.compile(
    "|".join((
        r"Authorization\s*:\s*Bearer\s+\S+",
        rf'"(?:{_KEYWORDS})"\s*:\s*"[^"]*"',
        rf'(?:{_KEYWORDS})\s*[=:]\s*"[^"]*"',
        # query strings: stop at the next parameter
        rf"(?:{_KEYWORDS})\s*[=:]\s*[^\s&]+",
    )),
    re.IGNORECASE,
)


def sanitize_error_message(msg: str | None, max_length: int = 500) -> str | None:
    """Mask secrets embedded in free text and cap its length.

    Upstream httpx errors carry the full request URL, API key included,
    so every upstream failure goes through here before it is logged.

    Args:
        msg: Message to clean. None is returned unchanged.
        max_length: Longest string returned, ellipsis included.

    Returns:
        The cleaned message, or None.
    """
    if msg is None:
        return None
    cleaned = _FREE_TEXT_SECRETS.sub(MASK, msg)
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[: max_length - 3] + "..."
