"""Optional API-key auth middleware and request identity headers.

The API key is a shared secret between the web front end and this
service; it does not identify a user. The front end forwards the
signed-in user's email in X-User-Email and the guest bearer token in
X-Guest-Token. Ownership checks happen in the services against those.
"""

from __future__ import annotations

import hmac
import logging
import os
import re
import threading
import time
from collections import deque

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
USER_EMAIL_HEADER = "X-User-Email"
GUEST_TOKEN_HEADER = "X-Guest-Token"

_OPEN_PREFIXES = ("/health", "/readyz", "/docs", "/redoc", "/openapi.json")

# Snapshot viewing is public: the (id, token) pair is the capability.
_SHARE_VIEW_PATH = re.compile(r"^/api/v1/share/[^/]+/?$")

_AUTH_FAIL_MAX = 10
_AUTH_FAIL_WINDOW_SECONDS = 300
_MIN_API_KEY_LENGTH = 32


class _FailureWindow:
    """Per-client sliding window of failed API-key checks."""

    def __init__(self, limit: int, window_seconds: float) -> None:
        self._limit = limit
        self._window = window_seconds
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def _trim(self, client: str, now: float) -> deque[float]:
        hits = self._hits.setdefault(client, deque())
        while hits and now - hits[0] >= self._window:
            hits.popleft()
        return hits

    def blocked(self, client: str) -> bool:
        with self._lock:
            hits = self._trim(client, time.monotonic())
            if not hits:
                del self._hits[client]
                return False
            return len(hits) >= self._limit

    def record(self, client: str) -> None:
        with self._lock:
            now = time.monotonic()
            self._trim(client, now).append(now)

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()


_failures = _FailureWindow(_AUTH_FAIL_MAX, _AUTH_FAIL_WINDOW_SECONDS)


def reset_rate_limiter() -> None:
    """Forget every recorded auth failure."""
    _failures.clear()


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true")


def get_client_ip(request: Request) -> str:
    """Best-effort client address for rate limiting and geo lookups.

    X-Forwarded-For is honoured only with CHATBRIDGE_TRUST_PROXY set;
    otherwise any client could pick its own address.
    """
    if _env_flag("CHATBRIDGE_TRUST_PROXY"):
        chain = request.headers.get("X-Forwarded-For", "")
        first_hop = chain.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client is None:
        return "unknown"
    return request.client.host


def get_expected_api_key() -> str:
    """Configured shared secret, or "" when auth is off."""
    return os.environ.get("CHATBRIDGE_API_KEY", "").strip()


def validate_api_key_strength() -> None:
    """Refuse to start with a configured key that is too weak.

    Raises:
        ValueError: CHATBRIDGE_API_KEY is set but under 32 characters.
    """
    key = get_expected_api_key()
    if not key or len(key) >= _MIN_API_KEY_LENGTH:
        return
    raise ValueError(
        f"CHATBRIDGE_API_KEY is too short: got {len(key)} characters, "
        f"need at least {_MIN_API_KEY_LENGTH}."
    )


def should_authenticate(path: str, method: str = "GET") -> bool:
    """Return True when this request should be protected by API-key auth."""
    if path.startswith(_OPEN_PREFIXES):
        return False
    if method.upper() == "GET" and _SHARE_VIEW_PATH.match(path):
        return False
    return path.startswith("/api/")


def _key_matches(provided: str, expected: str) -> bool:
    return bool(provided) and hmac.compare_digest(provided.encode(), expected.encode())


async def maybe_require_api_key(request: Request, call_next) -> Response:
    """HTTP middleware enforcing CHATBRIDGE_API_KEY when it is configured.

    CORS preflights and public paths pass straight through. A client
    with _AUTH_FAIL_MAX failures inside the window gets 429 until the
    oldest failure ages out.
    """
    expected = get_expected_api_key()
    if (
        not expected
        or request.method.upper() == "OPTIONS"
        or not should_authenticate(request.url.path, request.method)
    ):
        return await call_next(request)

    client_ip = get_client_ip(request)
    if _failures.blocked(client_ip):
        logger.warning("Blocking %s after repeated API key failures", client_ip)
        return JSONResponse(
            {"detail": "Too many failed API key attempts; retry later."},
            status_code=429,
        )

    if not _key_matches(request.headers.get(API_KEY_HEADER, ""), expected):
        _failures.record(client_ip)
        return JSONResponse({"detail": "Missing or invalid X-API-Key header"}, status_code=401)

    return await call_next(request)
