"""chatbridge HTTP service.

Builds the FastAPI app: API-key middleware, optional CORS, the /api/v1
routers, and handlers that turn domain and store errors into the
{error_code, message, remediation} body.
"""

import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.api.middleware.auth import (
    API_KEY_HEADER,
    GUEST_TOKEN_HEADER,
    USER_EMAIL_HEADER,
    maybe_require_api_key,
    validate_api_key_strength,
)
from src.api.routes import chat, feedback, guest, history, share, utilities
from src.db.connection import check_db_connection, close_db, init_db
from src.errors.domain import DomainError, StoreUnavailableError
from src.errors.registry import render_error

# uvicorn only configures its own loggers; send ours to stdout too
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("src").setLevel(logging.INFO)

logger = logging.getLogger(__name__)

_started_at: float | None = None


def _uptime_seconds() -> int:
    if _started_at is None:
        return 0
    return int(time.time() - _started_at)


def _cors_origins() -> list[str]:
    """Origins from ALLOWED_ORIGINS (comma separated); empty disables CORS."""
    raw = os.environ.get("ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _app_version() -> str:
    try:
        return _pkg_version("chatbridge")
    except PackageNotFoundError:
        return "unknown"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate the API key and create tables on startup; dispose the pool on exit."""
    global _started_at

    _started_at = time.time()
    validate_api_key_strength()
    init_db()
    if not os.environ.get("ANTHROPIC_API_KEY"):
        logger.warning("ANTHROPIC_API_KEY is not set; /api/v1/chat will return 502.")

    yield

    close_db()


app = FastAPI(
    title="chatbridge API",
    description="Conversational assistant backend with guest sessions and sharing",
    version="0.1.0",
    lifespan=lifespan,
)

app.middleware("http")(maybe_require_api_key)

_origins = _cors_origins()
if _origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", API_KEY_HEADER, USER_EMAIL_HEADER, GUEST_TOKEN_HEADER],
    )


def _error_response(status_code: int, code: str, message: str, remediation: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": code,
            "message": message,
            "remediation": remediation,
        },
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render a DomainError with its HTTP status and registry code; 5xx are logged."""
    if exc.status_code >= 500:
        logger.warning(
            "%s %s failed with %s (%s)",
            request.method, request.url.path, exc.code, type(exc).__name__,
        )
    return _error_response(exc.status_code, exc.code, exc.message, exc.remediation)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Surface any uncaught store failure as StoreUnavailable."""
    logger.error("Unhandled store error on %s %s: %s", request.method, request.url.path, exc)
    error = StoreUnavailableError(request.url.path)
    return _error_response(error.status_code, error.code, error.message, error.remediation)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed request bodies as 400 validation errors."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    detail = "; ".join(problems) or "Invalid request."
    message, remediation = render_error("E-2001", detail=detail)
    return _error_response(400, "E-2001", message, remediation)


app.include_router(guest.router, prefix="/api/v1")
app.include_router(history.router, prefix="/api/v1")
app.include_router(share.router, prefix="/api/v1")
app.include_router(chat.router, prefix="/api/v1")
app.include_router(utilities.router, prefix="/api/v1")
app.include_router(feedback.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Liveness: the process is up and serving."""
    return {
        "status": "healthy",
        "version": _app_version(),
        "uptime_seconds": _uptime_seconds(),
    }


@app.get("/readyz")
def readiness_check():
    """Readiness: 503 while the store is unreachable, degraded without LLM credentials."""
    uptime = _uptime_seconds()
    if not check_db_connection():
        return JSONResponse(
            {
                "status": "not_ready",
                "uptime_seconds": uptime,
                "checks": {"database": {"status": "error"}},
            },
            status_code=503,
        )

    checks: dict[str, dict[str, Any]] = {"database": {"status": "ok"}}
    if os.environ.get("ANTHROPIC_API_KEY"):
        checks["llm_credentials"] = {"status": "configured"}
    else:
        checks["llm_credentials"] = {"status": "degraded", "missing": ["ANTHROPIC_API_KEY"]}

    degraded = any(check["status"] == "degraded" for check in checks.values())
    return {
        "status": "degraded" if degraded else "ready",
        "uptime_seconds": uptime,
        "checks": checks,
    }


@app.get("/api")
def api_root() -> dict:
    return {
        "name": "chatbridge API",
        "version": _app_version(),
        "docs": "/docs",
        "redoc": "/redoc",
    }
