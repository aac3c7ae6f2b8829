"""API routes for guest sessions.

Provides session issuance, verification and migration to a signed-in
user. All endpoints use /api/v1/guest prefix.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from src.api.dependencies import get_guest_service, get_request_identity
from src.api.schemas import (
    GuestCreateResponse,
    GuestMigrateRequest,
    GuestMigrateResponse,
    GuestVerifyRequest,
    GuestVerifyResponse,
)
from src.db.connection import get_db
from src.errors.domain import ForbiddenError, InvalidSessionError, UnauthorizedError
from src.services.guest_session_service import GuestSessionService
from src.services.identity import RequestIdentity, normalize_email
from src.services.migration_service import MigrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/guest", tags=["guest"])


@router.post("/create", response_model=GuestCreateResponse)
def create_guest_session(
    request: Request,
    guests: GuestSessionService = Depends(get_guest_service),
) -> GuestCreateResponse:
    """Issue a new guest session.

    Returns:
        Bearer token, session id and expiry.
    """
    issued = guests.create(user_agent=request.headers.get("User-Agent"))
    return GuestCreateResponse(
        token=issued.token, id=issued.id, expires_at=issued.expires_at
    )


@router.post("/verify", response_model=GuestVerifyResponse)
def verify_guest_session(
    payload: GuestVerifyRequest,
    guests: GuestSessionService = Depends(get_guest_service),
) -> GuestVerifyResponse:
    """Verify a guest token and refresh its last activity.

    Raises:
        InvalidSessionError: Unknown or expired token (404).
    """
    verified = guests.verify(payload.token)
    if verified is None:
        raise InvalidSessionError()
    return GuestVerifyResponse(
        valid=True,
        id=verified.id,
        expires_at=verified.expires_at,
        chat_title=verified.chat_title,
    )


@router.post("/migrate", response_model=GuestMigrateResponse)
def migrate_guest_session(
    payload: GuestMigrateRequest,
    identity: RequestIdentity = Depends(get_request_identity),
    guests: GuestSessionService = Depends(get_guest_service),
    db: Session = Depends(get_db),
) -> GuestMigrateResponse:
    """Move the guest session's conversations to the signed-in user.

    Calling again with an already-migrated token yields InvalidSession,
    which clients treat as nothing left to do.

    Raises:
        UnauthorizedError: No signed-in user.
        ForbiddenError: userEmail differs from the signed-in user.
        InvalidSessionError: Token unknown, expired or already migrated.
        MigrationFailedError: Bulk update failed; retry is possible.
    """
    if not identity.user_email:
        raise UnauthorizedError("migrate guest conversations")
    requested = normalize_email(payload.user_email)
    if requested and requested != identity.user_email:
        raise ForbiddenError("migrate conversations to another account")

    result = MigrationService(db, guests).migrate(payload.guest_token, identity.user_email)
    return GuestMigrateResponse(migrated=result.migrated)
