"""API routes for share snapshots.

Creating a snapshot goes through the API key like every other route;
reading one is public and needs only the snapshot id and its token.
All endpoints use /api/v1/share prefix.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.dependencies import get_conversation_service, get_owner, get_request_identity
from src.api.schemas import ShareCreateRequest, ShareCreateResponse, ShareSnapshotResponse
from src.config import AppConfig, get_config
from src.db.connection import get_db
from src.errors.domain import ValidationError
from src.services.conversation_service import ConversationService
from src.services.identity import Owner, RequestIdentity
from src.services.share_service import ShareService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/share", tags=["share"])


def _get_service(
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
) -> ShareService:
    """Dependency injector for ShareService."""
    return ShareService(db, max_expires_days=config.share.max_expires_days)


@router.post("", response_model=ShareCreateResponse)
def create_share(
    payload: ShareCreateRequest,
    owner: Owner | None = Depends(get_owner),
    identity: RequestIdentity = Depends(get_request_identity),
    config: AppConfig = Depends(get_config),
    service: ShareService = Depends(_get_service),
    conversations: ConversationService = Depends(get_conversation_service),
) -> ShareCreateResponse:
    """Create an immutable snapshot from messages or a stored conversation.

    Raises:
        ValidationError: Neither messages nor conversationId, bad expiry,
            temporary conversation id, or no usable messages (400).
        ForbiddenError / NotFoundError: conversationId not owned (403/404).
    """
    expires_days = (
        payload.expires_days
        if payload.expires_days is not None
        else config.share.default_expires_days
    )
    if payload.conversation_id:
        result = service.create_from_conversation(
            conversations,
            payload.conversation_id,
            owner,
            title=payload.title,
            expires_days=expires_days,
            is_public=payload.is_public,
        )
    elif payload.messages is not None:
        result = service.create(
            messages=payload.messages,
            title=payload.title,
            expires_days=expires_days,
            is_public=payload.is_public,
            created_by=identity.user_email,
        )
    else:
        raise ValidationError("Provide messages or conversationId.")
    return ShareCreateResponse(**result)


@router.get("/{share_id}", response_model=ShareSnapshotResponse)
def read_share(
    share_id: str,
    t: str | None = Query(None, description="Share token"),
    identity: RequestIdentity = Depends(get_request_identity),
    service: ShareService = Depends(_get_service),
) -> ShareSnapshotResponse:
    """Read a snapshot and count the view.

    Raises:
        NotFoundError: Unknown id or wrong token (404).
        GoneError: Snapshot expired (410).
    """
    return ShareSnapshotResponse(**service.read(share_id, t, viewer_email=identity.user_email))
