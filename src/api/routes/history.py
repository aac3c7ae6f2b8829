"""API routes for conversation history.

Listing, detail, export and rename / pin / soft delete of the caller's
conversations. The owner comes from the signed-in user or the guest
token; every mutation is ownership-checked in ConversationService.
All endpoints use /api/v1/history prefix.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.api.dependencies import get_conversation_service, get_owner
from src.api.schemas import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    ConversationSummary,
    ConversationUpdate,
)
from src.errors.domain import UnauthorizedError
from src.services.conversation_service import ConversationService
from src.services.identity import Owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=ConversationListResponse)
def list_history(
    owner: Owner | None = Depends(get_owner),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationListResponse:
    """List the caller's conversations, pinned first, newest first.

    Anonymous callers have no history and get an empty list.
    """
    if owner is None:
        return ConversationListResponse(conversations=[], total=0)
    summaries = service.list_for_owner(owner)
    return ConversationListResponse(
        conversations=[ConversationSummary(**s) for s in summaries],
        total=len(summaries),
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation(
    conversation_id: str,
    owner: Owner | None = Depends(get_owner),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationDetailResponse:
    """Full conversation with messages (owner only)."""
    conversation = service.get_for_owner(conversation_id, owner)
    return ConversationDetailResponse(**service.detail(conversation))


@router.get("/{conversation_id}/export")
def export_conversation(
    conversation_id: str,
    owner: Owner | None = Depends(get_owner),
    service: ConversationService = Depends(get_conversation_service),
) -> JSONResponse:
    """Download a conversation as a JSON attachment."""
    payload = service.export(conversation_id, owner)
    return JSONResponse(
        content=payload,
        headers={
            "Content-Disposition": f'attachment; filename="conversation-{conversation_id}.json"'
        },
    )


@router.patch("/{conversation_id}", response_model=ConversationResponse)
def update_conversation(
    conversation_id: str,
    payload: ConversationUpdate,
    owner: Owner | None = Depends(get_owner),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    """Rename, pin/unpin or soft-delete a conversation.

    Raises:
        ValidationError: No fields or blank title (400).
        UnauthorizedError: Anonymous caller (401).
        ForbiddenError: Caller does not own it (403).
        NotFoundError: Missing or already deleted (404).
    """
    if owner is None:
        raise UnauthorizedError("modify this conversation")
    conversation = service.update(
        conversation_id,
        owner,
        title=payload.title,
        pinned=payload.pinned,
        is_deleted=payload.is_deleted,
    )
    return ConversationResponse.model_validate(conversation)


@router.delete("/{conversation_id}", response_model=ConversationResponse)
def delete_conversation(
    conversation_id: str,
    owner: Owner | None = Depends(get_owner),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    """Soft-delete a conversation; the row is kept."""
    if owner is None:
        raise UnauthorizedError("delete this conversation")
    conversation = service.soft_delete(conversation_id, owner)
    return ConversationResponse.model_validate(conversation)
