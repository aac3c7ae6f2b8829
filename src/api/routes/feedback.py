"""API routes for product feedback.

Submitting requires a signed-in user; listing requires the admin role
stored in user_accounts. All endpoints use /api/v1/feedback prefix.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.dependencies import get_request_identity
from src.api.schemas import FeedbackCreate, FeedbackListResponse, FeedbackResponse
from src.db.connection import get_db
from src.errors.domain import ForbiddenError, UnauthorizedError
from src.services.feedback_service import FeedbackService
from src.services.identity import RequestIdentity, is_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["feedback"])


def _get_service(db: Session = Depends(get_db)) -> FeedbackService:
    """Dependency injector for FeedbackService."""
    return FeedbackService(db)


@router.post("", response_model=FeedbackResponse, status_code=201)
def submit_feedback(
    payload: FeedbackCreate,
    identity: RequestIdentity = Depends(get_request_identity),
    service: FeedbackService = Depends(_get_service),
) -> FeedbackResponse:
    """Store feedback from the signed-in user with status 'pending'."""
    if not identity.user_email:
        raise UnauthorizedError("send feedback")
    return FeedbackResponse.model_validate(
        service.submit(identity.user_email, payload.feedback)
    )


@router.get("", response_model=FeedbackListResponse)
def list_feedback(
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db),
    service: FeedbackService = Depends(_get_service),
) -> FeedbackListResponse:
    """Newest feedback first (admins only)."""
    if not identity.user_email:
        raise UnauthorizedError("review feedback")
    if not is_admin(db, identity.user_email):
        logger.warning("Non-admin feedback listing attempt")
        raise ForbiddenError("review feedback")
    entries = service.list_recent()
    return FeedbackListResponse(
        feedback=[FeedbackResponse(**e) for e in entries],
        total=len(entries),
    )
