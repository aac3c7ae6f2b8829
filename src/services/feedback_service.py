"""Product feedback submission and admin review listing."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from src.db.connection import store_guard
from src.db.models import Feedback, FeedbackStatus
from src.errors.domain import ValidationError

logger = logging.getLogger(__name__)

MAX_FEEDBACK_LENGTH = 5000
DEFAULT_LIST_LIMIT = 100


class FeedbackService:
    """Store and list feedback.

    Args:
        db: SQLAlchemy session (sync).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def submit(self, user_email: str, text: str) -> Feedback:
        """Record feedback with status 'pending'."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Feedback must not be empty.")
        if len(text) > MAX_FEEDBACK_LENGTH:
            raise ValidationError(f"Feedback exceeds {MAX_FEEDBACK_LENGTH} characters.")
        row = Feedback(
            user_email=user_email,
            feedback=text,
            status=FeedbackStatus.pending.value,
        )
        with store_guard(self._db, "feedback.submit"):
            self._db.add(row)
            self._db.commit()
        logger.info("Stored feedback %s", row.id)
        return row

    def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> list[dict[str, Any]]:
        """Newest feedback first."""
        with store_guard(self._db, "feedback.list"):
            rows = (
                self._db.query(Feedback)
                .order_by(Feedback.created_at.desc())
                .limit(limit)
                .all()
            )
        return [
            {
                "id": row.id,
                "user_email": row.user_email,
                "feedback": row.feedback,
                "status": row.status,
                "created_at": row.created_at,
            }
            for row in rows
        ]
