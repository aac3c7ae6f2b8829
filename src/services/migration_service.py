"""One-shot transfer of a guest session's conversations to a signed-in user.

The bulk re-owning and the session deletion are separate commits. If the
bulk update fails the session is kept, so the client can retry; a
session that no longer resolves means there is nothing left to move.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.connection import store_guard
from src.db.models import Conversation, utc_now_iso
from src.errors.domain import InvalidSessionError, MigrationFailedError
from src.services.guest_session_service import GuestSessionService
from src.services.identity import normalize_email
from src.utils.redaction import token_preview

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of a migration."""

    migrated: int
    guest_session_id: str


class MigrationService:
    """Re-own guest conversations and retire the guest session.

    Args:
        db: SQLAlchemy session (sync).
        guests: Guest session store bound to the same session.
    """

    def __init__(self, db: Session, guests: GuestSessionService) -> None:
        self._db = db
        self._guests = guests

    def migrate(self, guest_token: str, target_user: str) -> MigrationResult:
        """Move every conversation owned by the guest session to target_user.

        Args:
            guest_token: Bearer token of the guest session.
            target_user: Authenticated user identity (email).

        Returns:
            MigrationResult with the number of conversations moved.

        Raises:
            InvalidSessionError: Token unknown, expired or already migrated.
            MigrationFailedError: Bulk update failed; the session is kept.
            StoreUnavailableError: Session deletion failed after a
                successful move.
        """
        user_id = normalize_email(target_user)
        session = self._guests.get_active_by_token(guest_token)
        if session is None or not user_id:
            logger.info(
                "Migration requested with unresolvable guest token %s",
                token_preview(guest_token),
            )
            raise InvalidSessionError()
        session_id = session.id

        with store_guard(self._db, "migration.count"):
            owned = (
                self._db.query(Conversation.id)
                .filter(Conversation.guest_session_id == session_id)
                .count()
            )

        migrated = 0
        if owned:
            try:
                migrated = (
                    self._db.query(Conversation)
                    .filter(Conversation.guest_session_id == session_id)
                    .update(
                        {
                            Conversation.user_id: user_id,
                            Conversation.guest_session_id: None,
                            Conversation.updated_at: utc_now_iso(),
                        },
                        synchronize_session=False,
                    )
                )
                self._db.commit()
            except SQLAlchemyError as e:
                self._db.rollback()
                logger.error(
                    "Migration of guest session %s failed; session kept for retry: %s",
                    session_id, e,
                )
                raise MigrationFailedError(session_id) from e

        self._guests.delete(session_id)
        logger.info(
            "Migrated %d conversations from guest session %s", migrated, session_id
        )
        return MigrationResult(migrated=migrated, guest_session_id=session_id)
