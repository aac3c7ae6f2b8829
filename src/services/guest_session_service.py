"""Guest session store: issue, verify and retire anonymous bearer tokens.

A guest session is the owner of conversations created before sign-in.
Expiry is checked when a token is read; there is no background reaper.
Expired rows linger until `purge_expired` is run (CLI), and they are
invisible to every read in the meantime.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from src.db.connection import store_guard
from src.db.models import GuestSession, parse_iso, utc_now_iso
from src.utils.redaction import token_preview

logger = logging.getLogger(__name__)

# 32 random bytes = 256 bits of entropy
GUEST_TOKEN_BYTES = 32

DEFAULT_TTL_DAYS = 30


@dataclass(frozen=True)
class IssuedGuestSession:
    """Result of creating a guest session."""

    token: str
    id: str
    expires_at: str


@dataclass(frozen=True)
class VerifiedGuestSession:
    """Result of a successful verification."""

    id: str
    expires_at: str
    chat_title: str | None = None


class GuestSessionService:
    """Create, verify and retire guest sessions.

    Args:
        db: SQLAlchemy session (sync).
        ttl_days: Lifetime of newly created sessions.
    """

    def __init__(self, db: Session, ttl_days: int = DEFAULT_TTL_DAYS) -> None:
        self._db = db
        self._ttl_days = ttl_days

    def create(self, user_agent: str | None = None) -> IssuedGuestSession:
        """Issue a new guest session with a fresh random token.

        Args:
            user_agent: Optional client user agent, stored for support.

        Returns:
            IssuedGuestSession with the bearer token and expiry.

        Raises:
            StoreUnavailableError: If the session cannot be persisted.
        """
        now = datetime.now(UTC)
        expires_at = (now + timedelta(days=self._ttl_days)).isoformat(
            timespec="microseconds"
        )
        row = GuestSession(
            token=secrets.token_hex(GUEST_TOKEN_BYTES),
            expires_at=expires_at,
            last_activity=now.isoformat(timespec="microseconds"),
            user_agent=user_agent[:512] if user_agent else None,
        )
        with store_guard(self._db, "guest.create"):
            self._db.add(row)
            self._db.commit()
        logger.info(
            "Created guest session %s (token %s)", row.id, token_preview(row.token)
        )
        return IssuedGuestSession(token=row.token, id=row.id, expires_at=expires_at)

    def get_active_by_token(self, token: str | None) -> GuestSession | None:
        """Return the unexpired session for a token, without side effects."""
        if not token:
            return None
        with store_guard(self._db, "guest.lookup"):
            row = self._db.query(GuestSession).filter_by(token=token).first()
        if row is None or self._is_expired(row):
            return None
        return row

    def verify(self, token: str | None) -> VerifiedGuestSession | None:
        """Verify a token and refresh the session's last activity.

        Every successful verify is also a keep-alive.

        Args:
            token: Guest bearer token.

        Returns:
            VerifiedGuestSession, or None for unknown or expired tokens.
        """
        row = self.get_active_by_token(token)
        if row is None:
            logger.info("Guest token %s did not verify", token_preview(token))
            return None
        with store_guard(self._db, "guest.touch"):
            row.last_activity = utc_now_iso()
            self._db.commit()
        return VerifiedGuestSession(
            id=row.id, expires_at=row.expires_at, chat_title=row.chat_title
        )

    def update_chat_title(self, session_id: str, title: str) -> None:
        """Keep the session's preview title in step with its latest conversation."""
        with store_guard(self._db, "guest.chat_title"):
            row = self._db.get(GuestSession, session_id)
            if row is None:
                return
            row.chat_title = title[:255]
            self._db.commit()

    def delete(self, session_id: str) -> bool:
        """Remove a guest session row.

        Returns:
            True if a row was deleted.
        """
        with store_guard(self._db, "guest.delete"):
            row = self._db.get(GuestSession, session_id)
            if row is None:
                return False
            self._db.delete(row)
            self._db.commit()
        logger.info("Deleted guest session %s", session_id)
        return True

    def purge_expired(self) -> int:
        """Delete every expired guest session row.

        Returns:
            Number of rows deleted.
        """
        now = utc_now_iso()
        with store_guard(self._db, "guest.purge"):
            count = (
                self._db.query(GuestSession)
                .filter(GuestSession.expires_at <= now)
                .delete(synchronize_session=False)
            )
            self._db.commit()
        logger.info("Purged %d expired guest sessions", count)
        return count

    @staticmethod
    def _is_expired(row: GuestSession) -> bool:
        return parse_iso(row.expires_at) <= datetime.now(UTC)
