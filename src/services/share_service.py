"""Share snapshots: immutable, token-addressable copies of conversations.

A snapshot copies message content at creation time into its own row, so
later edits to the source conversation never reach it. Reading requires
both the snapshot id and its token; expired snapshots fail closed.
"""

import hmac
import json
import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.connection import store_guard
from src.db.models import Sender, ShareSnapshot, parse_iso, utc_now_iso
from src.errors.domain import (
    GoneError,
    NotFoundError,
    TemporaryConversationError,
    ValidationError,
)
from src.services.conversation_service import ConversationService
from src.services.identity import Owner, normalize_email

logger = logging.getLogger(__name__)

# 16 random bytes = 128 bits of entropy
SHARE_TOKEN_BYTES = 16

TEMPORARY_ID_PREFIX = "temp-"

DEFAULT_SHARE_TITLE = "Shared conversation"

_AI_SENDERS = frozenset({"ai", "assistant", "bot", "model"})


def repair_messages(messages: Any) -> list[dict[str, str]]:
    """Coerce client-supplied messages into well-formed snapshot entries.

    Entries are repaired individually rather than rejecting the share:
    a missing timestamp becomes now and a missing or unknown sender
    becomes 'user' ('assistant'-style senders map to 'ai'). Entries that
    are not objects or carry no text cannot be repaired and are dropped.

    Raises:
        ValidationError: If nothing usable remains.
    """
    if not isinstance(messages, (list, tuple)):
        raise ValidationError("messages must be a list.")
    repaired = []
    dropped = 0
    for entry in messages:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        text = entry.get("text")
        if not isinstance(text, str) or not text.strip():
            dropped += 1
            continue
        sender = str(entry.get("sender") or "").strip().lower()
        timestamp = entry.get("timestamp")
        repaired.append({
            "text": text,
            "sender": Sender.ai.value if sender in _AI_SENDERS else Sender.user.value,
            "timestamp": timestamp if isinstance(timestamp, str) and timestamp else utc_now_iso(),
        })
    if dropped:
        logger.info("Dropped %d unrepairable share message entries", dropped)
    if not repaired:
        raise ValidationError("messages must contain at least one message with text.")
    return repaired


class ShareService:
    """Create and read share snapshots.

    Args:
        db: SQLAlchemy session (sync).
        max_expires_days: Upper bound accepted for expires_days.
    """

    def __init__(self, db: Session, max_expires_days: int = 365) -> None:
        self._db = db
        self._max_expires_days = max_expires_days

    def create(
        self,
        messages: Any,
        title: str | None,
        expires_days: int,
        is_public: bool = True,
        created_by: str | None = None,
        conversation_id: str | None = None,
    ) -> dict[str, Any]:
        """Persist a new snapshot.

        Args:
            messages: Message entries to copy (repaired leniently).
            title: Snapshot title.
            expires_days: Lifetime in days, 1..max_expires_days.
            is_public: When False only the creator can read it.
            created_by: Creator email, None for guests.
            conversation_id: Source conversation, informational.

        Returns:
            Dict with id, token, expires_at and is_public.

        Raises:
            ValidationError: Bad expiry, no usable messages, or a private
                snapshot without a signed-in creator.
            StoreUnavailableError: If the snapshot cannot be persisted.
        """
        if not isinstance(expires_days, int) or not 1 <= expires_days <= self._max_expires_days:
            raise ValidationError(
                f"expiresDays must be between 1 and {self._max_expires_days}."
            )
        creator = normalize_email(created_by)
        if not is_public and creator is None:
            raise ValidationError("Private share links require a signed-in user.")
        entries = repair_messages(messages)
        expires_at = (datetime.now(UTC) + timedelta(days=expires_days)).isoformat(
            timespec="microseconds"
        )
        snapshot = ShareSnapshot(
            token=secrets.token_hex(SHARE_TOKEN_BYTES),
            conversation_id=conversation_id,
            title=((title or "").strip() or DEFAULT_SHARE_TITLE)[:255],
            messages_json=json.dumps(entries),
            created_by=creator,
            expires_at=expires_at,
            is_public=is_public,
            view_count=0,
        )
        with store_guard(self._db, "share.create"):
            self._db.add(snapshot)
            self._db.commit()
        logger.info(
            "Created share %s (%d messages, public=%s, expires %s)",
            snapshot.id, len(entries), is_public, expires_at,
        )
        return {
            "id": snapshot.id,
            "token": snapshot.token,
            "expires_at": snapshot.expires_at,
            "is_public": snapshot.is_public,
        }

    def create_from_conversation(
        self,
        conversations: ConversationService,
        conversation_id: str,
        requester: Owner | None,
        title: str | None,
        expires_days: int,
        is_public: bool = True,
    ) -> dict[str, Any]:
        """Snapshot a stored conversation the requester owns.

        Raises:
            TemporaryConversationError: Client-side id never persisted.
            UnauthorizedError / NotFoundError / ForbiddenError: From the
                conversation ownership check.
        """
        if conversation_id.startswith(TEMPORARY_ID_PREFIX):
            raise TemporaryConversationError(conversation_id)
        conversation = conversations.get_for_owner(
            conversation_id, requester, action="share this conversation"
        )
        return self.create(
            messages=conversations.messages(conversation),
            title=title or conversation.title,
            expires_days=expires_days,
            is_public=is_public,
            created_by=requester.user_id if requester else None,
            conversation_id=conversation.id,
        )

    def read(
        self,
        share_id: str,
        token: str | None,
        viewer_email: str | None = None,
    ) -> dict[str, Any]:
        """Return a snapshot and count the view.

        The view-count increment is a single atomic UPDATE; if it fails
        the read still succeeds.

        Raises:
            NotFoundError: Unknown id, wrong token, or private snapshot
                read by someone other than its creator.
            GoneError: now >= expires_at.
        """
        if not token:
            raise NotFoundError("Share", share_id)
        with store_guard(self._db, "share.read"):
            snapshot = self._db.get(ShareSnapshot, share_id)
        if snapshot is None or not hmac.compare_digest(snapshot.token.encode(), token.encode()):
            raise NotFoundError("Share", share_id)
        if datetime.now(UTC) >= parse_iso(snapshot.expires_at):
            logger.info("Share %s read after expiry", share_id)
            raise GoneError("Share link")
        if not snapshot.is_public and (
            snapshot.created_by is None
            or snapshot.created_by != normalize_email(viewer_email)
        ):
            raise NotFoundError("Share", share_id)

        view_count = snapshot.view_count
        try:
            self._db.query(ShareSnapshot).filter_by(id=share_id).update(
                {ShareSnapshot.view_count: ShareSnapshot.view_count + 1},
                synchronize_session=False,
            )
            self._db.commit()
            self._db.refresh(snapshot)
            view_count = snapshot.view_count
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.warning("View count increment failed for share %s: %s", share_id, e)

        return {
            "id": snapshot.id,
            "title": snapshot.title,
            "messages": json.loads(snapshot.messages_json),
            "created_at": snapshot.created_at,
            "expires_at": snapshot.expires_at,
            "is_public": snapshot.is_public,
            "view_count": view_count,
        }
