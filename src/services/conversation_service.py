"""Conversation store: ownership-checked CRUD over conversations.

Thin layer between API routes and SQLAlchemy models. Messages live in an
append-only child table; an append inserts new rows and never rewrites
existing ones, so concurrent turns on the same conversation cannot
clobber each other. Soft-deleted conversations are invisible to every
user-facing read and mutation.
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from src.db.connection import store_guard
from src.db.models import (
    Conversation,
    ConversationMessage,
    GuestSession,
    Sender,
    utc_now_iso,
)
from src.errors.domain import (
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from src.services.identity import Owner

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
DEFAULT_TITLE_LENGTH = 50
SNIPPET_LENGTH = 120
MAX_TITLE_LENGTH = 255

# Sequence collisions only happen under concurrent appends; a handful of
# retries is plenty for single-user conversations.
MAX_APPEND_ATTEMPTS = 5


def _normalize_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    if not messages:
        raise ValidationError("At least one message is required.")
    normalized = []
    for index, message in enumerate(messages):
        text = (message.get("text") or "").strip()
        if not text:
            raise ValidationError(f"Message {index} has empty text.")
        sender = message.get("sender")
        if sender not in (Sender.user.value, Sender.ai.value):
            raise ValidationError(
                f"Message {index} has invalid sender {sender!r}; expected 'user' or 'ai'."
            )
        normalized.append({
            "text": text,
            "sender": sender,
            "timestamp": message.get("timestamp") or utc_now_iso(),
        })
    return normalized


def default_title(messages: list[dict[str, Any]], length: int = DEFAULT_TITLE_LENGTH) -> str:
    """Title from the first user message, or DEFAULT_TITLE."""
    for message in messages:
        if message.get("sender") == Sender.user.value and message.get("text"):
            return message["text"].strip()[:length] or DEFAULT_TITLE
    return DEFAULT_TITLE


def _owner_filter(owner: Owner):
    if owner.is_user:
        return Conversation.user_id == owner.key
    return Conversation.guest_session_id == owner.key


def _is_owned_by(conversation: Conversation, owner: Owner) -> bool:
    if owner.is_user:
        return conversation.user_id == owner.key
    return conversation.guest_session_id == owner.key


class ConversationService:
    """CRUD and lifecycle operations for conversations.

    Args:
        db: SQLAlchemy session (sync).
        title_length: Characters of the first user message used as the
            default title.
    """

    def __init__(self, db: Session, title_length: int = DEFAULT_TITLE_LENGTH) -> None:
        self._db = db
        self._title_length = title_length

    # Creation and append

    def create(
        self,
        owner: Owner,
        messages: list[dict[str, Any]],
        title: str | None = None,
    ) -> Conversation:
        """Create a conversation with its first messages.

        Args:
            owner: Resolved owner; anonymous callers never reach here.
            messages: Initial messages ({text, sender, timestamp?}).
            title: Optional explicit title; defaults to a prefix of the
                first user message.

        Returns:
            The created Conversation.

        Raises:
            ValidationError: On empty or malformed messages.
            StoreUnavailableError: If the store rejects the write.
        """
        normalized = _normalize_messages(messages)
        resolved_title = (title or "").strip()[:MAX_TITLE_LENGTH] or default_title(
            normalized, self._title_length
        )
        now = utc_now_iso()
        conversation = Conversation(
            user_id=owner.user_id,
            guest_session_id=owner.guest_session_id,
            title=resolved_title,
            pinned=False,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )
        with store_guard(self._db, "conversation.create"):
            self._db.add(conversation)
            self._db.flush()
            for sequence, message in enumerate(normalized, start=1):
                self._db.add(ConversationMessage(
                    conversation_id=conversation.id,
                    sender=message["sender"],
                    text=message["text"],
                    sequence=sequence,
                    timestamp=message["timestamp"],
                ))
            self._touch_guest_title(conversation)
            self._db.commit()
        logger.info(
            "Created conversation %s for %s owner (%d messages)",
            conversation.id, owner.kind.value, len(normalized),
        )
        return conversation

    def append_turn(
        self,
        conversation_id: str,
        new_messages: list[dict[str, Any]],
        requester: Owner | None = None,
    ) -> Conversation:
        """Append messages to a conversation as new rows.

        Sequence numbers are assigned from the current maximum. If a
        concurrent writer took the same numbers, the unique constraint
        rejects the insert and the append is retried with fresh ones.

        Args:
            conversation_id: Target conversation.
            new_messages: Messages to append, in order.
            requester: When given, must own the conversation.

        Returns:
            The updated Conversation.

        Raises:
            NotFoundError: Conversation missing or soft-deleted.
            ForbiddenError: Requester is not the owner.
            StoreUnavailableError: Store failure or retries exhausted.
        """
        normalized = _normalize_messages(new_messages)
        if requester is not None:
            conversation = self.get_for_owner(conversation_id, requester, action="continue this conversation")
        else:
            conversation = self.get(conversation_id)

        last_error: Exception | None = None
        for attempt in range(1, MAX_APPEND_ATTEMPTS + 1):
            try:
                next_seq = self._next_sequence(conversation_id)
                for offset, message in enumerate(normalized):
                    self._db.add(ConversationMessage(
                        conversation_id=conversation_id,
                        sender=message["sender"],
                        text=message["text"],
                        sequence=next_seq + offset,
                        timestamp=message["timestamp"],
                    ))
                conversation.updated_at = utc_now_iso()
                self._touch_guest_title(conversation)
                self._db.commit()
                break
            except IntegrityError as e:
                self._db.rollback()
                last_error = e
                logger.warning(
                    "Sequence conflict appending to conversation %s (attempt %d/%d)",
                    conversation_id, attempt, MAX_APPEND_ATTEMPTS,
                )
            except SQLAlchemyError as e:
                self._db.rollback()
                logger.error("Append to conversation %s failed: %s", conversation_id, e)
                raise StoreUnavailableError("conversation.append") from e
        else:
            raise StoreUnavailableError("conversation.append") from last_error

        logger.info(
            "Appended %d messages to conversation %s", len(normalized), conversation_id
        )
        return conversation

    # Reads

    def get(self, conversation_id: str) -> Conversation:
        """Load a live conversation without an ownership check.

        Internal use only; user-facing reads go through get_for_owner.

        Raises:
            NotFoundError: Missing or soft-deleted.
        """
        with store_guard(self._db, "conversation.get"):
            conversation = self._db.get(Conversation, conversation_id)
        if conversation is None or conversation.is_deleted:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    def get_for_owner(
        self,
        conversation_id: str,
        requester: Owner | None,
        action: str = "access this conversation",
    ) -> Conversation:
        """Load a live conversation and enforce ownership.

        Raises:
            UnauthorizedError: No requester identity.
            NotFoundError: Missing or soft-deleted.
            ForbiddenError: Requester is not the owner.
        """
        if requester is None:
            raise UnauthorizedError(action)
        conversation = self.get(conversation_id)
        if not _is_owned_by(conversation, requester):
            logger.warning(
                "Ownership check failed for conversation %s (%s requester)",
                conversation_id, requester.kind.value,
            )
            raise ForbiddenError(action)
        return conversation

    def list_for_owner(self, owner: Owner) -> list[dict[str, Any]]:
        """List live conversations, pinned first, newest first.

        Uses explicit column selection so the listing never loads full
        message bodies; the snippet is the latest AI message, truncated.

        Args:
            owner: Resolved owner.

        Returns:
            List of conversation summary dicts.
        """
        latest_ai = aliased(ConversationMessage)
        snippet = (
            select(func.substr(latest_ai.text, 1, SNIPPET_LENGTH))
            .where(
                latest_ai.conversation_id == Conversation.id,
                latest_ai.sender == Sender.ai.value,
            )
            .order_by(latest_ai.sequence.desc())
            .limit(1)
            .correlate(Conversation)
            .scalar_subquery()
        )
        query = (
            self._db.query(
                Conversation.id,
                Conversation.title,
                Conversation.pinned,
                Conversation.created_at,
                Conversation.updated_at,
                func.count(ConversationMessage.id).label("message_count"),
                func.max(ConversationMessage.timestamp).label("last_message_at"),
                snippet.label("snippet"),
            )
            .outerjoin(ConversationMessage, ConversationMessage.conversation_id == Conversation.id)
            .filter(_owner_filter(owner))
            .filter(Conversation.is_deleted == False)  # noqa: E712
            .group_by(Conversation.id)
            .order_by(
                Conversation.pinned.desc(),
                Conversation.updated_at.desc(),
                Conversation.created_at.desc(),
            )
        )
        with store_guard(self._db, "conversation.list"):
            rows = query.all()

        return [
            {
                "id": row.id,
                "title": row.title,
                "snippet": row.snippet or "",
                "pinned": bool(row.pinned),
                "message_count": row.message_count,
                "created_at": row.created_at,
                "updated_at": row.updated_at,
                "last_message_at": row.last_message_at,
            }
            for row in rows
        ]

    def recent_messages(self, conversation_id: str, limit: int) -> list[dict[str, str]]:
        """Return the last `limit` messages in chronological order."""
        if limit <= 0:
            return []
        with store_guard(self._db, "conversation.recent"):
            rows = (
                self._db.query(ConversationMessage)
                .filter_by(conversation_id=conversation_id)
                .order_by(ConversationMessage.sequence.desc())
                .limit(limit)
                .all()
            )
        return [_message_dict(m) for m in reversed(rows)]

    def messages(self, conversation: Conversation) -> list[dict[str, str]]:
        """All messages of a conversation in order."""
        with store_guard(self._db, "conversation.messages"):
            return [_message_dict(m) for m in conversation.messages]

    def detail(self, conversation: Conversation) -> dict[str, Any]:
        """Full conversation payload including messages."""
        return {
            "id": conversation.id,
            "title": conversation.title,
            "pinned": conversation.pinned,
            "created_at": conversation.created_at,
            "updated_at": conversation.updated_at,
            "messages": self.messages(conversation),
        }

    def export(self, conversation_id: str, requester: Owner | None) -> dict[str, Any]:
        """Export a conversation with all messages as JSON.

        Returns:
            Complete conversation dict suitable for JSON download.
        """
        conversation = self.get_for_owner(conversation_id, requester, action="export this conversation")
        payload = self.detail(conversation)
        messages = payload.pop("messages")
        return {
            "exported_at": utc_now_iso(),
            "conversation": payload,
            "messages": messages,
        }

    # Mutations

    def rename(self, conversation_id: str, requester: Owner | None, title: str) -> Conversation:
        """Set a new title. Ownership is checked before any write."""
        return self.update(conversation_id, requester, title=title)

    def set_pinned(self, conversation_id: str, requester: Owner | None, pinned: bool) -> Conversation:
        """Pin or unpin a conversation."""
        return self.update(conversation_id, requester, pinned=pinned)

    def soft_delete(self, conversation_id: str, requester: Owner | None) -> Conversation:
        """Hide a conversation; the row is kept."""
        return self.update(conversation_id, requester, is_deleted=True)

    def update(
        self,
        conversation_id: str,
        requester: Owner | None,
        title: str | None = None,
        pinned: bool | None = None,
        is_deleted: bool | None = None,
    ) -> Conversation:
        """Apply any combination of rename, pin and soft delete.

        Ownership is checked before the fields are validated, and all
        changes are written in one commit. ``is_deleted=False`` is a no-op.
        Only a rename moves ``updated_at``; pinning and deleting do not
        count as activity.

        Raises:
            ValidationError: Blank title or no fields given.
            UnauthorizedError: No requester identity.
            NotFoundError: Missing or soft-deleted.
            ForbiddenError: Requester is not the owner.
        """
        conversation = self.get_for_owner(conversation_id, requester, action="modify this conversation")

        if title is None and pinned is None and is_deleted is None:
            raise ValidationError("Provide at least one of title, pinned, is_deleted.")
        new_title = None
        if title is not None:
            new_title = title.strip()[:MAX_TITLE_LENGTH]
            if not new_title:
                raise ValidationError("Title must not be empty.")

        now = utc_now_iso()
        with store_guard(self._db, "conversation.update"):
            if new_title is not None:
                conversation.title = new_title
                conversation.updated_at = now
            if pinned is not None:
                conversation.pinned = pinned
            if is_deleted:
                conversation.is_deleted = True
                conversation.deleted_at = now
            self._db.commit()
        logger.info(
            "Updated conversation %s (title=%s, pinned=%s, deleted=%s)",
            conversation_id, new_title is not None, pinned, bool(is_deleted),
        )
        return conversation

    # Internals

    def _next_sequence(self, conversation_id: str) -> int:
        max_seq = (
            self._db.query(func.max(ConversationMessage.sequence))
            .filter(ConversationMessage.conversation_id == conversation_id)
            .scalar()
        )
        return (max_seq or 0) + 1

    def _touch_guest_title(self, conversation: Conversation) -> None:
        if conversation.guest_session_id is None:
            return
        self._db.query(GuestSession).filter_by(
            id=conversation.guest_session_id
        ).update({"chat_title": conversation.title}, synchronize_session=False)


def _message_dict(message: ConversationMessage) -> dict[str, str]:
    return {
        "text": message.text,
        "sender": message.sender,
        "timestamp": message.timestamp,
    }
