"""SQLAlchemy ORM models for the chatbridge state database.

This module defines the data models for guest sessions, conversations
(with an append-only message table), share snapshots, user roles and
feedback. Uses SQLAlchemy 2.0 style with Mapped and mapped_column.

Ownership columns (user_id, guest_session_id) are plain strings joined
at the application level only; there is no database foreign key between
conversations and guest sessions, so a guest session row can be deleted
after migration without touching conversation rows.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format.

    Always includes microseconds so that string order matches time order.
    """
    return datetime.now(UTC).isoformat(timespec="microseconds")


def parse_iso(value: str) -> datetime:
    """Parse a stored ISO8601 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class Sender(str, Enum):
    """Author of a conversation message."""

    user = "user"
    ai = "ai"


class UserRole(str, Enum):
    """Server-side role claim for an authenticated user."""

    user = "user"
    admin = "admin"


class FeedbackStatus(str, Enum):
    """Review state for submitted feedback."""

    pending = "pending"
    reviewed = "reviewed"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class GuestSession(Base):
    """Anonymous visitor identity addressed by a bearer token.

    Attributes:
        id: UUID primary key (the guest owner key on conversations).
        token: High-entropy bearer secret, unique, never reused.
        created_at: ISO8601 creation timestamp.
        expires_at: ISO8601 expiry; past this the session does not exist.
        last_activity: ISO8601 timestamp refreshed on every verification.
        chat_title: Title of the guest's most recent conversation.
        user_agent: Client user agent captured at creation.
    """

    __tablename__ = "guest_sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    expires_at: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    last_activity: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    chat_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    def __repr__(self) -> str:
        return f"<GuestSession(id={self.id!r}, expires_at={self.expires_at!r})>"


class Conversation(Base):
    """Persistent conversation owned by exactly one user or guest session.

    Attributes:
        id: UUID primary key.
        user_id: Stable user identifier (email) when owned by a user.
        guest_session_id: GuestSession.id when owned by a guest.
        title: Display title (defaults to a prefix of the first prompt).
        pinned: Pinned conversations list before unpinned ones.
        is_deleted: Soft delete flag; deleted rows are hidden, never removed.
        deleted_at: ISO8601 timestamp of the soft delete.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-update timestamp.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (guest_session_id IS NULL)",
            name="ck_conversation_single_owner",
        ),
        Index("ix_conv_user_listing", "user_id", "is_deleted", "updated_at"),
        Index("ix_conv_guest_listing", "guest_session_id", "is_deleted", "updated_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str | None] = mapped_column(String(320), nullable=True)
    guest_session_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="New Chat")
    pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    messages: Mapped[list["ConversationMessage"]] = relationship(
        "ConversationMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.sequence",
    )

    @property
    def owner_key(self) -> str:
        """The single owner identifier (user id or guest session id)."""
        return self.user_id if self.user_id is not None else self.guest_session_id

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id!r}, title={self.title!r})>"


class ConversationMessage(Base):
    """One message of a conversation, stored append-only.

    Each append is an INSERT of new rows; existing rows are never
    rewritten. The (conversation_id, sequence) unique constraint turns a
    concurrent append race into a detectable conflict instead of a lost
    update.

    Attributes:
        id: UUID primary key.
        conversation_id: FK to Conversation.
        sender: 'user' or 'ai'.
        text: Message text.
        sequence: Ordering within conversation (monotonically increasing).
        timestamp: ISO8601 message timestamp.
    """

    __tablename__ = "conversation_messages"
    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "sequence", name="uq_convmsg_conversation_seq"
        ),
        Index("ix_convmsg_conversation_seq", "conversation_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender: Mapped[str] = mapped_column(String(10), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages"
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationMessage(id={self.id!r}, sender={self.sender!r}, "
            f"seq={self.sequence})>"
        )


class ShareSnapshot(Base):
    """Immutable, token-addressable copy of a conversation's messages.

    Attributes:
        id: UUID primary key.
        token: Capability secret required alongside id to read.
        conversation_id: Source conversation, informational only.
        title: Snapshot title.
        messages_json: JSON array of {text, sender, timestamp} copied at
            creation time; never updated.
        created_by: Creator email, None for guests.
        created_at: ISO8601 creation timestamp.
        expires_at: ISO8601 expiry; reads at or after it fail closed.
        is_public: Private snapshots are readable only by their creator.
        view_count: Number of successful reads.
    """

    __tablename__ = "share_snapshots"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    conversation_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    messages_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    expires_at: Mapped[str] = mapped_column(String(50), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ShareSnapshot(id={self.id!r}, views={self.view_count})>"


class UserAccount(Base):
    """Role claim stored alongside an authenticated user identity.

    Attributes:
        email: Normalized user email (primary key).
        role: 'user' or 'admin'.
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "user_accounts"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.user.value
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<UserAccount(email={self.email!r}, role={self.role!r})>"


class Feedback(Base):
    """Free-text product feedback from an authenticated user."""

    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    feedback: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FeedbackStatus.pending.value
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<Feedback(id={self.id!r}, status={self.status!r})>"
