"""Database module for chatbridge state management and persistence."""

from src.db.connection import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
    store_guard,
)
from src.db.models import (
    Conversation,
    ConversationMessage,
    Feedback,
    FeedbackStatus,
    GuestSession,
    Sender,
    ShareSnapshot,
    UserAccount,
    UserRole,
)

__all__ = [
    # Models
    "GuestSession",
    "Conversation",
    "ConversationMessage",
    "ShareSnapshot",
    "UserAccount",
    "Feedback",
    # Enums
    "Sender",
    "UserRole",
    "FeedbackStatus",
    # Connection
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "store_guard",
]
