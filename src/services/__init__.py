"""Service layer for chatbridge.

Provides the guest session store, identity resolution, the conversation
store, guest-to-user migration and share snapshots. Chat orchestration
and third-party clients live in their own modules.
"""

from src.services.conversation_service import ConversationService
from src.services.guest_session_service import GuestSessionService
from src.services.identity import Owner, OwnerKind, RequestIdentity, resolve_owner
from src.services.migration_service import MigrationResult, MigrationService
from src.services.share_service import ShareService, repair_messages

__all__ = [
    "GuestSessionService",
    "Owner",
    "OwnerKind",
    "RequestIdentity",
    "resolve_owner",
    "ConversationService",
    "MigrationService",
    "MigrationResult",
    "ShareService",
    "repair_messages",
]
