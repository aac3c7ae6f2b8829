"""Identity resolution and server-side role claims.

Every request resolves to exactly one of: an authenticated user, a
verified guest session, or anonymous. Anonymous requests have no owner
key and nothing is persisted for them.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from src.db.connection import store_guard
from src.db.models import UserAccount, UserRole
from src.services.guest_session_service import GuestSessionService
from src.utils.redaction import token_preview

logger = logging.getLogger(__name__)


class OwnerKind(str, Enum):
    """Kind of owner a conversation is attached to."""

    user = "user"
    guest = "guest"


@dataclass(frozen=True)
class Owner:
    """The single owner key used for conversation reads and writes."""

    kind: OwnerKind
    key: str

    @property
    def is_user(self) -> bool:
        return self.kind == OwnerKind.user

    @property
    def user_id(self) -> str | None:
        return self.key if self.kind == OwnerKind.user else None

    @property
    def guest_session_id(self) -> str | None:
        return self.key if self.kind == OwnerKind.guest else None


@dataclass(frozen=True)
class RequestIdentity:
    """Raw identity claims carried by a request."""

    user_email: str | None = None
    guest_token: str | None = None


def normalize_email(email: str | None) -> str | None:
    """Trim and lower-case an email; empty values become None."""
    if email is None:
        return None
    cleaned = email.strip().lower()
    return cleaned or None


def resolve_owner(identity: RequestIdentity, guests: GuestSessionService) -> Owner | None:
    """Decide the owner key for a request.

    Priority: authenticated user, then a verified guest session, else
    anonymous (None). The guest token is ignored entirely when a user is
    present. Verification refreshes the guest session's last activity.

    Args:
        identity: Claims extracted from the request.
        guests: Guest session store used to verify the token.

    Returns:
        Owner, or None when the request is anonymous.
    """
    email = normalize_email(identity.user_email)
    if email:
        return Owner(OwnerKind.user, email)
    if identity.guest_token:
        verified = guests.verify(identity.guest_token)
        if verified is not None:
            return Owner(OwnerKind.guest, verified.id)
        logger.info(
            "Request carried unverifiable guest token %s; treating as anonymous",
            token_preview(identity.guest_token),
        )
    return None


def is_admin(db: Session, email: str | None) -> bool:
    """Server-side admin check against the user_accounts table."""
    email = normalize_email(email)
    if not email:
        return False
    with store_guard(db, "users.lookup"):
        account = db.get(UserAccount, email)
    return account is not None and account.role == UserRole.admin.value


def set_role(db: Session, email: str, role: UserRole) -> UserAccount:
    """Create or update the stored role for a user.

    Args:
        db: SQLAlchemy session.
        email: User email (normalized before storage).
        role: Role to store.

    Returns:
        The updated UserAccount.
    """
    normalized = normalize_email(email)
    if not normalized:
        raise ValueError("email must not be empty")
    with store_guard(db, "users.set_role"):
        account = db.get(UserAccount, normalized)
        if account is None:
            account = UserAccount(email=normalized, role=role.value)
            db.add(account)
        else:
            account.role = role.value
        db.commit()
    logger.info("Set role %s for %s", role.value, normalized)
    return account
