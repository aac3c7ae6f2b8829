"""Tests for GuestSessionService."""

from datetime import UTC, datetime, timedelta

from src.db.models import GuestSession
from src.services.guest_session_service import GUEST_TOKEN_BYTES, GuestSessionService


def _expire(db_session, session_id: str) -> None:
    row = db_session.get(GuestSession, session_id)
    row.expires_at = (datetime.now(UTC) - timedelta(minutes=1)).isoformat(
        timespec="microseconds"
    )
    db_session.commit()


class TestCreate:
    """Tests for issuing guest sessions."""

    def test_token_is_hex_of_expected_length(self, guests):
        issued = guests.create()
        assert len(issued.token) == GUEST_TOKEN_BYTES * 2
        int(issued.token, 16)

    def test_tokens_are_unique(self, guests):
        tokens = {guests.create().token for _ in range(20)}
        assert len(tokens) == 20

    def test_expiry_follows_ttl(self, db_session):
        service = GuestSessionService(db_session, ttl_days=3)
        issued = service.create()
        expires = datetime.fromisoformat(issued.expires_at)
        delta = expires - datetime.now(UTC)
        assert timedelta(days=2, hours=23) < delta <= timedelta(days=3)

    def test_user_agent_is_stored(self, guests, db_session):
        issued = guests.create(user_agent="Mozilla/5.0 test")
        row = db_session.get(GuestSession, issued.id)
        assert row.user_agent == "Mozilla/5.0 test"


class TestVerify:
    """Tests for verifying guest tokens."""

    def test_valid_token(self, guests):
        issued = guests.create()
        verified = guests.verify(issued.token)
        assert verified is not None
        assert verified.id == issued.id
        assert verified.expires_at == issued.expires_at

    def test_unknown_token(self, guests):
        assert guests.verify("deadbeef" * 8) is None

    def test_empty_token(self, guests):
        assert guests.verify("") is None
        assert guests.verify(None) is None

    def test_expired_token_is_invalid(self, guests, db_session):
        issued = guests.create()
        _expire(db_session, issued.id)
        assert guests.verify(issued.token) is None

    def test_verify_refreshes_last_activity(self, guests, db_session):
        issued = guests.create()
        row = db_session.get(GuestSession, issued.id)
        row.last_activity = "2000-01-01T00:00:00.000000+00:00"
        db_session.commit()

        guests.verify(issued.token)

        db_session.refresh(row)
        assert row.last_activity > "2000-01-01T00:00:00.000000+00:00"

    def test_chat_title_is_returned(self, guests):
        issued = guests.create()
        guests.update_chat_title(issued.id, "Trip planning")
        assert guests.verify(issued.token).chat_title == "Trip planning"


class TestDeleteAndPurge:
    """Tests for retiring guest sessions."""

    def test_delete_removes_row(self, guests, db_session):
        issued = guests.create()
        assert guests.delete(issued.id) is True
        assert db_session.get(GuestSession, issued.id) is None
        assert guests.verify(issued.token) is None

    def test_delete_unknown_returns_false(self, guests):
        assert guests.delete("missing") is False

    def test_purge_only_removes_expired(self, guests, db_session):
        live = guests.create()
        stale = guests.create()
        _expire(db_session, stale.id)

        assert guests.purge_expired() == 1
        assert db_session.get(GuestSession, live.id) is not None
        assert db_session.get(GuestSession, stale.id) is None
