"""Tests for ConversationService."""

import pytest

from src.db.models import Conversation, ConversationMessage, GuestSession
from src.errors.domain import (
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from src.services.conversation_service import (
    DEFAULT_TITLE,
    MAX_APPEND_ATTEMPTS,
    SNIPPET_LENGTH,
    ConversationService,
    default_title,
)
from tests.helpers import guest_owner, turn, user_owner

ALICE = user_owner("alice@example.com")
BOB = user_owner("bob@example.com")


class TestCreate:
    """Tests for creating conversations."""

    def test_two_turns_give_four_messages(self, conversations):
        prompt = "Plan a three day trip to Lisbon with a focus on food and architecture"
        conv = conversations.create(ALICE, turn(prompt))
        conversations.append_turn(conv.id, turn("Add a day trip to Sintra"), requester=ALICE)

        detail = conversations.detail(conversations.get(conv.id))
        assert len(detail["messages"]) == 4
        assert detail["title"] == prompt[:50]
        assert detail["pinned"] is False
        assert [m["sender"] for m in detail["messages"]] == ["user", "ai", "user", "ai"]

    def test_explicit_title(self, conversations):
        conv = conversations.create(ALICE, turn("hi"), title="  Custom  ")
        assert conv.title == "Custom"

    def test_exactly_one_owner(self, conversations, guests):
        user_conv = conversations.create(ALICE, turn("hi"))
        assert user_conv.user_id == "alice@example.com"
        assert user_conv.guest_session_id is None

        issued = guests.create()
        guest_conv = conversations.create(guest_owner(issued.id), turn("hi"))
        assert guest_conv.user_id is None
        assert guest_conv.guest_session_id == issued.id

    def test_guest_chat_title_tracks_conversation(self, conversations, guests, db_session):
        issued = guests.create()
        conversations.create(guest_owner(issued.id), turn("Recipe ideas"))
        assert db_session.get(GuestSession, issued.id).chat_title == "Recipe ideas"

    def test_empty_messages_rejected(self, conversations):
        with pytest.raises(ValidationError):
            conversations.create(ALICE, [])

    def test_blank_text_rejected(self, conversations):
        with pytest.raises(ValidationError):
            conversations.create(ALICE, [{"text": "  ", "sender": "user"}])

    def test_unknown_sender_rejected(self, conversations):
        with pytest.raises(ValidationError, match="invalid sender"):
            conversations.create(ALICE, [{"text": "hi", "sender": "assistant"}])

    def test_missing_timestamp_is_filled(self, conversations):
        conv = conversations.create(ALICE, turn("hi"))
        messages = conversations.messages(conv)
        assert all(m["timestamp"] for m in messages)


class TestDefaultTitle:
    """Tests for default_title."""

    def test_uses_first_user_message(self):
        messages = [
            {"text": "Welcome!", "sender": "ai"},
            {"text": "What is the capital of France?", "sender": "user"},
        ]
        assert default_title(messages, 10) == "What is th"

    def test_falls_back_without_user_message(self):
        assert default_title([{"text": "Welcome!", "sender": "ai"}]) == DEFAULT_TITLE


class TestAppend:
    """Tests for append-only message writes."""

    def test_sequences_are_contiguous(self, conversations, db_session):
        conv = conversations.create(ALICE, turn("one"))
        conversations.append_turn(conv.id, turn("two"))
        conversations.append_turn(conv.id, turn("three"))

        sequences = [
            m.sequence
            for m in db_session.query(ConversationMessage)
            .filter_by(conversation_id=conv.id)
            .order_by(ConversationMessage.sequence)
        ]
        assert sequences == [1, 2, 3, 4, 5, 6]

    def test_existing_rows_are_untouched(self, conversations, db_session):
        conv = conversations.create(ALICE, turn("original question", "original answer"))
        first_ids = [
            m.id for m in db_session.query(ConversationMessage).filter_by(conversation_id=conv.id)
        ]
        conversations.append_turn(conv.id, turn("follow up"))

        kept = db_session.query(ConversationMessage).filter(
            ConversationMessage.id.in_(first_ids)
        ).all()
        assert sorted(m.text for m in kept) == ["original answer", "original question"]

    def test_append_bumps_updated_at(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        before = conv.updated_at
        updated = conversations.append_turn(conv.id, turn("two"))
        assert updated.updated_at > before

    def test_sequence_collision_is_retried(self, conversations, monkeypatch):
        conv = conversations.create(ALICE, turn("one"))
        real_next = ConversationService._next_sequence
        calls = {"n": 0}

        def colliding_next(self, conversation_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return 1  # already taken by the first message
            return real_next(self, conversation_id)

        monkeypatch.setattr(ConversationService, "_next_sequence", colliding_next)
        conversations.append_turn(conv.id, turn("two"))

        assert calls["n"] == 2
        assert len(conversations.messages(conversations.get(conv.id))) == 4

    def test_retries_exhausted(self, conversations, monkeypatch):
        conv = conversations.create(ALICE, turn("one"))
        monkeypatch.setattr(ConversationService, "_next_sequence", lambda self, cid: 1)

        with pytest.raises(StoreUnavailableError):
            conversations.append_turn(conv.id, turn("two"))
        assert MAX_APPEND_ATTEMPTS > 1
        assert len(conversations.messages(conversations.get(conv.id))) == 2

    def test_append_by_non_owner_is_forbidden(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ForbiddenError):
            conversations.append_turn(conv.id, turn("two"), requester=BOB)

    def test_append_to_deleted_is_not_found(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        conversations.soft_delete(conv.id, ALICE)
        with pytest.raises(NotFoundError):
            conversations.append_turn(conv.id, turn("two"))


class TestOwnership:
    """Tests for ownership-checked reads."""

    def test_owner_can_read(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        assert conversations.get_for_owner(conv.id, ALICE).id == conv.id

    def test_other_user_is_forbidden(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ForbiddenError):
            conversations.get_for_owner(conv.id, BOB)

    def test_guest_cannot_read_user_conversation(self, conversations, guests):
        conv = conversations.create(ALICE, turn("one"))
        issued = guests.create()
        with pytest.raises(ForbiddenError):
            conversations.get_for_owner(conv.id, guest_owner(issued.id))

    def test_anonymous_is_unauthorized(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(UnauthorizedError):
            conversations.get_for_owner(conv.id, None)

    def test_unknown_is_not_found(self, conversations):
        with pytest.raises(NotFoundError):
            conversations.get_for_owner("missing", ALICE)


class TestListing:
    """Tests for list_for_owner."""

    def test_pinned_first_then_newest(self, conversations):
        first = conversations.create(ALICE, turn("first"))
        second = conversations.create(ALICE, turn("second"))
        third = conversations.create(ALICE, turn("third"))
        conversations.set_pinned(first.id, ALICE, True)
        conversations.append_turn(second.id, turn("bump"))

        ids = [c["id"] for c in conversations.list_for_owner(ALICE)]
        assert ids == [first.id, second.id, third.id]

    def test_excludes_deleted(self, conversations):
        keep = conversations.create(ALICE, turn("keep"))
        drop = conversations.create(ALICE, turn("drop"))
        conversations.soft_delete(drop.id, ALICE)

        listed = conversations.list_for_owner(ALICE)
        assert [c["id"] for c in listed] == [keep.id]

    def test_excludes_other_owners(self, conversations):
        conversations.create(BOB, turn("bob's"))
        assert conversations.list_for_owner(ALICE) == []

    def test_summary_fields(self, conversations):
        long_reply = "x" * (SNIPPET_LENGTH + 30)
        conv = conversations.create(ALICE, turn("question", "short reply"))
        conversations.append_turn(conv.id, turn("again", long_reply))

        [summary] = conversations.list_for_owner(ALICE)
        assert summary["message_count"] == 4
        assert summary["snippet"] == long_reply[:SNIPPET_LENGTH]
        assert summary["pinned"] is False
        assert summary["last_message_at"] is not None

    def test_recent_messages_window(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        conversations.append_turn(conv.id, turn("two"))

        recent = conversations.recent_messages(conv.id, 3)
        assert [m["text"] for m in recent] == ["Sure.", "two", "Sure."]
        assert conversations.recent_messages(conv.id, 0) == []


class TestUpdate:
    """Tests for rename, pin and soft delete."""

    def test_rename(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        assert conversations.rename(conv.id, ALICE, "  Renamed ").title == "Renamed"

    def test_blank_title_rejected(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ValidationError):
            conversations.rename(conv.id, ALICE, "   ")

    def test_no_fields_rejected(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ValidationError):
            conversations.update(conv.id, ALICE)

    def test_non_owner_cannot_modify(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ForbiddenError):
            conversations.rename(conv.id, BOB, "mine now")
        assert conversations.get(conv.id).title == "one"

    def test_non_owner_cannot_pin_or_delete(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ForbiddenError):
            conversations.set_pinned(conv.id, BOB, True)
        with pytest.raises(ForbiddenError):
            conversations.soft_delete(conv.id, BOB)

        unchanged = conversations.get(conv.id)
        assert unchanged.pinned is False
        assert unchanged.is_deleted is False
        assert unchanged.deleted_at is None

    def test_ownership_checked_before_title(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ForbiddenError):
            conversations.rename(conv.id, BOB, "   ")

    def test_pin_does_not_count_as_activity(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        before = conv.updated_at
        assert conversations.set_pinned(conv.id, ALICE, True).updated_at == before
        assert conversations.set_pinned(conv.id, ALICE, False).updated_at == before

    def test_rename_counts_as_activity(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        before = conv.updated_at
        assert conversations.rename(conv.id, ALICE, "Renamed").updated_at > before

    def test_soft_delete_keeps_row(self, conversations, db_session):
        conv = conversations.create(ALICE, turn("one"))
        deleted = conversations.soft_delete(conv.id, ALICE)
        assert deleted.is_deleted is True
        assert deleted.deleted_at is not None

        row = db_session.get(Conversation, conv.id)
        assert row is not None
        with pytest.raises(NotFoundError):
            conversations.get(conv.id)

    def test_deleted_cannot_be_modified(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        conversations.soft_delete(conv.id, ALICE)
        with pytest.raises(NotFoundError):
            conversations.set_pinned(conv.id, ALICE, True)

    def test_undelete_is_a_no_op(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        result = conversations.update(conv.id, ALICE, is_deleted=False)
        assert result.is_deleted is False


class TestExport:
    """Tests for the JSON export payload."""

    def test_export_shape(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        payload = conversations.export(conv.id, ALICE)

        assert set(payload) == {"exported_at", "conversation", "messages"}
        assert payload["conversation"]["id"] == conv.id
        assert "messages" not in payload["conversation"]
        assert len(payload["messages"]) == 2

    def test_export_requires_owner(self, conversations):
        conv = conversations.create(ALICE, turn("one"))
        with pytest.raises(ForbiddenError):
            conversations.export(conv.id, BOB)
