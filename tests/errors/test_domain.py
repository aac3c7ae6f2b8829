"""Tests for typed domain exceptions."""

import pytest

from src.errors.domain import (
    DomainError,
    ForbiddenError,
    GoneError,
    InvalidSessionError,
    MigrationFailedError,
    NotFoundError,
    StoreUnavailableError,
    TemporaryConversationError,
    UnauthorizedError,
    UpstreamUnavailableError,
    ValidationError,
)


@pytest.mark.parametrize("error,status,code", [
    (ValidationError("bad"), 400, "E-2001"),
    (TemporaryConversationError("temp-1"), 400, "E-2002"),
    (UnauthorizedError(), 401, "E-5001"),
    (ForbiddenError(), 403, "E-5002"),
    (NotFoundError("Share", "x"), 404, "E-1002"),
    (InvalidSessionError(), 404, "E-1001"),
    (GoneError("Share link"), 410, "E-1003"),
    (MigrationFailedError("g-1"), 500, "E-1004"),
    (StoreUnavailableError("op"), 500, "E-4001"),
    (UpstreamUnavailableError("llm"), 502, "E-3001"),
    (UpstreamUnavailableError("weather"), 502, "E-3002"),
])
def test_status_and_code(error, status, code):
    assert isinstance(error, DomainError)
    assert error.status_code == status
    assert error.code == code
    assert error.message
    assert error.remediation


class TestMessages:
    """Rendered messages carry context, never internals."""

    def test_validation_message_is_verbatim(self):
        assert ValidationError("Prompt is required.").message == "Prompt is required."

    def test_not_found_names_resource(self):
        error = NotFoundError("Conversation", "abc")
        assert str(error) == "Conversation 'abc' was not found."
        assert error.resource_type == "Conversation"

    def test_forbidden_names_action(self):
        assert "rename this" in ForbiddenError("rename this").message

    def test_temporary_is_a_validation_error(self):
        assert isinstance(TemporaryConversationError("temp-9"), ValidationError)

    def test_upstream_names_utility(self):
        error = UpstreamUnavailableError("news")
        assert "news" in error.message
        assert error.service == "news"

    def test_store_unavailable_hides_operation(self):
        error = StoreUnavailableError("conversation.append")
        assert "conversation.append" not in error.message
        assert error.operation == "conversation.append"
