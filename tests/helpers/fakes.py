"""In-process fakes and small builders shared across test modules."""

from src.errors.domain import UpstreamUnavailableError
from src.services.identity import Owner, OwnerKind


class FakeLLM:
    """Completion client stub that records calls."""

    def __init__(self, reply: str = "Hello from the assistant", fail: bool = False) -> None:
        self.reply = reply
        self.fail = fail
        self.calls: list[dict] = []

    async def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        self.calls.append({"system": system, "messages": messages})
        if self.fail:
            raise UpstreamUnavailableError("llm")
        return self.reply


def user_owner(email: str = "alice@example.com") -> Owner:
    return Owner(OwnerKind.user, email)


def guest_owner(session_id: str) -> Owner:
    return Owner(OwnerKind.guest, session_id)


def turn(prompt: str, reply: str = "Sure.") -> list[dict[str, str]]:
    """A user message followed by an AI reply."""
    return [
        {"text": prompt, "sender": "user"},
        {"text": reply, "sender": "ai"},
    ]


def as_user(email: str = "alice@example.com") -> dict[str, str]:
    """Identity headers for a signed-in user."""
    return {"X-User-Email": email}


def as_guest(token: str) -> dict[str, str]:
    """Identity headers for a guest session."""
    return {"X-Guest-Token": token}
