"""Test helper utilities: fake clients, canned payloads and builders."""

from tests.helpers.fake_transport import GEO_OK, NEWS_OK, WEATHER_OK, FakeTransport
from tests.helpers.fakes import FakeLLM, as_guest, as_user, guest_owner, turn, user_owner

__all__ = [
    "FakeLLM",
    "FakeTransport",
    "GEO_OK",
    "NEWS_OK",
    "WEATHER_OK",
    "as_guest",
    "as_user",
    "guest_owner",
    "turn",
    "user_owner",
]
