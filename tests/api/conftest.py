"""Pytest fixtures for API tests.

Provides a TestClient whose database, configuration, LLM and outbound
HTTP clients are swapped through FastAPI dependency overrides.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from src.api.dependencies import (
    get_llm_client,
    get_news_client,
    get_timezone_client,
    get_weather_client,
)
from src.api.main import app
from src.api.middleware.auth import reset_rate_limiter
from src.config import AppConfig, get_config
from src.db.connection import get_db
from src.services.utility_clients import NewsClient, TimezoneClient, WeatherClient
from tests.helpers import GEO_OK, NEWS_OK, WEATHER_OK, FakeLLM, FakeTransport


@pytest.fixture
def test_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport({
        "/data/2.5/weather": (200, WEATHER_OK),
        "/v2/": (200, NEWS_OK),
        "/json/": (200, GEO_OK),
    })


@pytest.fixture
def client(
    db_session: Session,
    test_config: AppConfig,
    fake_llm: FakeLLM,
    transport: FakeTransport,
) -> Generator[TestClient, None, None]:
    """Create a TestClient with overridden dependencies.

    Args:
        db_session: Test database session fixture.
        test_config: Configuration served to routes.
        fake_llm: Completion client stub.
        transport: Canned responses for weather, news and geo-IP.

    Yields:
        TestClient configured for testing.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_weather_client] = lambda: WeatherClient(
        "test-weather-key", transport=transport
    )
    app.dependency_overrides[get_news_client] = lambda: NewsClient(
        "test-news-key", transport=transport
    )
    app.dependency_overrides[get_timezone_client] = lambda: TimezoneClient(
        transport=transport
    )
    reset_rate_limiter()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    reset_rate_limiter()


@pytest.fixture
def guest_token(client: TestClient) -> str:
    """Issue a guest session through the API and return its token."""
    response = client.post("/api/v1/guest/create")
    assert response.status_code == 200
    return response.json()["token"]
