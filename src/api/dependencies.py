"""Shared FastAPI dependencies: services, identity and outbound clients.

Routes receive services through Depends so tests can swap the database
session, configuration, LLM and HTTP clients via dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.api.middleware.auth import GUEST_TOKEN_HEADER, USER_EMAIL_HEADER
from src.config import AppConfig, get_config
from src.db.connection import get_db
from src.services.conversation_service import ConversationService
from src.services.guest_session_service import GuestSessionService
from src.services.identity import (
    Owner,
    RequestIdentity,
    normalize_email,
    resolve_owner,
)
from src.services.llm_client import AnthropicLLMClient, CompletionClient
from src.services.utility_clients import NewsClient, TimezoneClient, WeatherClient


def get_request_identity(request: Request) -> RequestIdentity:
    """Read identity claims forwarded by the front end."""
    return RequestIdentity(
        user_email=normalize_email(request.headers.get(USER_EMAIL_HEADER)),
        guest_token=(request.headers.get(GUEST_TOKEN_HEADER) or "").strip() or None,
    )


def get_guest_service(
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
) -> GuestSessionService:
    """Dependency injector for GuestSessionService."""
    return GuestSessionService(db, ttl_days=config.guest.ttl_days)


def get_conversation_service(
    db: Session = Depends(get_db),
    config: AppConfig = Depends(get_config),
) -> ConversationService:
    """Dependency injector for ConversationService."""
    return ConversationService(db, title_length=config.chat.title_length)


def get_owner(
    identity: RequestIdentity = Depends(get_request_identity),
    guests: GuestSessionService = Depends(get_guest_service),
) -> Owner | None:
    """Resolve the request's owner key, or None for anonymous requests."""
    return resolve_owner(identity, guests)


@lru_cache()
def _default_llm_client() -> AnthropicLLMClient:
    return AnthropicLLMClient(get_config().llm)


def get_llm_client() -> CompletionClient:
    """Process-wide LLM client."""
    return _default_llm_client()


def get_weather_client(config: AppConfig = Depends(get_config)) -> WeatherClient:
    return WeatherClient(
        config.utilities.openweather_api_key,
        timeout=config.utilities.timeout_seconds,
    )


def get_news_client(config: AppConfig = Depends(get_config)) -> NewsClient:
    return NewsClient(
        config.utilities.news_api_key,
        default_country=config.utilities.news_country,
        timeout=config.utilities.timeout_seconds,
    )


def get_timezone_client(config: AppConfig = Depends(get_config)) -> TimezoneClient:
    return TimezoneClient(
        primary_timezone=config.utilities.primary_timezone,
        timeout=config.utilities.timeout_seconds,
    )
