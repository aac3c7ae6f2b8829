"""API routes for live utility lookups (weather, news, timezone).

Endpoints: /api/v1/weather, /api/v1/news, /api/v1/timezone.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_news_client, get_timezone_client, get_weather_client
from src.api.middleware.auth import get_client_ip
from src.api.schemas import NewsResponse, NewsSearchRequest, WeatherResponse
from src.services.utility_clients import NewsClient, TimezoneClient, WeatherClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["utilities"])


@router.get("/weather", response_model=WeatherResponse)
async def get_weather(
    city: str | None = None,
    client: WeatherClient = Depends(get_weather_client),
) -> WeatherResponse:
    """Current weather for a city (metric units).

    Raises:
        ValidationError: City or API key missing (400).
        NotFoundError: Unknown city (404).
        UpstreamUnavailableError: OpenWeather unreachable (502).
    """
    return WeatherResponse(**await client.current(city))


@router.get("/news", response_model=NewsResponse)
async def get_news(
    q: str | None = None,
    category: str | None = None,
    country: str | None = None,
    from_date: str | None = Query(None, alias="from"),
    client: NewsClient = Depends(get_news_client),
) -> NewsResponse:
    """Top headlines, or an article search when ``q`` is given."""
    return NewsResponse(**await client.headlines(
        query=q, category=category, country=country, from_date=from_date
    ))


@router.post("/news", response_model=NewsResponse)
async def search_news(
    payload: NewsSearchRequest,
    client: NewsClient = Depends(get_news_client),
) -> NewsResponse:
    """Article search with date range, sources and paging."""
    return NewsResponse(**await client.search(
        payload.query,
        from_date=payload.from_date,
        to_date=payload.to_date,
        sources=payload.sources,
        language=payload.language,
        sort_by=payload.sort_by,
        page_size=payload.page_size,
    ))


@router.get("/timezone")
async def get_timezone(
    request: Request,
    client: TimezoneClient = Depends(get_timezone_client),
) -> dict[str, Any]:
    """Primary-zone, UTC and common-zone times plus the caller's zone.

    Never fails; ``fallback`` is true when the geo-IP lookup failed.
    """
    return await client.lookup(get_client_ip(request))
