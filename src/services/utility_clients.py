"""HTTP clients for the weather, news and geo-IP timezone utilities.

Every outbound call uses its own httpx.AsyncClient with an explicit
timeout. Transport failures and timeouts become UpstreamUnavailableError;
API keys travel as query parameters and are never logged.

API references:
    https://openweathermap.org/current
    https://newsapi.org/docs/endpoints
    https://ip-api.com/docs/api:json
"""

import ipaddress
import logging
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from src.errors.domain import NotFoundError, UpstreamUnavailableError, ValidationError
from src.utils.redaction import redact_for_logging, sanitize_error_message

logger = logging.getLogger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
NEWSAPI_HEADLINES_URL = "https://newsapi.org/v2/top-headlines"
NEWSAPI_EVERYTHING_URL = "https://newsapi.org/v2/everything"
IP_API_URL = "http://ip-api.com/json/{ip}"

DEFAULT_TIMEOUT = 8.0

# Display label -> IANA zone for the timezone table
COMMON_TIMEZONES: dict[str, str] = {
    "IST (India)": "Asia/Kolkata",
    "UTC": "UTC",
    "EST (US East)": "America/New_York",
    "PST (US West)": "America/Los_Angeles",
    "GMT (London)": "Europe/London",
    "JST (Japan)": "Asia/Tokyo",
    "CST (China)": "Asia/Shanghai",
}

_TIME_FORMAT = "%A, %d %B %Y, %I:%M:%S %p %Z"


def format_zone_time(zone: str, now: datetime | None = None) -> str:
    """Human-readable current time in an IANA zone."""
    now = now or datetime.now(UTC)
    return now.astimezone(ZoneInfo(zone)).strftime(_TIME_FORMAT)


def utc_offset(zone: str, now: datetime | None = None) -> str:
    """UTC offset of a zone as +HH:MM."""
    now = now or datetime.now(UTC)
    raw = now.astimezone(ZoneInfo(zone)).strftime("%z")
    return f"{raw[:3]}:{raw[3:]}"


class WeatherClient:
    """Current conditions from OpenWeather (metric units).

    Args:
        api_key: OpenWeather appid.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def current(self, city: str | None) -> dict[str, Any]:
        """Fetch current weather for a city.

        Returns:
            Dict with city, temp, desc and icon.

        Raises:
            ValidationError: City or API key missing.
            NotFoundError: OpenWeather does not know the city.
            UpstreamUnavailableError: Request failed or timed out.
        """
        city = (city or "").strip()
        if not city or not self._api_key:
            raise ValidationError("City or API key missing.")

        params = {"q": city, "appid": self._api_key, "units": "metric"}
        logger.debug("Weather request params: %s", redact_for_logging(params))
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.get(OPENWEATHER_URL, params=params)
            except httpx.RequestError as e:
                logger.warning("Weather request failed: %s", sanitize_error_message(str(e)))
                raise UpstreamUnavailableError("weather") from e

        if response.status_code == 404:
            raise NotFoundError("City", city)
        if response.status_code != 200:
            logger.warning("Weather API returned HTTP %d for %s", response.status_code, city)
            raise UpstreamUnavailableError("weather")

        try:
            data = response.json()
            return {
                "city": data["name"],
                "temp": data["main"]["temp"],
                "desc": data["weather"][0]["description"],
                "icon": data["weather"][0]["icon"],
            }
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Malformed weather payload for %s: %s", city, e)
            raise UpstreamUnavailableError("weather") from e


def _normalize_article(article: dict[str, Any]) -> dict[str, Any]:
    source = article.get("source") or {}
    return {
        "title": article.get("title"),
        "description": article.get("description"),
        "url": article.get("url"),
        "source": source.get("name") or "Unknown",
        "publishedAt": article.get("publishedAt"),
        "urlToImage": article.get("urlToImage"),
    }


class NewsClient:
    """Headlines and article search from NewsAPI.

    Args:
        api_key: NewsAPI key.
        default_country: Country code for top headlines.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        api_key: str,
        default_country: str = "in",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._default_country = default_country
        self._timeout = timeout
        self._transport = transport

    async def headlines(
        self,
        query: str | None = None,
        category: str | None = None,
        country: str | None = None,
        from_date: str | None = None,
    ) -> dict[str, Any]:
        """Top headlines, or an article search when a query is given."""
        category = category or "general"
        country = (country or self._default_country).lower()
        if query:
            params: dict[str, Any] = {
                "q": query,
                "sortBy": "publishedAt",
                "pageSize": 10,
                "language": "en",
            }
            if from_date:
                params["from"] = from_date
            data = await self._fetch(NEWSAPI_EVERYTHING_URL, params)
            label = query
        else:
            params = {"country": country, "category": category, "pageSize": 10}
            data = await self._fetch(NEWSAPI_HEADLINES_URL, params)
            label = f"Top {category} headlines from {country.upper()}"
        return self._result(data, label)

    async def search(
        self,
        query: str | None,
        from_date: str | None = None,
        to_date: str | None = None,
        sources: str | None = None,
        language: str = "en",
        sort_by: str = "publishedAt",
        page_size: int = 20,
    ) -> dict[str, Any]:
        """Article search with the full NewsAPI filter set.

        Raises:
            ValidationError: Query missing.
        """
        if not query:
            raise ValidationError("Query parameter is required.")
        params: dict[str, Any] = {
            "q": query,
            "sortBy": sort_by,
            "pageSize": page_size,
            "language": language,
        }
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date
        if sources:
            params["sources"] = sources
        data = await self._fetch(NEWSAPI_EVERYTHING_URL, params)
        return self._result(data, query)

    async def _fetch(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self._api_key:
            logger.error("News API key not configured")
            raise UpstreamUnavailableError("news")
        query = {**params, "apiKey": self._api_key}
        logger.debug("News request %s params: %s", url, redact_for_logging(query))
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.get(url, params=query)
                data = response.json()
            except httpx.RequestError as e:
                logger.warning("News request failed: %s", sanitize_error_message(str(e)))
                raise UpstreamUnavailableError("news") from e
            except ValueError as e:
                logger.warning("News API returned non-JSON (HTTP %d)", response.status_code)
                raise UpstreamUnavailableError("news") from e
        if not isinstance(data, dict) or data.get("status") != "ok":
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(
                "News API error (HTTP %d): %s",
                response.status_code, sanitize_error_message(message),
            )
            raise UpstreamUnavailableError("news")
        return data

    @staticmethod
    def _result(data: dict[str, Any], label: str) -> dict[str, Any]:
        return {
            "success": True,
            "articles": [_normalize_article(a) for a in data.get("articles") or []],
            "totalResults": data.get("totalResults", 0),
            "query": label,
            "timestamp": datetime.now(UTC).isoformat(timespec="milliseconds"),
        }


def is_public_ip(ip: str | None) -> bool:
    """True for globally routable addresses."""
    if not ip:
        return False
    try:
        return ipaddress.ip_address(ip.strip()).is_global
    except ValueError:
        return False


class TimezoneClient:
    """Current times for the primary zone, UTC, common zones and the caller.

    The caller's zone comes from an ip-api lookup of public client IPs.
    A failed lookup never fails the request; the response is marked
    ``fallback`` instead.

    Args:
        primary_timezone: IANA zone shown first.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        primary_timezone: str = "Asia/Kolkata",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._primary = primary_timezone
        self._timeout = timeout
        self._transport = transport

    def primary_time(self, now: datetime | None = None) -> dict[str, str]:
        """Time in the primary zone."""
        now = now or datetime.now(UTC)
        return {
            "time": format_zone_time(self._primary, now),
            "timezone": self._primary,
            "utcOffset": utc_offset(self._primary, now),
        }

    async def lookup(self, client_ip: str | None) -> dict[str, Any]:
        """Build the timezone payload for a client address."""
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "success": True,
            "primary": self.primary_time(now),
            "user": None,
            "timezones": {
                label: format_zone_time(zone, now) for label, zone in COMMON_TIMEZONES.items()
            },
            "utc": {"time": format_zone_time("UTC", now), "timezone": "UTC", "offset": "+00:00"},
            "fallback": False,
        }
        if not is_public_ip(client_ip):
            return payload

        try:
            geo = await self._geolocate(client_ip)
        except UpstreamUnavailableError:
            payload["fallback"] = True
            return payload

        zone = geo.get("timezone")
        if geo.get("status") != "success" or not zone:
            payload["fallback"] = True
            return payload
        if zone == self._primary:
            return payload
        try:
            payload["user"] = {
                "time": format_zone_time(zone, now),
                "timezone": zone,
                "location": {
                    "country": geo.get("country"),
                    "region": geo.get("regionName") or geo.get("region"),
                    "city": geo.get("city"),
                },
            }
        except ZoneInfoNotFoundError:
            logger.warning("Geo-IP returned unknown timezone %s", zone)
            payload["fallback"] = True
        return payload

    async def _geolocate(self, ip: str) -> dict[str, Any]:
        params = {"fields": "status,timezone,country,countryCode,regionName,city"}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.get(IP_API_URL.format(ip=ip), params=params)
                data = response.json()
            except (httpx.RequestError, ValueError) as e:
                logger.warning("Geo-IP lookup failed: %s", sanitize_error_message(str(e)))
                raise UpstreamUnavailableError("timezone") from e
        return data if isinstance(data, dict) else {}
