"""Canned-response httpx transport for the utility API clients."""

import httpx


class FakeTransport(httpx.AsyncBaseTransport):
    """Mock transport that captures requests and returns canned responses.

    Args:
        responses: Maps URL path substrings to (status_code, body) tuples,
            or to an exception instance that should be raised instead.
    """

    def __init__(self, responses: dict[str, tuple[int, object] | Exception]):
        self._responses = responses
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request):
        """Record the request and return a matching canned response."""
        self.requests.append(request)
        path = request.url.path
        for pattern, outcome in self._responses.items():
            if pattern in path:
                if isinstance(outcome, Exception):
                    raise outcome
                status, body = outcome
                return httpx.Response(status, json=body, request=request)
        return httpx.Response(404, json={"error": "not found"}, request=request)

    def params(self, index: int = -1) -> dict[str, str]:
        """Query parameters of a captured request."""
        return dict(self.requests[index].url.params)


WEATHER_OK = {
    "name": "Paris",
    "main": {"temp": 18.5},
    "weather": [{"description": "light rain", "icon": "10d"}],
}

NEWS_OK = {
    "status": "ok",
    "totalResults": 2,
    "articles": [
        {
            "title": "Markets rally",
            "description": "Stocks up.",
            "url": "https://example.com/a",
            "source": {"name": "Example Wire"},
            "publishedAt": "2026-10-01T09:00:00Z",
            "urlToImage": None,
        },
        {
            "title": "Rain expected",
            "description": None,
            "url": "https://example.com/b",
            "source": {},
            "publishedAt": "2026-10-01T08:00:00Z",
        },
    ],
}

GEO_OK = {
    "status": "success",
    "timezone": "Europe/Berlin",
    "country": "Germany",
    "countryCode": "DE",
    "regionName": "Berlin",
    "city": "Berlin",
}
