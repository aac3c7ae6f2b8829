"""Regex intent routing for chat prompts.

Classifies a prompt into time / news / weather intents so the chat
service knows which live context to gather. A bare "what time is it"
question is answered directly without calling the LLM.
"""

import re
from dataclasses import dataclass, field
from enum import Enum


class Intent(str, Enum):
    """Live-context intents a prompt can carry."""

    time = "time"
    news = "news"
    weather = "weather"


TIME_PATTERN = re.compile(
    r"\b(?:what(?:'s| is)?\s+the\s+(?:current\s+)?(?:time|date)"
    r"|what\s+time\s+is\s+it"
    r"|current\s+(?:time|date)"
    r"|time\s+(?:now|right\s+now)"
    r"|today'?s\s+date"
    r"|what\s+day\s+is\s+(?:it|today))\b",
    re.IGNORECASE,
)

NEWS_PATTERN = re.compile(
    r"\b(?:news|headlines?|breaking|latest\s+updates?|current\s+events)\b",
    re.IGNORECASE,
)

WEATHER_PATTERN = re.compile(
    r"\b(?:weather|temperature|forecast|humid(?:ity)?|rain(?:ing|y)?|sunny|snow(?:ing)?)\b",
    re.IGNORECASE,
)

# "weather in New Delhi today?" -> "New Delhi"
CITY_PATTERN = re.compile(
    r"\b(?:in|at|for)\s+([A-Za-z][A-Za-z .'-]{0,48}?)"
    r"(?:\s+(?:today|tonight|tomorrow|now|right\s+now|this\s+week))?\s*[?.!]*\s*$",
    re.IGNORECASE,
)

# Time questions at most this many words are answered directly.
DIRECT_TIME_MAX_WORDS = 8


@dataclass(frozen=True)
class RouteDecision:
    """Outcome of classifying a prompt."""

    intents: frozenset[Intent] = field(default_factory=frozenset)
    city: str | None = None
    direct_time: bool = False

    def wants(self, intent: Intent) -> bool:
        return intent in self.intents


def extract_city(prompt: str) -> str | None:
    """Pull a trailing 'in <city>' phrase from a prompt."""
    match = CITY_PATTERN.search(prompt.strip())
    if not match:
        return None
    city = match.group(1).strip(" .'-")
    return city or None


def route(prompt: str) -> RouteDecision:
    """Classify a prompt into intents."""
    intents = set()
    if TIME_PATTERN.search(prompt):
        intents.add(Intent.time)
    if NEWS_PATTERN.search(prompt):
        intents.add(Intent.news)
    city = None
    if WEATHER_PATTERN.search(prompt):
        intents.add(Intent.weather)
        city = extract_city(prompt)

    direct_time = intents == {Intent.time} and len(prompt.split()) <= DIRECT_TIME_MAX_WORDS
    return RouteDecision(intents=frozenset(intents), city=city, direct_time=direct_time)


def direct_time_response(primary: dict[str, str]) -> str:
    """Answer a bare time question from the primary-zone payload."""
    return (
        f"The current time is {primary['time']} "
        f"({primary['timezone']}, UTC{primary['utcOffset']})."
    )


BASE_SYSTEM_PROMPT = (
    "You are a helpful, concise assistant. Answer clearly and accurately. "
    "When live context is provided below, prefer it over your own knowledge "
    "and say when information may be out of date."
)


def build_system_prompt(context_blocks: list[str]) -> str:
    """Combine the base instructions with any gathered live context."""
    if not context_blocks:
        return BASE_SYSTEM_PROMPT
    context = "\n\n".join(block.strip() for block in context_blocks if block.strip())
    return f"{BASE_SYSTEM_PROMPT}\n\nLive context:\n{context}"


def weather_context(weather: dict) -> str:
    return (
        f"Current weather in {weather['city']}: {weather['temp']}°C, {weather['desc']}."
    )


def news_context(news: dict, limit: int = 5) -> str:
    lines = [f"Latest news ({news.get('query')}):"]
    for index, article in enumerate(news.get("articles", [])[:limit], start=1):
        lines.append(f"{index}. {article.get('title')} ({article.get('source')})")
    return "\n".join(lines)


def time_context(primary: dict[str, str]) -> str:
    return f"Current time: {primary['time']} ({primary['timezone']})."
