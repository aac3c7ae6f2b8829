"""Tests for regex intent routing."""

import pytest

from src.services.prompt_router import (
    BASE_SYSTEM_PROMPT,
    Intent,
    build_system_prompt,
    direct_time_response,
    extract_city,
    news_context,
    route,
    weather_context,
)


class TestRoute:
    """Tests for route()."""

    @pytest.mark.parametrize("prompt", [
        "What time is it?",
        "what's the time",
        "Current date please",
        "What day is today?",
    ])
    def test_bare_time_question_is_direct(self, prompt):
        decision = route(prompt)
        assert decision.intents == frozenset({Intent.time})
        assert decision.direct_time is True

    def test_long_time_question_goes_to_llm(self):
        decision = route("what time is it in Tokyo if I want to call my friend before lunch")
        assert decision.wants(Intent.time)
        assert decision.direct_time is False

    def test_news(self):
        assert route("Any breaking news today?").intents == frozenset({Intent.news})

    def test_weather_with_city(self):
        decision = route("What's the weather in New Delhi today?")
        assert decision.wants(Intent.weather)
        assert decision.city == "New Delhi"

    def test_mixed_intents_are_not_direct(self):
        decision = route("What time is it and what's the news?")
        assert decision.intents == frozenset({Intent.time, Intent.news})
        assert decision.direct_time is False

    def test_plain_prompt(self):
        decision = route("Write a haiku about autumn")
        assert decision.intents == frozenset()
        assert decision.city is None


class TestExtractCity:
    """Tests for extract_city."""

    def test_trailing_city(self):
        assert extract_city("forecast for London") == "London"

    def test_no_city(self):
        assert extract_city("is it raining") is None


class TestPromptBuilding:
    """Tests for system prompt and context blocks."""

    def test_no_context(self):
        assert build_system_prompt([]) == BASE_SYSTEM_PROMPT

    def test_context_appended(self):
        prompt = build_system_prompt(["Current time: noon.", "  "])
        assert prompt.startswith(BASE_SYSTEM_PROMPT)
        assert prompt.endswith("Live context:\nCurrent time: noon.")

    def test_weather_context(self):
        text = weather_context({"city": "Paris", "temp": 18.5, "desc": "light rain"})
        assert "Paris" in text and "18.5" in text and "light rain" in text

    def test_news_context_limits_articles(self):
        news = {
            "query": "Top general headlines from IN",
            "articles": [{"title": f"Story {n}", "source": "Wire"} for n in range(10)],
        }
        lines = news_context(news, limit=3).splitlines()
        assert len(lines) == 4
        assert lines[1] == "1. Story 0 (Wire)"

    def test_direct_time_response(self):
        text = direct_time_response({
            "time": "Thursday, 15 January 2026, 05:30:00 PM IST",
            "timezone": "Asia/Kolkata",
            "utcOffset": "+05:30",
        })
        assert text == (
            "The current time is Thursday, 15 January 2026, 05:30:00 PM IST "
            "(Asia/Kolkata, UTC+05:30)."
        )
