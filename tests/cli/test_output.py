"""Tests for CLI output formatters."""

import json

from src.cli.output import format_conversation_table

SAMPLE = [
    {
        "id": "3f2a9c1e-0000-4000-8000-000000000001",
        "title": "Trip planning",
        "snippet": "Day one: Alfama",
        "pinned": True,
        "message_count": 4,
        "created_at": "2026-10-01T09:00:00.000000+00:00",
        "updated_at": "2026-10-02T10:30:00.000000+00:00",
        "last_message_at": "2026-10-02T10:30:00.000000+00:00",
    },
]


class TestFormatConversationTable:
    """Tests for format_conversation_table."""

    def test_table_output(self):
        output = format_conversation_table(SAMPLE)
        assert "Conversations" in output
        assert "Trip planning" in output
        assert "3f2a9c1e-000" in output
        assert "2026-10-02T10:30:00" in output

    def test_json_output(self):
        output = format_conversation_table(SAMPLE, as_json=True)
        assert json.loads(output) == SAMPLE

    def test_empty(self):
        assert format_conversation_table([]) == "No conversations found."
