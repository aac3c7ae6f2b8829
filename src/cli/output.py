"""Rendering for CLI listings: a Rich table by default, JSON with --json."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console()


def _short_ts(value: str | None) -> str:
    return value[:19] if value else "—"


def format_conversation_table(conversations: list[dict[str, Any]], as_json: bool = False) -> str:
    """Render summaries from ConversationService.list_for_owner.

    Pinned rows are starred; IDs are cut to 12 characters in table mode.
    """
    if as_json:
        return json.dumps(conversations, indent=2)

    if not conversations:
        return "No conversations found."

    table = Table(title="Conversations", show_lines=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Pinned", justify="center")
    table.add_column("Messages", justify="right")
    table.add_column("Updated")

    for conv in conversations:
        table.add_row(
            conv["id"][:12],
            conv["title"] or "—",
            "[yellow]★[/yellow]" if conv["pinned"] else "",
            str(conv["message_count"]),
            _short_ts(conv["updated_at"]),
        )

    with console.capture() as capture:
        console.print(table)
    return capture.get()
