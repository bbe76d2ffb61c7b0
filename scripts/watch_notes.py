#!/usr/bin/env python3
"""Follow the live note list and print each change as it arrives."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Mapping
from typing import Any

from rich.console import Console
from rich.table import Table

from notex.client import LiveNotes, NotesClient

console = Console()

_STYLES = {"created": "green", "updated": "yellow", "deleted": "red"}


def _render(notes: list[dict[str, Any]]) -> Table:
    table = Table(title=f"Notes ({len(notes)})")
    table.add_column("id", justify="right")
    table.add_column("name")
    table.add_column("color")
    table.add_column("updated_at")
    for note in notes:
        table.add_row(str(note.get("id")), note.get("name", ""), note.get("bg_color", ""), str(note.get("updated_at", "")))
    return table


async def _run(base_url: str | None, show_table: bool) -> None:
    async with NotesClient(base_url) as client:
        live = LiveNotes(client)
        await live.load()
        console.print(_render(live.notes))

        def on_change(change: Mapping[str, Any]) -> None:
            kind = change.get("type", "?")
            note = change.get("note") or {}
            style = _STYLES.get(kind, "white")
            console.print(f"[{style}]{kind}[/{style}] #{note.get('id')} {note.get('name', '')}")
            if show_table:
                console.print(_render(live.notes))

        await live.follow(on_change=on_change)


def main() -> None:
    parser = argparse.ArgumentParser(description="Watch note changes in real time")
    parser.add_argument("--api-base", default=None, help="API base URL (defaults to NOTEX_API_BASE)")
    parser.add_argument("--table", action="store_true", help="Reprint the full list after every change")
    args = parser.parse_args()

    try:
        asyncio.run(_run(args.api_base, args.table))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
