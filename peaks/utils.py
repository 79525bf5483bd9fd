"""Shared utility functions for PEAKS.

Provides JSON I/O, name sanitising, and Rich-based console reporting used by
the service for its operational messages.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str, default: str = "project") -> str:
    """Convert an arbitrary project name to a safe file/directory name.

    * Lowercases the input.
    * Replaces spaces and non-alphanumeric characters (except hyphens,
      underscores and dots) with hyphens.
    * Collapses consecutive hyphens and strips leading/trailing hyphens/dots.

    Falls back to *default* when nothing usable is left.

    Examples::

        sanitize_name("My React App") -> "my-react-app"
        sanitize_name("  ../../etc  ") -> "etc"
    """
    result = re.sub(r"[^a-zA-Z0-9._-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    result = re.sub(r"\.{2,}", ".", result)
    result = result.strip("-.")
    return result or default


def truncate(text: str, limit: int = 200) -> str:
    """Shorten *text* for console output, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + "..."


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


def load_records(path: str | Path) -> list[dict[str, Any]]:
    """Read a JSON array of objects written by :func:`save_records`.

    A missing file is an empty collection. Anything other than an array of
    objects raises ``ValueError`` (``json.JSONDecodeError`` for broken JSON).
    """
    file_path = Path(path)
    if not file_path.exists():
        return []
    data = json.loads(file_path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{file_path} does not hold a JSON array")
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"{file_path}: entry {index} is not an object")
    return data


async def save_records(records: list[dict[str, Any]], path: str | Path) -> None:
    """Write *records* as an indented JSON array, replacing *path* atomically.

    Missing parent folders are created. The document goes to ``<path>.tmp``
    first and is renamed over the target from a worker thread.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    document = json.dumps(records, indent=2, ensure_ascii=False)

    def _write() -> None:
        staging = target.with_name(target.name + ".tmp")
        staging.write_text(document, encoding="utf-8")
        staging.replace(target)

    await asyncio.get_running_loop().run_in_executor(None, _write)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
