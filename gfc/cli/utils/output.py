"""Shared output handlers for CLI commands."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from gfc.core.constants import FormattingConstants, TableColumnWidths
from gfc.models.record import CacheRecord

console = Console()


def handle_json_output(
    data: Any,
    output_path: Path | None,
    transformer: Callable[[Any], Any] | None = None,
) -> None:
    """Handle JSON format output.

    Args:
        data: Data to output (can be any type)
        output_path: Optional file path to save output
        transformer: Optional function to transform data before serialization
    """
    output_data = transformer(data) if transformer else data
    json_content = json.dumps(output_data, indent=FormattingConstants.JSON_INDENT, default=str)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_content, encoding="utf-8")
        console.print(f"[bold green]✓ Saved to:[/bold green] {output_path}")
    else:
        print(json_content)


def records_to_json(records: list[CacheRecord]) -> list[dict[str, Any]]:
    """Serialize records without their raw payloads."""
    return [record.model_dump(mode="json", exclude={"raw_data"}) for record in records]


def build_records_table(records: list[CacheRecord], title: str) -> Table:
    """Render cached forms as a rich table."""
    table = Table(title=title, show_lines=False, expand=True)
    table.add_column("ID", width=TableColumnWidths.ID, justify="right")
    table.add_column("Title", width=TableColumnWidths.TITLE)
    table.add_column("Entries", width=TableColumnWidths.ENTRIES, justify="right")
    table.add_column("Status", width=TableColumnWidths.STATUS)
    table.add_column("Last synced", width=TableColumnWidths.SYNCED)

    status_styles = {"active": "green", "inactive": "yellow", "trash": "red"}
    for record in records:
        style = status_styles[record.status_label]
        table.add_row(
            str(record.id),
            record.title or "[dim]<untitled>[/dim]",
            str(record.entry_count),
            f"[{style}]{record.status_label}[/{style}]",
            record.last_synced.strftime("%Y-%m-%d %H:%M:%S"),
        )
    return table
