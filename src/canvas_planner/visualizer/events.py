"""Rich view of the audit trail grouped by day."""

from typing import Optional

from rich.console import Console
from rich.table import Table

from ..audit import DayGroup
from .utils import EVENT_STYLES, describe_event, format_clock, truncate


def render_event_groups(groups: list[DayGroup], console: Optional[Console] = None) -> None:
	"""Render one table per day, newest day first."""
	console = console or Console()

	if not groups:
		console.print("[dim]No events found.[/dim]")
		return

	for group in groups:
		table = Table(title=f"{group.label} ({len(group.events)})", title_justify="left")
		table.add_column("Time", style="dim")
		table.add_column("Event")
		table.add_column("Target", style="cyan")
		table.add_column("Details")

		for event in group.events:
			style = EVENT_STYLES.get(event.event_type, "white")
			table.add_row(
				format_clock(event.created_at),
				f"[{style}]{event.event_type.value}[/{style}]",
				event.target_id,
				truncate(describe_event(event.event_type, event.event_data)),
			)

		console.print(table)
