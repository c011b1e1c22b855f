"""Rich views for local backup history and save slots."""

from typing import Optional

from rich.console import Console
from rich.table import Table

from ..backup import LocalBackupRing
from ..persistence.models import SaveSlot
from .utils import format_timestamp


def render_backup_history(
	ring: LocalBackupRing,
	canvas_id: str,
	console: Optional[Console] = None,
) -> None:
	"""Render a canvas's backup versions, newest first."""
	console = console or Console()
	versions = ring.list_versions(canvas_id)

	if not versions:
		console.print(f"[dim]No backups for canvas '{canvas_id}'.[/dim]")
		return

	table = Table(title=f"Backups: {canvas_id}")
	table.add_column("Version", justify="right", style="cyan")
	table.add_column("Title")
	table.add_column("Blocks", justify="right")
	table.add_column("Connections", justify="right")
	table.add_column("Saved")

	for backup in versions:
		table.add_row(
			f"v{backup.version}",
			backup.title or "",
			str(len(backup.nodes)),
			str(len(backup.edges)),
			format_timestamp(backup.timestamp),
		)

	console.print(table)

	info = ring.storage_info(canvas_id)
	console.print(f"[dim]{info['backup_count']} of {ring.cap} versions kept, {info['total_size_kb']} KB[/dim]")


def render_slots(slots: list[SaveSlot], slot_count: int = 5, console: Optional[Console] = None) -> None:
	"""Render every slot position, marking empty ones."""
	console = console or Console()
	by_number = {slot.slot_number: slot for slot in slots}

	table = Table(title="Save Slots")
	table.add_column("Slot", justify="right", style="cyan")
	table.add_column("Name")
	table.add_column("Blocks", justify="right")
	table.add_column("Saved")

	for number in range(1, slot_count + 1):
		slot = by_number.get(number)
		if slot is None:
			table.add_row(str(number), "[dim]empty[/dim]", "", "")
			continue
		table.add_row(
			str(number),
			slot.slot_name or f"Slot {number}",
			str(len(slot.nodes)),
			format_timestamp(slot.saved_at),
		)

	console.print(table)
