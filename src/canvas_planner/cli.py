"""CLI for canvas-planner: web, history, slots, events, export and import commands."""

import argparse
import asyncio
import json
import sys
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path

from .config import Config, load_config
from .errors import CanvasError
from .logging_config import setup_logging


def _storage(config: Config):
	"""Collaborators shared by the commands that open a session."""
	from .audit import EventTracker
	from .backup import LocalBackupRing
	from .persistence import AuditLog, CanvasDatabase, CanvasRepository, SlotRepository

	database = CanvasDatabase(config.db_path)
	return (
		database,
		CanvasRepository(database, default_title=config.default_title),
		EventTracker(
			AuditLog(config.audit_db_path, retention=config.event_retention),
			max_undelivered=config.event_retention,
		),
		LocalBackupRing(config.backup_dir, cap=config.backup_cap),
		SlotRepository(database, slot_count=config.slot_count),
	)


@asynccontextmanager
async def _session(config: Config, email: str, canvas_id: str | None):
	from .session import EditingSession

	database, canvases, tracker, backups, slots = _storage(config)
	await database.init()
	try:
		user_id = await database.ensure_user(email)
		session = EditingSession(canvases, user_id, tracker, backups, slots, debounce_ms=config.debounce_ms)
		await session.open(canvas_id)
		try:
			yield session
		finally:
			await session.close()
	finally:
		await database.close()


def cmd_web(args: argparse.Namespace) -> None:
	"""Run the HTTP API."""
	from .web import run_web_server

	run_web_server(host=args.host, port=args.port, config=args.config)


def cmd_history(args: argparse.Namespace) -> None:
	"""Show local backup versions of a canvas."""
	from .backup import LocalBackupRing
	from .visualizer import render_backup_history

	config = args.config
	render_backup_history(LocalBackupRing(config.backup_dir, cap=config.backup_cap), args.canvas_id)


def cmd_slots(args: argparse.Namespace) -> None:
	"""Show the save slots of a canvas."""
	from .visualizer import render_slots

	async def _list():
		async with _session(args.config, args.user, args.canvas_id) as session:
			return await session.slots.list_slots()

	render_slots(asyncio.run(_list()), slot_count=args.config.slot_count)


def cmd_events(args: argparse.Namespace) -> None:
	"""Show the audit trail of a canvas grouped by day."""
	from .audit import EventTracker
	from .persistence import AuditLog
	from .visualizer import render_event_groups

	config = args.config
	tracker = EventTracker(AuditLog(config.audit_db_path, retention=config.event_retention))

	if args.date_from or args.date_to:
		date_range = (
			date.fromisoformat(args.date_from) if args.date_from else None,
			date.fromisoformat(args.date_to) if args.date_to else None,
		)
	else:
		date_range = args.range

	groups = tracker.list_grouped(args.canvas_id, types=args.type, date_range=date_range, limit=args.limit)
	render_event_groups(groups)


def cmd_export(args: argparse.Namespace) -> None:
	"""Export a canvas as JSON or a Markdown outline."""

	async def _export():
		async with _session(args.config, args.user, args.canvas_id) as session:
			return session.export(args.format)

	result = asyncio.run(_export())
	text = json.dumps(result, indent=2, ensure_ascii=False) if isinstance(result, dict) else result

	if args.output:
		Path(args.output).write_text(text, encoding="utf-8")
		print(f"Exported canvas {args.canvas_id} to {args.output}")
	else:
		print(text)


def cmd_import(args: argparse.Namespace) -> None:
	"""Replace a canvas with an exported JSON file."""
	text = Path(args.file).read_text(encoding="utf-8")

	def _confirm(document) -> bool:
		if args.yes:
			return True
		print(f"Import '{document.title}': {len(document.nodes)} blocks, {len(document.edges)} connections.")
		response = input("Replace the current canvas? [y/N] ").strip().lower()
		return response in ("y", "yes")

	async def _import():
		async with _session(args.config, args.user, args.canvas_id) as session:
			applied = await session.import_json(text, _confirm)
			return applied, session.document.id

	applied, canvas_id = asyncio.run(_import())
	if applied:
		print(f"Imported into canvas {canvas_id}")
	else:
		print("Import cancelled.")


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="canvas-planner",
		description="Canvas planner persistence: autosave, backups, slots, sharing and audit trail",
	)
	parser.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING or ERROR")
	subparsers = parser.add_subparsers(dest="command")

	# web
	web_parser = subparsers.add_parser("web", help="Run the HTTP API")
	web_parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
	web_parser.add_argument("--port", type=int, default=8430, help="Server port (default: 8430)")
	web_parser.set_defaults(func=cmd_web)

	# history
	history_parser = subparsers.add_parser("history", help="Local backup versions of a canvas")
	history_parser.add_argument("canvas_id", help="Canvas ID")
	history_parser.set_defaults(func=cmd_history)

	# slots
	slots_parser = subparsers.add_parser("slots", help="Save slots of a canvas")
	slots_parser.add_argument("canvas_id", help="Canvas ID")
	slots_parser.add_argument("--user", required=True, help="Email of the acting user")
	slots_parser.set_defaults(func=cmd_slots)

	# events
	events_parser = subparsers.add_parser("events", help="Audit trail of a canvas")
	events_parser.add_argument("canvas_id", help="Canvas ID")
	events_parser.add_argument(
		"--range",
		choices=["all", "today", "yesterday", "last7days", "last30days"],
		default="all",
		help="Date preset (default: all)",
	)
	events_parser.add_argument("--from", dest="date_from", default=None, help="Start date, YYYY-MM-DD")
	events_parser.add_argument("--to", dest="date_to", default=None, help="End date, YYYY-MM-DD")
	events_parser.add_argument("--type", action="append", default=None, help="Event type (repeatable)")
	events_parser.add_argument("--limit", type=int, default=100, help="Max results")
	events_parser.set_defaults(func=cmd_events)

	# export
	export_parser = subparsers.add_parser("export", help="Export a canvas")
	export_parser.add_argument("canvas_id", help="Canvas ID")
	export_parser.add_argument("--user", required=True, help="Email of the acting user")
	export_parser.add_argument("--format", choices=["json", "outline"], default="json")
	export_parser.add_argument("--output", "-o", default=None, help="Write to a file instead of stdout")
	export_parser.set_defaults(func=cmd_export)

	# import
	import_parser = subparsers.add_parser("import", help="Import an exported JSON canvas")
	import_parser.add_argument("file", help="Exported JSON file")
	import_parser.add_argument("--user", required=True, help="Email of the acting user")
	import_parser.add_argument("--canvas-id", default=None, help="Target canvas (default: most recent)")
	import_parser.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")
	import_parser.set_defaults(func=cmd_import)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.config = load_config()
	setup_logging(level=args.log_level, log_dir=args.config.log_dir)

	try:
		args.func(args)
	except CanvasError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	except ValueError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(2)
