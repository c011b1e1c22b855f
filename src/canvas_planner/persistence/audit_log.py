"""
Audit log storage.

Append-only SQLite table of semantic canvas mutations. Writes are synchronous
so an event is durable before the mutating call returns, independent of the
autosave path.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Optional

from ..errors import PersistenceError
from .models import AuditEvent, EventType

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = 500
MAX_LIST_LIMIT = 500


class AuditLog:
	"""SQLite-backed storage for audit events."""

	def __init__(self, db_path: str | Path, retention: int = DEFAULT_RETENTION):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self.retention = retention
		self._ensure_table()

	def _ensure_table(self) -> None:
		"""Create the canvas_events table if it doesn't exist."""
		with sqlite3.connect(str(self.db_path)) as conn:
			conn.execute("""
				CREATE TABLE IF NOT EXISTS canvas_events (
					seq INTEGER PRIMARY KEY AUTOINCREMENT,
					id TEXT UNIQUE NOT NULL,
					canvas_id TEXT NOT NULL,
					user_id TEXT NOT NULL,
					event_type TEXT NOT NULL,
					target_id TEXT NOT NULL,
					event_data TEXT NOT NULL DEFAULT '{}',
					created_at TEXT NOT NULL
				)
			""")
			conn.execute("""
				CREATE INDEX IF NOT EXISTS idx_canvas_events_canvas ON canvas_events(canvas_id, created_at)
			""")
			conn.execute("""
				CREATE INDEX IF NOT EXISTS idx_canvas_events_type ON canvas_events(event_type, created_at)
			""")

	def _connect(self) -> sqlite3.Connection:
		conn = sqlite3.connect(str(self.db_path))
		conn.row_factory = sqlite3.Row
		return conn

	def append(self, event: AuditEvent) -> None:
		"""Insert one event and prune the canvas down to the retention limit."""
		try:
			with self._connect() as conn:
				conn.execute(
					"""
					INSERT INTO canvas_events
					(id, canvas_id, user_id, event_type, target_id, event_data, created_at)
					VALUES (?, ?, ?, ?, ?, ?, ?)
					""",
					(
						event.id,
						event.canvas_id,
						event.user_id,
						event.event_type.value,
						event.target_id,
						json.dumps(event.event_data, default=str),
						event.created_at,
					),
				)
				if self.retention > 0:
					conn.execute(
						"""
						DELETE FROM canvas_events
						WHERE canvas_id = ? AND seq NOT IN (
							SELECT seq FROM canvas_events WHERE canvas_id = ?
							ORDER BY created_at DESC, seq DESC LIMIT ?
						)
						""",
						(event.canvas_id, event.canvas_id, self.retention),
					)
		except sqlite3.Error as e:
			raise PersistenceError(f"Failed to append audit event: {e}") from e

	def list(
		self,
		canvas_id: str,
		types: Optional[Iterable[EventType | str]] = None,
		since: Optional[str] = None,
		until: Optional[str] = None,
		limit: int = 100,
	) -> list[AuditEvent]:
		"""
		Query events for a canvas, newest first.

		Args:
			canvas_id: Canvas to query
			types: Only these event types (None = all)
			since: Inclusive lower bound, UTC ISO timestamp
			until: Exclusive upper bound, UTC ISO timestamp
			limit: Maximum rows, clamped to 500
		"""
		conditions = ["canvas_id = ?"]
		params: list[Any] = [canvas_id]

		if types is not None:
			values = [EventType(t).value for t in types]
			if not values:
				return []
			conditions.append(f"event_type IN ({','.join('?' * len(values))})")
			params.extend(values)
		if since:
			conditions.append("created_at >= ?")
			params.append(since)
		if until:
			conditions.append("created_at < ?")
			params.append(until)

		limit = max(1, min(int(limit), MAX_LIST_LIMIT))
		where = " AND ".join(conditions)

		try:
			with self._connect() as conn:
				cursor = conn.execute(
					f"SELECT * FROM canvas_events WHERE {where} ORDER BY created_at DESC, seq DESC LIMIT ?",
					[*params, limit],
				)
				rows = cursor.fetchall()
		except sqlite3.Error as e:
			raise PersistenceError(f"Failed to read audit events: {e}") from e

		return [
			AuditEvent(
				id=row["id"],
				canvas_id=row["canvas_id"],
				user_id=row["user_id"],
				event_type=EventType(row["event_type"]),
				target_id=row["target_id"],
				event_data=json.loads(row["event_data"]),
				created_at=row["created_at"],
			)
			for row in rows
		]

	def count(self, canvas_id: str) -> int:
		with self._connect() as conn:
			row = conn.execute(
				"SELECT COUNT(*) AS n FROM canvas_events WHERE canvas_id = ?", (canvas_id,)
			).fetchone()
		return row["n"]
