"""
Local Backup Ring - bounded version history kept beside the client.

One JSON file per canvas holds its most recent snapshots. A version is
appended after every successful remote save, so the history survives even
when the remote store later loses or overwrites the canvas. Version numbers
only ever grow; the oldest entries fall off once the cap is reached.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, PersistenceError, ValidationError
from .graph.models import Edge, Node, WireModel, dump_edges, dump_nodes

logger = logging.getLogger(__name__)

DEFAULT_CAP = 50
FILE_PREFIX = "canvas_backup_"

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]+$")


class BackupVersion(WireModel):
	"""One immutable snapshot in a canvas's local history."""
	model_config = ConfigDict(frozen=True)

	canvas_id: str
	version: int = Field(ge=1)
	timestamp: str
	nodes: list[Node] = Field(default_factory=list)
	edges: list[Edge] = Field(default_factory=list)
	title: Optional[str] = None


class LocalBackupRing:
	"""
	File-backed ring of backup versions, capped per canvas.

	Usage:
		ring = LocalBackupRing(config.backup_dir, cap=50)
		ring.record(canvas_id, doc.nodes, doc.edges, doc.title)
		for version in ring.list_versions(canvas_id):
			print(version.version, version.timestamp)
	"""

	def __init__(self, backup_dir: str | Path, cap: int = DEFAULT_CAP):
		if cap < 1:
			raise ValueError("Backup cap must be at least 1")
		self.backup_dir = Path(backup_dir)
		self.cap = cap

	def _path(self, canvas_id: str) -> Path:
		if not canvas_id or not _SAFE_ID.match(canvas_id):
			raise ValidationError(f"Invalid canvas id for backup: {canvas_id!r}")
		return self.backup_dir / f"{FILE_PREFIX}{canvas_id}.json"

	def _read(self, canvas_id: str) -> list[BackupVersion]:
		"""Stored versions, oldest first. A corrupt file reads as empty."""
		path = self._path(canvas_id)
		if not path.exists():
			return []
		try:
			raw = json.loads(path.read_text(encoding="utf-8"))
			return [BackupVersion.model_validate(item) for item in raw]
		except (OSError, json.JSONDecodeError, TypeError, PydanticValidationError) as e:
			logger.warning(f"Unreadable backup file {path}: {e}")
			return []

	def _write(self, canvas_id: str, versions: list[BackupVersion]) -> None:
		path = self._path(canvas_id)
		tmp = path.with_suffix(".json.tmp")
		try:
			self.backup_dir.mkdir(parents=True, exist_ok=True)
			tmp.write_text(json.dumps([v.to_wire() for v in versions]), encoding="utf-8")
			os.replace(tmp, path)
		except OSError as e:
			raise PersistenceError(f"Failed to write backups for canvas {canvas_id}: {e}") from e

	def record(
		self,
		canvas_id: str,
		nodes: Sequence[Node],
		edges: Sequence[Edge],
		title: Optional[str] = None,
		timestamp: Optional[datetime] = None,
	) -> Optional[BackupVersion]:
		"""
		Append a version after a successful save.

		Returns:
			The new version, or None when the state matches the latest version
		"""
		versions = self._read(canvas_id)
		wire_nodes = dump_nodes(list(nodes))
		wire_edges = dump_edges(list(edges))

		if versions:
			latest = versions[-1]
			if dump_nodes(latest.nodes) == wire_nodes and dump_edges(latest.edges) == wire_edges:
				logger.debug(f"No changes since backup v{latest.version} of canvas {canvas_id}")
				return None

		next_version = versions[-1].version + 1 if versions else 1
		backup = BackupVersion(
			canvas_id=canvas_id,
			version=next_version,
			timestamp=(timestamp or datetime.now(timezone.utc)).isoformat(),
			nodes=wire_nodes,
			edges=wire_edges,
			title=title,
		)
		versions.append(backup)
		self._write(canvas_id, versions[-self.cap:])
		logger.info(f"Saved backup v{next_version} for canvas {canvas_id}")
		return backup

	def list_versions(self, canvas_id: str) -> list[BackupVersion]:
		"""All retained versions, newest first."""
		return list(reversed(self._read(canvas_id)))

	def get(self, canvas_id: str, version: int) -> BackupVersion:
		for backup in self._read(canvas_id):
			if backup.version == version:
				return backup
		raise NotFoundError(f"Backup v{version} not found for canvas {canvas_id}")

	def latest(self, canvas_id: str) -> Optional[BackupVersion]:
		versions = self._read(canvas_id)
		return versions[-1] if versions else None

	def clear(self, canvas_id: str) -> None:
		path = self._path(canvas_id)
		try:
			path.unlink(missing_ok=True)
		except OSError as e:
			raise PersistenceError(f"Failed to clear backups for canvas {canvas_id}: {e}") from e
		logger.info(f"Cleared backups for canvas {canvas_id}")

	def storage_info(self, canvas_id: str) -> dict[str, Any]:
		"""Count, on-disk size and time span of a canvas's backups."""
		versions = self._read(canvas_id)
		if not versions:
			return {"backup_count": 0, "total_size_kb": 0}

		path = self._path(canvas_id)
		return {
			"backup_count": len(versions),
			"total_size_kb": round(path.stat().st_size / 1024),
			"oldest_backup": versions[0].timestamp,
			"newest_backup": versions[-1].timestamp,
		}
