"""Slot Repository - server-side numbered checkpoints per canvas."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from ..errors import NotFoundError, ValidationError
from ..graph.models import Edge, Node, utc_now
from .canvases import serialize_graph
from .database import CanvasDatabase
from .models import SaveSlot

logger = logging.getLogger(__name__)

DEFAULT_SLOT_COUNT = 5


class SlotRepository:
	"""Create, overwrite, read and delete save slots 1..slot_count."""

	def __init__(self, database: CanvasDatabase, slot_count: int = DEFAULT_SLOT_COUNT):
		self.database = database
		self.slot_count = slot_count

	def _check_slot_number(self, slot_number: int) -> None:
		if not isinstance(slot_number, int) or not 1 <= slot_number <= self.slot_count:
			raise ValidationError(f"slotNumber must be between 1 and {self.slot_count}")

	def _from_row(self, row) -> SaveSlot:
		return SaveSlot(
			canvas_id=row["canvas_id"],
			slot_number=row["slot_number"],
			slot_name=row["slot_name"],
			nodes=[Node.model_validate(n) for n in json.loads(row["nodes"])],
			edges=[Edge.model_validate(e) for e in json.loads(row["edges"])],
			saved_at=row["saved_at"],
		)

	async def save(
		self,
		canvas_id: str,
		slot_number: int,
		nodes: Sequence[Any],
		edges: Sequence[Any],
		slot_name: Optional[str] = None,
	) -> SaveSlot:
		"""Create or overwrite a slot. A missing name keeps the previous one."""
		self._check_slot_number(slot_number)
		nodes_json, edges_json = serialize_graph(nodes, edges)

		exists = await self.database.fetchone("SELECT 1 FROM canvases WHERE id = ?", (canvas_id,))
		if not exists:
			raise NotFoundError(f"Canvas not found: {canvas_id}")

		await self.database.execute(
			"""
			INSERT INTO canvas_save_slots (canvas_id, slot_number, slot_name, nodes, edges, saved_at)
			VALUES (?, ?, ?, ?, ?, ?)
			ON CONFLICT(canvas_id, slot_number) DO UPDATE SET
				nodes = excluded.nodes,
				edges = excluded.edges,
				slot_name = COALESCE(excluded.slot_name, canvas_save_slots.slot_name),
				saved_at = excluded.saved_at
			""",
			(canvas_id, slot_number, slot_name, nodes_json, edges_json, utc_now()),
		)
		logger.info(f"Saved canvas {canvas_id} to slot {slot_number}")
		return await self.get(canvas_id, slot_number)

	async def get(self, canvas_id: str, slot_number: int) -> SaveSlot:
		self._check_slot_number(slot_number)
		row = await self.database.fetchone(
			"SELECT * FROM canvas_save_slots WHERE canvas_id = ? AND slot_number = ?",
			(canvas_id, slot_number),
		)
		if not row:
			raise NotFoundError(f"Slot {slot_number} is empty")
		return self._from_row(row)

	async def list(self, canvas_id: str) -> list[SaveSlot]:
		"""Occupied slots in slot order."""
		rows = await self.database.fetchall(
			"SELECT * FROM canvas_save_slots WHERE canvas_id = ? ORDER BY slot_number ASC",
			(canvas_id,),
		)
		return [self._from_row(row) for row in rows]

	async def delete(self, canvas_id: str, slot_number: int) -> None:
		self._check_slot_number(slot_number)
		removed = await self.database.execute(
			"DELETE FROM canvas_save_slots WHERE canvas_id = ? AND slot_number = ?",
			(canvas_id, slot_number),
		)
		if not removed:
			raise NotFoundError(f"Slot {slot_number} is empty")
		logger.info(f"Deleted slot {slot_number} of canvas {canvas_id}")
