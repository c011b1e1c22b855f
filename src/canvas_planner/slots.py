"""Save Slot Manager - user-driven numbered checkpoints of the working canvas."""

import logging
from typing import Optional, Sequence

from .autosave import AutosaveScheduler
from .errors import NotFoundError
from .graph.editor import CanvasEditor
from .graph.models import Edge, Node
from .permissions import Operation, require
from .persistence.models import SaveSlot
from .persistence.slots import SlotRepository

logger = logging.getLogger(__name__)


class SaveSlotManager:
	"""
	Saves and restores named slots for the canvas an editor is bound to.

	Slots are independent of the local backup ring: loading a slot replaces
	the working document and persists it like any other mutation, which in
	turn appends a backup version.
	"""

	def __init__(self, repository: SlotRepository, editor: CanvasEditor, scheduler: AutosaveScheduler):
		self.repository = repository
		self.editor = editor
		self.scheduler = scheduler

	def _canvas_id(self) -> str:
		canvas_id = self.editor.document.id or self.scheduler.canvas_id
		if not canvas_id:
			raise NotFoundError("Canvas has not been saved yet")
		return canvas_id

	async def save_to_slot(
		self,
		slot_number: int,
		nodes: Sequence[Node],
		edges: Sequence[Edge],
		slot_name: Optional[str] = None,
	) -> SaveSlot:
		"""Create or overwrite a slot with the given graph."""
		require(self.editor.role, Operation.MUTATE)
		slot = await self.repository.save(self._canvas_id(), slot_number, nodes, edges, slot_name)
		logger.info(f"Slot {slot_number} saved for canvas {slot.canvas_id}")
		return slot

	async def load_slot(self, slot_number: int) -> SaveSlot:
		"""Replace the working document with a slot's graph and save it at once."""
		require(self.editor.role, Operation.MUTATE)
		slot = await self.repository.get(self._canvas_id(), slot_number)
		document = self.editor.replace_document(slot.nodes, slot.edges)
		await self.scheduler.save_now(document.nodes, document.edges, document.title)
		logger.info(f"Loaded slot {slot_number} into canvas {slot.canvas_id}")
		return slot

	async def list_slots(self) -> list[SaveSlot]:
		require(self.editor.role, Operation.READ)
		return await self.repository.list(self._canvas_id())

	async def delete_slot(self, slot_number: int) -> None:
		require(self.editor.role, Operation.MUTATE)
		await self.repository.delete(self._canvas_id(), slot_number)
