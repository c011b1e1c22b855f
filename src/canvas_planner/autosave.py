"""
Autosave Scheduler - debounced, serialized saves of the working document.

Rapid edits are coalesced into one save after a quiet period. At most one
save is in flight at a time; a save requested while another is running waits
for it and then sends the newest state available, never an older one.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from .errors import PersistenceError
from .graph.models import Edge, Node
from .persistence.canvases import CanvasBackend
from .persistence.models import UpsertResult

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 3000


class SaveStatus(str, Enum):
	IDLE = "idle"
	SAVING = "saving"
	SAVED = "saved"
	ERROR = "error"


TERMINAL_STATUSES = (SaveStatus.SAVED, SaveStatus.ERROR)


@dataclass(frozen=True)
class Snapshot:
	"""State captured at the moment a save was requested."""
	nodes: list[Node]
	edges: list[Edge]
	title: Optional[str] = None
	generation: int = 0


class AutosaveScheduler:
	"""
	Owns the debounce timer and the in-flight guard for one editing session.

	Lifecycle is explicit: create it when a session starts, call
	``destroy()`` when the session ends. After destroy, scheduling raises.

	Usage:
		scheduler = AutosaveScheduler(backend, canvas_id, debounce_ms=3000)
		scheduler.schedule_save(doc.nodes, doc.edges, doc.title)
		await scheduler.save_now(doc.nodes, doc.edges)
		scheduler.destroy()
	"""

	def __init__(
		self,
		backend: CanvasBackend,
		canvas_id: Optional[str] = None,
		debounce_ms: int = DEFAULT_DEBOUNCE_MS,
		on_status_change: Optional[Callable[[SaveStatus], Any]] = None,
		on_error: Optional[Callable[[PersistenceError], Any]] = None,
		on_saved: Optional[Callable[[str, Snapshot], Any]] = None,
	):
		self.backend = backend
		self.debounce_ms = debounce_ms
		self.on_status_change = on_status_change
		self.on_error = on_error
		self.on_saved = on_saved

		self._canvas_id = canvas_id
		self._generation = 0
		self._status = SaveStatus.IDLE
		self._pending: Optional[Snapshot] = None
		self._timer: Optional[asyncio.TimerHandle] = None
		self._lock = asyncio.Lock()
		self._tasks: set[asyncio.Task] = set()
		self._destroyed = False

	@property
	def status(self) -> SaveStatus:
		return self._status

	@property
	def canvas_id(self) -> Optional[str]:
		return self._canvas_id

	@property
	def has_pending(self) -> bool:
		return self._pending is not None

	@property
	def destroyed(self) -> bool:
		return self._destroyed

	def _set_status(self, status: SaveStatus) -> None:
		if status == self._status:
			return
		self._status = status
		if self.on_status_change is not None:
			self.on_status_change(status)

	def _reset_terminal(self) -> None:
		if self._status in TERMINAL_STATUSES:
			self._set_status(SaveStatus.IDLE)

	def _check_alive(self) -> None:
		if self._destroyed:
			raise RuntimeError("Autosave scheduler has been destroyed")

	def _snapshot(self, nodes: Sequence[Node], edges: Sequence[Edge], title: Optional[str]) -> Snapshot:
		# Deep copies so later in-place edits cannot leak into a queued save
		return Snapshot(
			nodes=[n.model_copy(deep=True) for n in nodes],
			edges=[e.model_copy(deep=True) for e in edges],
			title=title,
			generation=self._generation,
		)

	def _cancel_timer(self) -> None:
		if self._timer is not None:
			self._timer.cancel()
			self._timer = None

	def _spawn_flush(self) -> None:
		task = asyncio.get_running_loop().create_task(self._flush())
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)

	def _on_timer(self) -> None:
		self._timer = None
		self._spawn_flush()

	def schedule_save(self, nodes: Sequence[Node], edges: Sequence[Edge], title: Optional[str] = None) -> None:
		"""Record the latest state and restart the debounce timer."""
		self._check_alive()
		self._pending = self._snapshot(nodes, edges, title)
		self._reset_terminal()
		self._cancel_timer()
		loop = asyncio.get_running_loop()
		self._timer = loop.call_later(self.debounce_ms / 1000, self._on_timer)

	async def save_now(
		self,
		nodes: Sequence[Node],
		edges: Sequence[Edge],
		title: Optional[str] = None,
	) -> Optional[UpsertResult]:
		"""
		Save immediately, bypassing the debounce.

		Waits behind a save already in flight. Failures are reported through
		``on_error`` and the status, not raised.

		Returns:
			The backend result, or None if the save failed or was coalesced
		"""
		self._check_alive()
		self._cancel_timer()
		self._pending = self._snapshot(nodes, edges, title)
		return await self._flush()

	async def _flush(self) -> Optional[UpsertResult]:
		async with self._lock:
			snapshot = self._pending
			if snapshot is None:
				# An earlier flush already sent this state
				return None
			self._pending = None
			if snapshot.generation != self._generation:
				return None
			return await self._send(snapshot)

	async def _send(self, snapshot: Snapshot) -> Optional[UpsertResult]:
		self._reset_terminal()
		self._set_status(SaveStatus.SAVING)
		canvas_id = self._canvas_id

		try:
			result = await self.backend.upsert(canvas_id, snapshot.nodes, snapshot.edges, snapshot.title)
		except Exception as e:
			error = e if isinstance(e, PersistenceError) else PersistenceError(f"Save failed: {e}")
			if self._pending is None and snapshot.generation == self._generation:
				self._pending = snapshot
			logger.error(f"Autosave of canvas {canvas_id} failed: {e}")
			self._set_status(SaveStatus.ERROR)
			if self.on_error is not None:
				self.on_error(error)
			return None

		if snapshot.generation == self._generation and self._canvas_id is None and result.action == "created":
			self._canvas_id = result.canvas_id
			logger.info(f"Autosave bound to new canvas {result.canvas_id}")

		logger.debug(f"Saved canvas {result.canvas_id} ({result.action})")
		self._set_status(SaveStatus.SAVED)
		if self.on_saved is not None:
			try:
				self.on_saved(result.canvas_id, snapshot)
			except Exception:
				logger.exception(f"Post-save hook failed for canvas {result.canvas_id}")
		return result

	def set_canvas_id(self, canvas_id: Optional[str]) -> None:
		"""Rebind to another canvas. Unsent state for the old canvas is dropped."""
		self._cancel_timer()
		self._pending = None
		self._generation += 1
		self._canvas_id = canvas_id

	async def drain(self) -> None:
		"""Fire a pending debounce immediately and wait for every outstanding save."""
		if self._timer is not None:
			self._cancel_timer()
			self._spawn_flush()
		while self._tasks:
			await asyncio.gather(*list(self._tasks))

	def destroy(self) -> None:
		"""Cancel timers and drop unsent state. The scheduler cannot be reused."""
		self._cancel_timer()
		self._pending = None
		self._destroyed = True
		logger.debug(f"Autosave scheduler for canvas {self._canvas_id} destroyed")
