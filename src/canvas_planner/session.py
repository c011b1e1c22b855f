"""
Editing Session - wires one open canvas to its collaborators.

A session owns the in-memory document, the editor that mutates it, the
autosave scheduler that persists it, and the slot manager. Successful saves
feed the local backup ring. Restore, slot load and import all replace the
document wholesale and save immediately.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .audit import EventTracker
from .autosave import AutosaveScheduler, SaveStatus, Snapshot
from .backup import BackupVersion, LocalBackupRing
from .errors import PersistenceError, ValidationError
from .graph.codec import ImportResult, from_json, to_json, to_outline
from .graph.editor import CanvasEditor
from .graph.models import GraphDocument
from .permissions import Operation, Role, require
from .persistence.canvases import CanvasRepository, RepositoryBackend
from .persistence.models import SaveSlot, UpsertResult
from .persistence.slots import SlotRepository
from .slots import SaveSlotManager

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[GraphDocument], Union[bool, Awaitable[bool]]]


class EditingSession:
	"""
	One user's editing session on one canvas.

	Usage:
		session = EditingSession(repository, user_id, tracker, backups, slot_repository)
		document = await session.open()
		session.editor.add_node(position=Position(x=100, y=100))
		await session.close()
	"""

	def __init__(
		self,
		repository: CanvasRepository,
		user_id: str,
		tracker: EventTracker,
		backups: LocalBackupRing,
		slot_repository: SlotRepository,
		debounce_ms: int = 3000,
		on_status_change: Optional[Callable[[SaveStatus], Any]] = None,
		on_error: Optional[Callable[[PersistenceError], Any]] = None,
	):
		self.repository = repository
		self.user_id = user_id
		self.tracker = tracker
		self.backups = backups
		self.slot_repository = slot_repository
		self.debounce_ms = debounce_ms
		self.on_status_change = on_status_change
		self.on_error = on_error

		self.editor: Optional[CanvasEditor] = None
		self.scheduler: Optional[AutosaveScheduler] = None
		self.slots: Optional[SaveSlotManager] = None

	@property
	def document(self) -> GraphDocument:
		self._check_open()
		return self.editor.document

	@property
	def role(self) -> Role:
		self._check_open()
		return self.editor.role

	@property
	def status(self) -> SaveStatus:
		self._check_open()
		return self.scheduler.status

	def _check_open(self) -> None:
		if self.editor is None:
			raise RuntimeError("Session is not open")

	async def open(self, canvas_id: Optional[str] = None) -> GraphDocument:
		"""
		Load a canvas and start the session.

		With no ``canvas_id`` the caller's most recently modified canvas is
		opened; a caller with no canvas gets a fresh one, created right away so
		that audit events always have a canvas to belong to.
		"""
		if self.editor is not None:
			raise RuntimeError("Session is already open")

		loaded = await self.repository.load(self.user_id, canvas_id)
		if loaded.exists:
			role = await self.repository.resolve_role(loaded.canvas_id, self.user_id)
			document = GraphDocument(
				id=loaded.canvas_id,
				title=loaded.title,
				nodes=loaded.nodes,
				edges=loaded.edges,
				last_modified_at=loaded.last_modified,
			)
		else:
			created = await self.repository.upsert(self.user_id, None, [], [], loaded.title)
			role = Role.OWNER
			document = GraphDocument(id=created.canvas_id, title=loaded.title)
			logger.info(f"Started new canvas {created.canvas_id} for user {self.user_id}")

		self.scheduler = AutosaveScheduler(
			RepositoryBackend(self.repository, self.user_id),
			canvas_id=document.id,
			debounce_ms=self.debounce_ms,
			on_status_change=self.on_status_change,
			on_error=self.on_error,
			on_saved=self._on_saved,
		)
		self.editor = CanvasEditor(document, role, self.user_id, self.tracker, on_change=self._on_change)
		self.slots = SaveSlotManager(self.slot_repository, self.editor, self.scheduler)
		logger.info(f"Opened canvas {document.id} as {role.value}")
		return document

	def _on_change(self, document: GraphDocument) -> None:
		self.scheduler.schedule_save(document.nodes, document.edges, document.title)

	def _on_saved(self, canvas_id: str, snapshot: Snapshot) -> None:
		self.backups.record(canvas_id, snapshot.nodes, snapshot.edges, snapshot.title)

	async def save_now(self) -> Optional[UpsertResult]:
		self._check_open()
		require(self.editor.role, Operation.MUTATE)
		document = self.editor.document
		return await self.scheduler.save_now(document.nodes, document.edges, document.title)

	# ------------------------------------------------------------------
	# History
	# ------------------------------------------------------------------

	def list_backups(self) -> list[BackupVersion]:
		self._check_open()
		return self.backups.list_versions(self.document.id)

	async def restore_backup(self, version: int) -> GraphDocument:
		"""
		Replace the document with a backup version and save it.

		The save appends a new, higher version; earlier versions stay intact.
		"""
		self._check_open()
		require(self.editor.role, Operation.MUTATE)
		backup = self.backups.get(self.document.id, version)
		document = self.editor.replace_document(backup.nodes, backup.edges, backup.title)
		await self.scheduler.save_now(document.nodes, document.edges, document.title)
		logger.info(f"Restored canvas {document.id} from backup v{version}")
		return document

	# ------------------------------------------------------------------
	# Slots
	# ------------------------------------------------------------------

	async def save_to_slot(self, slot_number: int, slot_name: Optional[str] = None) -> SaveSlot:
		self._check_open()
		document = self.editor.document
		return await self.slots.save_to_slot(slot_number, document.nodes, document.edges, slot_name)

	async def load_slot(self, slot_number: int) -> SaveSlot:
		self._check_open()
		return await self.slots.load_slot(slot_number)

	# ------------------------------------------------------------------
	# Import / export
	# ------------------------------------------------------------------

	async def import_json(self, text: str | bytes, confirm: ConfirmCallback) -> bool:
		"""
		Import an exported canvas over the working document.

		The payload is fully validated first. The document is replaced only if
		``confirm`` returns True, and is then saved immediately.

		Returns:
			True if the import was applied, False if the user declined

		Raises:
			ValidationError: The payload is malformed; the document is unchanged
			PermissionDeniedError: The caller may not edit this canvas
		"""
		self._check_open()
		require(self.editor.role, Operation.MUTATE)

		result: ImportResult = from_json(text)
		imported = result.unwrap()

		answer = confirm(imported)
		if inspect.isawaitable(answer):
			answer = await answer
		if not answer:
			logger.info(f"Import into canvas {self.document.id} declined")
			return False

		title = imported.title or None
		document = self.editor.replace_document(imported.nodes, imported.edges, title)
		await self.scheduler.save_now(document.nodes, document.edges, document.title)
		return True

	def export(self, format: str = "json") -> Union[dict[str, Any], str]:
		self._check_open()
		require(self.editor.role, Operation.READ)
		if format == "json":
			return to_json(self.document)
		if format == "outline":
			return to_outline(self.document)
		raise ValidationError(f"Unknown export format: {format}")

	async def close(self) -> None:
		"""Flush outstanding saves, then tear the scheduler down."""
		if self.scheduler is None:
			return
		await self.scheduler.drain()
		self.scheduler.destroy()
		logger.info(f"Closed canvas {self.editor.document.id}")
