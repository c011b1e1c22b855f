"""
Canvas Repository - upsert/load of whole canvas documents.

Features:
- Upsert by id, or against the caller's most recently modified canvas
- Role resolution (owner, shared edit, shared view) for every access
- Last-write-wins: an update replaces the stored nodes and edges wholesale
"""

import json
import logging
import uuid
from typing import Any, Optional, Protocol, Sequence

from ..errors import NotFoundError
from ..graph.codec import validate_graph
from ..graph.models import Edge, Node, dump_edges, dump_nodes, utc_now
from ..permissions import Operation, Role, require, require_owner, resolve_role
from .database import CanvasDatabase
from .models import CanvasRecord, LoadResult, UpsertResult

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Working Canvas"


def serialize_graph(nodes: Any, edges: Any) -> tuple[str, str]:
	"""
	Validate a graph payload and return its nodes and edges as JSON columns.

	Raises:
		ValidationError: Before anything is written, if the graph is malformed
	"""
	doc = validate_graph(nodes, edges)
	return json.dumps(dump_nodes(doc.nodes)), json.dumps(dump_edges(doc.edges))


class CanvasBackend(Protocol):
	"""What the autosave scheduler and editing session need from a store."""

	async def upsert(
		self,
		canvas_id: Optional[str],
		nodes: Sequence[Any],
		edges: Sequence[Any],
		title: Optional[str] = None,
	) -> UpsertResult: ...

	async def load(self, canvas_id: Optional[str] = None) -> LoadResult: ...


class CanvasRepository:
	"""Persistence API for canvases, scoped per call to an authenticated user."""

	def __init__(self, database: CanvasDatabase, default_title: str = DEFAULT_TITLE):
		self.database = database
		self.default_title = default_title

	async def get_canvas(self, canvas_id: str) -> CanvasRecord:
		row = await self.database.fetchone(
			"SELECT id, user_id, title, last_modified_at FROM canvases WHERE id = ?",
			(canvas_id,),
		)
		if not row:
			raise NotFoundError(f"Canvas not found: {canvas_id}")
		return CanvasRecord(**dict(row))

	async def resolve_role(self, canvas_id: str, user_id: str) -> Role:
		"""
		Work out the caller's role on a canvas.

		Raises:
			NotFoundError: If the canvas is missing or not visible to the caller
		"""
		canvas = await self.get_canvas(canvas_id)
		share_level = None
		if canvas.user_id != user_id:
			email = await self.database.get_user_email(user_id)
			if email:
				row = await self.database.fetchone(
					"SELECT permission_level FROM canvas_shares WHERE canvas_id = ? AND shared_with_email = ?",
					(canvas_id, email),
				)
				share_level = row["permission_level"] if row else None

		role = resolve_role(canvas.user_id, user_id, share_level)
		if role is None:
			raise NotFoundError("Canvas not found or access denied")
		return role

	async def _latest_owned(self, user_id: str) -> Optional[str]:
		row = await self.database.fetchone(
			"SELECT id FROM canvases WHERE user_id = ? ORDER BY last_modified_at DESC LIMIT 1",
			(user_id,),
		)
		return row["id"] if row else None

	async def upsert(
		self,
		user_id: str,
		canvas_id: Optional[str],
		nodes: Sequence[Any],
		edges: Sequence[Any],
		title: Optional[str] = None,
	) -> UpsertResult:
		"""
		Save a canvas, creating it when needed.

		Args:
			user_id: Authenticated caller
			canvas_id: Canvas to update; None targets the caller's most recently
				modified canvas, or creates one if the caller has none
			nodes: Node models or wire dicts
			edges: Edge models or wire dicts
			title: New title; None keeps the stored title

		Returns:
			UpsertResult with the canvas id and whether it was created or updated
		"""
		nodes_json, edges_json = serialize_graph(nodes, edges)
		now = utc_now()

		if canvas_id:
			role = await self.resolve_role(canvas_id, user_id)
			require(role, Operation.MUTATE)
		else:
			canvas_id = await self._latest_owned(user_id)

		if canvas_id:
			if title:
				await self.database.execute(
					"UPDATE canvases SET nodes = ?, edges = ?, title = ?, last_modified_at = ? WHERE id = ?",
					(nodes_json, edges_json, title, now, canvas_id),
				)
			else:
				await self.database.execute(
					"UPDATE canvases SET nodes = ?, edges = ?, last_modified_at = ? WHERE id = ?",
					(nodes_json, edges_json, now, canvas_id),
				)
			logger.debug(f"Updated canvas {canvas_id}")
			return UpsertResult(canvas_id=canvas_id, action="updated")

		canvas_id = str(uuid.uuid4())
		await self.database.execute(
			"""
			INSERT INTO canvases (id, user_id, title, nodes, edges, created_at, last_modified_at)
			VALUES (?, ?, ?, ?, ?, ?, ?)
			""",
			(canvas_id, user_id, title or self.default_title, nodes_json, edges_json, now, now),
		)
		logger.info(f"Created canvas {canvas_id} for user {user_id}")
		return UpsertResult(canvas_id=canvas_id, action="created")

	async def load(self, user_id: str, canvas_id: Optional[str] = None) -> LoadResult:
		"""
		Load a canvas the caller can read.

		Returns:
			LoadResult; ``exists=False`` when the caller has no canvas yet
		"""
		if canvas_id:
			role = await self.resolve_role(canvas_id, user_id)
			require(role, Operation.READ)
		else:
			canvas_id = await self._latest_owned(user_id)
			if not canvas_id:
				return LoadResult(title=self.default_title, exists=False)

		row = await self.database.fetchone("SELECT * FROM canvases WHERE id = ?", (canvas_id,))
		if not row:
			raise NotFoundError(f"Canvas not found: {canvas_id}")

		return LoadResult(
			nodes=[Node.model_validate(n) for n in json.loads(row["nodes"])],
			edges=[Edge.model_validate(e) for e in json.loads(row["edges"])],
			title=row["title"],
			canvas_id=row["id"],
			last_modified=row["last_modified_at"],
			exists=True,
		)

	async def list_canvases(self, user_id: str) -> list[CanvasRecord]:
		"""Canvases owned by the caller, most recently modified first."""
		rows = await self.database.fetchall(
			"""
			SELECT id, user_id, title, last_modified_at FROM canvases
			WHERE user_id = ? ORDER BY last_modified_at DESC
			""",
			(user_id,),
		)
		return [CanvasRecord(**dict(row)) for row in rows]

	async def delete_canvas(self, user_id: str, canvas_id: str) -> None:
		"""Delete a canvas with its shares and slots. Owner only."""
		role = await self.resolve_role(canvas_id, user_id)
		require_owner(role)
		await self.database.execute("DELETE FROM canvases WHERE id = ?", (canvas_id,))
		logger.info(f"Deleted canvas {canvas_id}")


class RepositoryBackend:
	"""Binds a CanvasRepository to one user so it satisfies CanvasBackend."""

	def __init__(self, repository: CanvasRepository, user_id: str):
		self.repository = repository
		self.user_id = user_id

	async def upsert(self, canvas_id, nodes, edges, title=None) -> UpsertResult:
		return await self.repository.upsert(self.user_id, canvas_id, nodes, edges, title)

	async def load(self, canvas_id=None) -> LoadResult:
		return await self.repository.load(self.user_id, canvas_id)
