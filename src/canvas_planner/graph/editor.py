"""
Canvas Editor - the only path through which a document is mutated.

Every entry point checks the caller's role first, so a blocked call leaves
the document untouched and produces no audit event. Successful mutations are
recorded with the event tracker at the call site and then reported through
``on_change`` (normally the autosave scheduler).
"""

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..errors import NotFoundError, ValidationError
from ..permissions import Operation, Role, require
from ..persistence.models import EventType
from .models import Edge, GraphDocument, Node, NodeKind, Position, Prompt, prompt_handle, utc_now
from .traversal import DragTracker

if TYPE_CHECKING:
	from ..audit import EventTracker

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
	return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _node_kind(kind: NodeKind | str) -> NodeKind:
	try:
		return NodeKind(kind)
	except ValueError:
		raise ValidationError(f"Unknown node kind: {kind}")


class CanvasEditor:
	"""
	Mutation API over one in-memory GraphDocument.

	Usage:
		editor = CanvasEditor(document, Role.OWNER, user_id, tracker, on_change=scheduler_hook)
		node = editor.add_node(position=Position(x=100, y=100), title="Plan")
		editor.add_prompt(node.id, "Write outline")
	"""

	def __init__(
		self,
		document: GraphDocument,
		role: Role | str,
		user_id: str,
		tracker: Optional["EventTracker"] = None,
		on_change: Optional[Callable[[GraphDocument], Any]] = None,
		clock: Callable[[], float] = time.monotonic,
	):
		self.document = document
		self.role = role
		self.user_id = user_id
		self.tracker = tracker
		self.on_change = on_change
		self.drag_tracker = DragTracker()
		self._clock = clock
		self._timers: dict[str, float] = {}

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------

	def _require_mutate(self) -> None:
		require(self.role, Operation.MUTATE)

	def _node(self, node_id: str) -> Node:
		node = self.document.get_node(node_id)
		if node is None:
			raise NotFoundError(f"Node not found: {node_id}")
		return node

	def _prompt(self, node: Node, prompt_id: str) -> Prompt:
		prompt = node.get_prompt(prompt_id)
		if prompt is None:
			raise NotFoundError(f"Prompt not found: {prompt_id} in node {node.id}")
		return prompt

	def _record(self, event_type: EventType, target_id: str, data: dict[str, Any]) -> None:
		if self.tracker is not None:
			self.tracker.record(self.document.id, self.user_id, event_type, target_id, data)

	def _changed(self) -> None:
		self.document.touch()
		if self.on_change is not None:
			self.on_change(self.document)

	def _create_node(
		self,
		kind: NodeKind,
		position: Position,
		title: str,
		node_id: Optional[str],
		prompts: Optional[list[Prompt]],
		attrs: dict[str, Any],
	) -> Node:
		node_id = node_id or _new_id("node")
		if self.document.get_node(node_id) is not None:
			raise ValidationError(f"Duplicate node id: {node_id}")
		node = Node(
			id=node_id,
			kind=kind,
			title=title,
			position=position,
			prompts=list(prompts or []),
			**attrs,
		)
		self.document.nodes.append(node)
		return node

	def _record_created(self, node: Node) -> None:
		position = node.position.to_wire()
		if node.kind == NodeKind.GOAL:
			self._record(EventType.GOAL_CREATED, node.id, {
				"title": node.title,
				"category": node.category,
				"position": position,
			})
		else:
			self._record(EventType.BLOCK_CREATED, node.id, {
				"node_type": node.kind.value,
				"title": node.title,
				"position": position,
			})

	# ------------------------------------------------------------------
	# Nodes
	# ------------------------------------------------------------------

	def add_node(
		self,
		kind: NodeKind | str = NodeKind.TASK,
		position: Optional[Position] = None,
		title: str = "",
		node_id: Optional[str] = None,
		prompts: Optional[list[Prompt]] = None,
		**attrs: Any,
	) -> Node:
		"""Create a block. Records block_created, or goal_created for goal blocks."""
		self._require_mutate()
		node = self._create_node(_node_kind(kind), position or Position(), title, node_id, prompts, attrs)
		self._record_created(node)
		self._changed()
		return node

	def connect_to_new_node(
		self,
		source_node_id: str,
		position: Position,
		source_prompt_id: Optional[str] = None,
		kind: NodeKind | str = NodeKind.TASK,
		title: str = "",
		node_id: Optional[str] = None,
	) -> tuple[Node, Edge]:
		"""
		Create a node and connect it from an existing node in one step.

		When ``source_prompt_id`` is given the edge starts at that prompt's
		handle instead of the node-level handle.
		"""
		self._require_mutate()
		source = self._node(source_node_id)
		source_handle = None
		if source_prompt_id is not None:
			self._prompt(source, source_prompt_id)
			source_handle = prompt_handle(source_prompt_id)

		node = self._create_node(_node_kind(kind), position, title, node_id, None, {})
		edge = Edge(
			id=_new_id("edge"),
			source_node_id=source.id,
			target_node_id=node.id,
			source_handle=source_handle,
		)
		self.document.edges.append(edge)
		self._record_created(node)
		self._changed()
		return node, edge

	def delete_node(self, node_id: str) -> None:
		"""Remove a node together with every edge touching it."""
		self._require_mutate()
		node = self._node(node_id)
		self.document.nodes = [n for n in self.document.nodes if n.id != node_id]
		self.document.edges = [e for e in self.document.edges if not e.touches(node_id)]
		self._timers.pop(node_id, None)
		self._record(EventType.BLOCK_DELETED, node_id, {"title": node.title})
		self._changed()

	def rename_node(self, node_id: str, title: str) -> None:
		self._require_mutate()
		node = self._node(node_id)
		old_title = node.title
		if old_title == title:
			return
		node.title = title
		self._record(EventType.BLOCK_RENAMED, node_id, {"old_title": old_title, "new_title": title})
		self._changed()

	def drag_node(self, node_id: str, position: Position, cascade: bool = False) -> list[str]:
		"""Apply one drag frame. With ``cascade`` every descendant follows."""
		self._require_mutate()
		self._node(node_id)
		moved = self.drag_tracker.drag(self.document, node_id, position, cascade=cascade)
		self._changed()
		return moved

	def end_drag(self) -> None:
		self.drag_tracker.end()

	# ------------------------------------------------------------------
	# Edges
	# ------------------------------------------------------------------

	def connect(
		self,
		source_node_id: str,
		target_node_id: str,
		source_handle: Optional[str] = None,
		target_handle: Optional[str] = None,
		edge_id: Optional[str] = None,
	) -> Edge:
		self._require_mutate()
		self._node(source_node_id)
		self._node(target_node_id)
		edge_id = edge_id or _new_id("edge")
		if any(e.id == edge_id for e in self.document.edges):
			raise ValidationError(f"Duplicate edge id: {edge_id}")

		edge = Edge(
			id=edge_id,
			source_node_id=source_node_id,
			target_node_id=target_node_id,
			source_handle=source_handle,
			target_handle=target_handle,
		)
		self.document.edges.append(edge)
		self._changed()
		return edge

	def disconnect(self, edge_id: str) -> None:
		self._require_mutate()
		remaining = [e for e in self.document.edges if e.id != edge_id]
		if len(remaining) == len(self.document.edges):
			raise NotFoundError(f"Edge not found: {edge_id}")
		self.document.edges = remaining
		self._changed()

	# ------------------------------------------------------------------
	# Prompts
	# ------------------------------------------------------------------

	def add_prompt(self, node_id: str, content: str = "", prompt_id: Optional[str] = None) -> Prompt:
		self._require_mutate()
		node = self._node(node_id)
		prompt_id = prompt_id or _new_id("prompt")
		if node.get_prompt(prompt_id) is not None:
			raise ValidationError(f"Duplicate prompt id '{prompt_id}' in node {node_id}")

		prompt = Prompt(id=prompt_id, content=content)
		node.prompts.append(prompt)
		self._record(EventType.PROMPT_ADDED, f"{node_id}:{prompt_id}", {
			"node_title": node.title,
			"prompt_content": content,
		})
		self._changed()
		return prompt

	def edit_prompt(self, node_id: str, prompt_id: str, content: str) -> None:
		self._require_mutate()
		prompt = self._prompt(self._node(node_id), prompt_id)
		prompt.content = content
		self._changed()

	def delete_prompt(self, node_id: str, prompt_id: str) -> None:
		"""Remove a prompt and every edge anchored on its handles."""
		self._require_mutate()
		node = self._node(node_id)
		prompt = self._prompt(node, prompt_id)
		node.prompts = [p for p in node.prompts if p.id != prompt_id]
		self.document.edges = [
			e for e in self.document.edges if not e.anchored_on_prompt(node_id, prompt_id)
		]
		self._record(EventType.PROMPT_DELETED, f"{node_id}:{prompt_id}", {
			"node_title": node.title,
			"prompt_content": prompt.content,
		})
		self._changed()

	def set_prompt_completed(self, node_id: str, prompt_id: str, completed: bool) -> None:
		self._require_mutate()
		node = self._node(node_id)
		prompt = self._prompt(node, prompt_id)
		if prompt.completed == completed:
			return
		prompt.completed = completed
		event_type = EventType.PROMPT_COMPLETED if completed else EventType.PROMPT_UNCOMPLETED
		self._record(event_type, f"{node_id}:{prompt_id}", {
			"node_title": node.title,
			"prompt_content": prompt.content,
		})
		self._changed()

	# ------------------------------------------------------------------
	# Timers
	# ------------------------------------------------------------------

	def start_timer(self, node_id: str, project_name: Optional[str] = None) -> None:
		"""Start tracking time on a block. Restarting a running timer is a no-op."""
		self._require_mutate()
		node = self._node(node_id)
		if node_id in self._timers:
			return
		self._timers[node_id] = self._clock()
		data: dict[str, Any] = {"node_title": node.title, "started_at": utc_now()}
		if project_name:
			data["project_name"] = project_name
		self._record(EventType.TIMER_STARTED, node_id, data)

	def stop_timer(self, node_id: str) -> Optional[int]:
		"""
		Stop a running timer.

		Returns:
			Elapsed whole seconds, or None if no timer was running
		"""
		self._require_mutate()
		node = self._node(node_id)
		started = self._timers.pop(node_id, None)
		if started is None:
			return None
		duration = int(self._clock() - started)
		self._record(EventType.TIMER_STOPPED, node_id, {"node_title": node.title, "duration": duration})
		return duration

	def running_timers(self) -> list[str]:
		return list(self._timers)

	# ------------------------------------------------------------------
	# Wholesale replacement
	# ------------------------------------------------------------------

	def replace_document(
		self,
		nodes: list[Node],
		edges: list[Edge],
		title: Optional[str] = None,
	) -> GraphDocument:
		"""
		Swap the whole graph in place, keeping the canvas id.

		Used by import, backup restore and slot load. The caller is expected to
		persist immediately, so ``on_change`` is not invoked.
		"""
		self._require_mutate()
		candidate = GraphDocument(
			id=self.document.id,
			title=title if title is not None else self.document.title,
			nodes=[n.model_copy(deep=True) for n in nodes],
			edges=[e.model_copy(deep=True) for e in edges],
		)
		errors = candidate.integrity_errors()
		if errors:
			raise ValidationError("; ".join(errors))

		self.drag_tracker.end()
		self._timers.clear()
		self.document.title = candidate.title
		self.document.nodes = candidate.nodes
		self.document.edges = candidate.edges
		self.document.touch()
		logger.info(f"Replaced document {self.document.id}: {len(candidate.nodes)} nodes, {len(candidate.edges)} edges")
		return self.document
