"""Shared test fixtures and helpers for canvas-planner tests."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from canvas_planner.config import Config
from canvas_planner.errors import PersistenceError
from canvas_planner.graph.models import Edge, GraphDocument, Node, NodeKind, Position, Prompt
from canvas_planner.persistence.models import LoadResult, UpsertResult


def make_node(
	node_id: str,
	x: float = 0,
	y: float = 0,
	kind: NodeKind = NodeKind.TASK,
	title: str = "",
	prompts: Optional[list[Prompt]] = None,
) -> Node:
	return Node(
		id=node_id,
		kind=kind,
		title=title or node_id,
		position=Position(x=x, y=y),
		prompts=prompts or [],
	)


def make_edge(
	edge_id: str,
	source: str,
	target: str,
	source_handle: Optional[str] = None,
	target_handle: Optional[str] = None,
) -> Edge:
	return Edge(
		id=edge_id,
		source_node_id=source,
		target_node_id=target,
		source_handle=source_handle,
		target_handle=target_handle,
	)


def make_document(nodes: Optional[list[Node]] = None, edges: Optional[list[Edge]] = None, **kwargs) -> GraphDocument:
	kwargs.setdefault("id", "canvas-1")
	kwargs.setdefault("title", "Test Canvas")
	return GraphDocument(nodes=nodes or [], edges=edges or [], **kwargs)


def make_config(tmp_path: Path, **overrides: Any) -> Config:
	"""Config rooted in a temp dir, never touching the real user dirs."""
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data", **overrides)
	return config


def local(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
	"""Timezone-aware datetime in the machine's local zone."""
	return datetime(year, month, day, hour, minute).astimezone()


class FixedClock:
	"""Settable clock for EventTracker."""

	def __init__(self, now: datetime):
		self.now = now

	def __call__(self) -> datetime:
		return self.now


@dataclass
class UpsertCall:
	canvas_id: Optional[str]
	nodes: list[Node]
	edges: list[Edge]
	title: Optional[str]


class FakeBackend:
	"""
	In-memory CanvasBackend that records every upsert.

	``fail_times`` makes the next N upserts raise PersistenceError; ``gate``
	holds every upsert until the event is set.
	"""

	def __init__(self, canvas_id: str = "canvas-1", fail_times: int = 0, gate: Optional[asyncio.Event] = None):
		self.canvas_id = canvas_id
		self.fail_times = fail_times
		self.gate = gate
		self.calls: list[UpsertCall] = []
		self.in_flight = 0
		self.max_in_flight = 0

	async def upsert(self, canvas_id, nodes, edges, title=None) -> UpsertResult:
		self.in_flight += 1
		self.max_in_flight = max(self.max_in_flight, self.in_flight)
		try:
			if self.gate is not None:
				await self.gate.wait()
			self.calls.append(UpsertCall(canvas_id, list(nodes), list(edges), title))
			if self.fail_times > 0:
				self.fail_times -= 1
				raise PersistenceError("store unreachable")
			if canvas_id:
				return UpsertResult(canvas_id=canvas_id, action="updated")
			return UpsertResult(canvas_id=self.canvas_id, action="created")
		finally:
			self.in_flight -= 1

	async def load(self, canvas_id=None) -> LoadResult:
		if not self.calls:
			return LoadResult(title="Working Canvas", exists=False)
		last = self.calls[-1]
		return LoadResult(
			nodes=last.nodes,
			edges=last.edges,
			title=last.title or "",
			canvas_id=canvas_id or self.canvas_id,
			exists=True,
		)


class CountingBackend:
	"""Wraps a real backend and records the upserts passing through it."""

	def __init__(self, inner):
		self.inner = inner
		self.calls: list[UpsertCall] = []

	async def upsert(self, canvas_id, nodes, edges, title=None) -> UpsertResult:
		self.calls.append(UpsertCall(canvas_id, list(nodes), list(edges), title))
		return await self.inner.upsert(canvas_id, nodes, edges, title)

	async def load(self, canvas_id=None) -> LoadResult:
		return await self.inner.load(canvas_id)
