"""Reachability over user-drawn edges and the cascading drag built on it."""

from collections import deque
from typing import Iterable

from .models import Edge, GraphDocument, Position


def descendants(edges: Iterable[Edge], node_id: str) -> list[str]:
	"""
	Ids of every node reachable from ``node_id`` along outgoing edges.

	Breadth-first with a visited set, so cycles terminate. The start node is
	never part of the result, even when a cycle leads back to it.
	"""
	children: dict[str, list[str]] = {}
	for edge in edges:
		children.setdefault(edge.source_node_id, []).append(edge.target_node_id)

	visited = {node_id}
	order: list[str] = []
	queue = deque([node_id])
	while queue:
		current = queue.popleft()
		for child in children.get(current, []):
			if child in visited:
				continue
			visited.add(child)
			order.append(child)
			queue.append(child)
	return order


class DragTracker:
	"""
	Per-drag position baseline for cascading moves.

	Each drag frame moves the dragged node to its new position; with
	``cascade`` set, every descendant moves by the same delta. The baseline map
	is cleared by ``end()`` so the next drag starts fresh.
	"""

	def __init__(self):
		self._previous: dict[str, Position] = {}

	@property
	def active(self) -> bool:
		return bool(self._previous)

	def drag(
		self,
		document: GraphDocument,
		node_id: str,
		new_position: Position,
		cascade: bool = False,
	) -> list[str]:
		"""
		Apply one drag frame.

		Returns:
			Ids of the nodes whose position changed, dragged node first
		"""
		node = document.get_node(node_id)
		if node is None:
			return []

		baseline = self._previous.get(node_id, node.position)
		dx = new_position.x - baseline.x
		dy = new_position.y - baseline.y

		node.position = Position(x=new_position.x, y=new_position.y)
		self._previous[node_id] = node.position
		moved = [node_id]

		if not cascade or (dx == 0 and dy == 0):
			return moved

		reachable = set(descendants(document.edges, node_id))
		for other in document.nodes:
			if other.id in reachable:
				other.position = other.position.translated(dx, dy)
				self._previous[other.id] = other.position
				moved.append(other.id)
		return moved

	def end(self) -> None:
		self._previous.clear()
