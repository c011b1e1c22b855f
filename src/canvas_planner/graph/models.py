"""
Graph models - Pydantic schemas for the canvas document.

A canvas is a directed graph of blocks (task or goal nodes) holding prompts,
connected by edges between node-level or prompt-level handles. Field names are
snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> str:
	"""Current time as an ISO-8601 UTC string."""
	return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class NodeKind(str, Enum):
	"""Kind of block a node renders as."""
	TASK = "taskBlock"
	GOAL = "goalBlock"


class WireModel(BaseModel):
	"""Base model serialising to camelCase and accepting either spelling."""
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

	def to_wire(self) -> dict[str, Any]:
		return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Position(WireModel):
	"""Canvas coordinates of a node's top-left corner."""
	x: float = 0.0
	y: float = 0.0

	def translated(self, dx: float, dy: float) -> "Position":
		return Position(x=self.x + dx, y=self.y + dy)


class Prompt(WireModel):
	"""A single actionable line item inside a node."""
	id: str = Field(description="Unique within its node")
	content: str = Field(default="")
	completed: bool = Field(default=False)


class Node(WireModel):
	"""A block on the canvas. Unknown display attributes are kept verbatim."""
	model_config = ConfigDict(extra="allow")

	id: str = Field(description="Unique within the document")
	kind: NodeKind = Field(
		default=NodeKind.TASK,
		validation_alias=AliasChoices("kind", "type"),
	)
	title: str = Field(default="")
	position: Position = Field(default_factory=Position)
	prompts: list[Prompt] = Field(default_factory=list)

	# Display attributes
	color: Optional[str] = Field(default=None)
	priority: Optional[str] = Field(default=None)
	category: Optional[str] = Field(default=None)
	goal_id: Optional[str] = Field(default=None)

	@field_validator("kind", mode="before")
	@classmethod
	def _legacy_kind(cls, value: Any) -> Any:
		# Older exports call task blocks "promptBlock"
		if value == "promptBlock":
			return NodeKind.TASK
		return value

	def get_prompt(self, prompt_id: str) -> Optional[Prompt]:
		for prompt in self.prompts:
			if prompt.id == prompt_id:
				return prompt
		return None


def prompt_handle(prompt_id: str, side: str = "source") -> str:
	"""Handle id anchoring an edge on a specific prompt."""
	return f"{side}-prompt-{prompt_id}"


class Edge(WireModel):
	"""A directed connection between two handles."""
	id: str
	source_node_id: str = Field(
		validation_alias=AliasChoices("sourceNodeId", "source_node_id", "source"),
	)
	target_node_id: str = Field(
		validation_alias=AliasChoices("targetNodeId", "target_node_id", "target"),
	)
	source_handle: Optional[str] = Field(default=None)
	target_handle: Optional[str] = Field(default=None)

	def touches(self, node_id: str) -> bool:
		return self.source_node_id == node_id or self.target_node_id == node_id

	def anchored_on_prompt(self, node_id: str, prompt_id: str) -> bool:
		"""True if either end of the edge sits on the given prompt's handle."""
		suffix = f"-prompt-{prompt_id}"
		if self.source_node_id == node_id and (self.source_handle or "").endswith(suffix):
			return True
		if self.target_node_id == node_id and (self.target_handle or "").endswith(suffix):
			return True
		return False


class GraphDocument(WireModel):
	"""
	The full in-memory graph for one canvas.

	Replaced wholesale on load, import, backup restore and slot load; mutated
	incrementally by the editor otherwise.
	"""
	id: Optional[str] = Field(default=None)
	title: str = Field(default="")
	nodes: list[Node] = Field(default_factory=list)
	edges: list[Edge] = Field(default_factory=list)
	last_modified_at: Optional[str] = Field(default=None)

	def get_node(self, node_id: str) -> Optional[Node]:
		for node in self.nodes:
			if node.id == node_id:
				return node
		return None

	def node_ids(self) -> set[str]:
		return {node.id for node in self.nodes}

	def touch(self) -> None:
		self.last_modified_at = utc_now()

	def integrity_errors(self) -> list[str]:
		"""Return every broken invariant (duplicate ids, dangling edges)."""
		errors: list[str] = []
		seen: set[str] = set()
		for node in self.nodes:
			if node.id in seen:
				errors.append(f"Duplicate node id: {node.id}")
			seen.add(node.id)
			prompt_ids: set[str] = set()
			for prompt in node.prompts:
				if prompt.id in prompt_ids:
					errors.append(f"Duplicate prompt id '{prompt.id}' in node {node.id}")
				prompt_ids.add(prompt.id)

		for edge in self.edges:
			if edge.source_node_id not in seen:
				errors.append(f"Edge {edge.id} references unknown source node: {edge.source_node_id}")
			if edge.target_node_id not in seen:
				errors.append(f"Edge {edge.id} references unknown target node: {edge.target_node_id}")
		return errors

	def get_stats(self) -> dict:
		"""Block and connection counts, as shown in exports."""
		goals = len([n for n in self.nodes if n.kind == NodeKind.GOAL])
		return {
			"totalBlocks": len(self.nodes),
			"goals": goals,
			"tasks": len(self.nodes) - goals,
			"connections": len(self.edges),
		}


def dump_nodes(nodes: list[Node]) -> list[dict[str, Any]]:
	return [node.to_wire() for node in nodes]


def dump_edges(edges: list[Edge]) -> list[dict[str, Any]]:
	return [edge.to_wire() for edge in edges]
