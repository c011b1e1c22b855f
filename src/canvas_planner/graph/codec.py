"""
Import/export codec for canvas documents.

JSON export is lossless and is the only format accepted back on import.
The Markdown outline is a human-readable summary and cannot be imported.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .models import GraphDocument, Node, NodeKind, dump_edges, dump_nodes

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"


@dataclass
class ImportResult:
	"""Either a fully validated document or the reason it was rejected."""
	document: Optional[GraphDocument] = None
	error: Optional[ValidationError] = None

	@property
	def ok(self) -> bool:
		return self.error is None and self.document is not None

	def unwrap(self) -> GraphDocument:
		if self.error is not None:
			raise self.error
		return self.document


def to_json(doc: GraphDocument, exported_at: Optional[datetime] = None) -> dict[str, Any]:
	"""Build the export payload for a document."""
	exported_at = exported_at or datetime.now(timezone.utc)
	return {
		"version": EXPORT_VERSION,
		"canvasTitle": doc.title,
		"canvasId": doc.id,
		"exportedAt": exported_at.isoformat(),
		"nodes": dump_nodes(doc.nodes),
		"edges": dump_edges(doc.edges),
		"stats": doc.get_stats(),
	}


def to_json_text(doc: GraphDocument, indent: int = 2) -> str:
	return json.dumps(to_json(doc), indent=indent, ensure_ascii=False)


def _outline_node(node: Node) -> list[str]:
	label = "Goal" if node.kind == NodeKind.GOAL else "Task"
	lines = [f"## {label}: {node.title or node.id}", ""]

	if node.category:
		lines += [f"**Category:** {node.category}", ""]
	if node.priority:
		lines += [f"**Priority:** {node.priority}", ""]

	if node.prompts:
		for prompt in node.prompts:
			checkbox = "[x]" if prompt.completed else "[ ]"
			lines.append(f"- {checkbox} {prompt.content}")
		lines.append("")
	return lines


def to_outline(doc: GraphDocument) -> str:
	"""Render the document as a Markdown outline, one section per node."""
	lines = [f"# {doc.title or 'Canvas'}", ""]

	if not doc.nodes:
		lines.append("*Canvas is empty*")
		return "\n".join(lines) + "\n"

	for node in doc.nodes:
		lines += _outline_node(node)

	stats = doc.get_stats()
	lines += [
		"---",
		"",
		"## Statistics",
		"",
		f"- **Total blocks:** {stats['totalBlocks']}",
		f"- **Goals:** {stats['goals']}",
		f"- **Tasks:** {stats['tasks']}",
		f"- **Connections:** {stats['connections']}",
	]
	return "\n".join(lines) + "\n"


def _reject(message: str) -> ImportResult:
	logger.warning(f"Import rejected: {message}")
	return ImportResult(error=ValidationError(message))


def validate_graph(nodes: Sequence[Any], edges: Sequence[Any], **fields: Any) -> GraphDocument:
	"""
	Build a document from node and edge payloads, rejecting anything malformed.

	Items may be models or wire dicts. Extra keyword arguments (``id``,
	``title``) are passed through to the document.

	Raises:
		ValidationError: Not arrays, a model validation failure, or a broken
			integrity check (duplicate ids, dangling edge endpoints)
	"""
	for label, items in (("nodes", nodes), ("edges", edges)):
		if not isinstance(items, (list, tuple)):
			raise ValidationError(f"Invalid data: {label} must be an array")

	try:
		doc = GraphDocument.model_validate({**fields, "nodes": list(nodes), "edges": list(edges)})
	except PydanticValidationError as e:
		first = e.errors()[0]
		location = ".".join(str(part) for part in first["loc"])
		raise ValidationError(f"Invalid data: {location or 'item'}: {first['msg']}") from e

	errors = doc.integrity_errors()
	if errors:
		raise ValidationError("; ".join(errors))
	return doc


def from_json(text: str | bytes) -> ImportResult:
	"""
	Parse and validate an exported canvas.

	Nothing is returned as a document until the payload parses, carries
	``nodes`` and ``edges`` arrays, validates against the models, and passes
	the integrity checks (unique ids, resolvable edge endpoints).
	"""
	try:
		data = json.loads(text)
	except (json.JSONDecodeError, UnicodeDecodeError) as e:
		return _reject(f"Invalid JSON: {e}")

	if not isinstance(data, dict):
		return _reject("Invalid data: expected a JSON object")
	for key in ("nodes", "edges"):
		if key not in data:
			return _reject(f"Invalid data: missing {key}")

	try:
		doc = validate_graph(
			data["nodes"],
			data["edges"],
			id=data.get("canvasId"),
			title=data.get("canvasTitle") or data.get("title") or "",
		)
	except ValidationError as e:
		return _reject(str(e))

	logger.info(f"Validated import: {len(doc.nodes)} nodes, {len(doc.edges)} edges")
	return ImportResult(document=doc)
