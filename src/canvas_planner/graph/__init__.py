"""Canvas graph: document models, traversal, editing and import/export."""

from .codec import ImportResult, from_json, to_json, to_outline, validate_graph
from .models import Edge, GraphDocument, Node, NodeKind, Position, Prompt, prompt_handle
from .traversal import DragTracker, descendants

__all__ = [
	"DragTracker",
	"Edge",
	"GraphDocument",
	"ImportResult",
	"Node",
	"NodeKind",
	"Position",
	"Prompt",
	"descendants",
	"from_json",
	"prompt_handle",
	"to_json",
	"to_outline",
	"validate_graph",
]
