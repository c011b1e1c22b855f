"""Tests for reachability and cascading drags."""

from canvas_planner.graph.models import Position
from canvas_planner.graph.traversal import DragTracker, descendants

from .helpers import make_document, make_edge, make_node


def test_descendants_breadth_first():
	edges = [make_edge("e1", "a", "b"), make_edge("e2", "a", "c"), make_edge("e3", "b", "d")]
	assert descendants(edges, "a") == ["b", "c", "d"]
	assert descendants(edges, "d") == []


def test_descendants_terminates_on_cycles():
	edges = [make_edge("e1", "a", "b"), make_edge("e2", "b", "c"), make_edge("e3", "c", "a")]
	assert descendants(edges, "a") == ["b", "c"]


def test_descendants_self_loop():
	assert descendants([make_edge("e1", "a", "a")], "a") == []


def test_drag_without_cascade_moves_only_node():
	doc = make_document([make_node("a"), make_node("b", x=100)], [make_edge("e1", "a", "b")])
	tracker = DragTracker()

	moved = tracker.drag(doc, "a", Position(x=10, y=5))

	assert moved == ["a"]
	assert doc.get_node("a").position == Position(x=10, y=5)
	assert doc.get_node("b").position == Position(x=100, y=0)


def test_cascading_drag_moves_descendants_by_delta():
	doc = make_document(
		[make_node("a"), make_node("b", x=100), make_node("c", x=200), make_node("free", x=500)],
		[make_edge("e1", "a", "b"), make_edge("e2", "b", "c"), make_edge("e3", "c", "a")],
	)
	tracker = DragTracker()

	moved = tracker.drag(doc, "a", Position(x=10, y=20), cascade=True)
	assert set(moved) == {"a", "b", "c"}
	assert doc.get_node("b").position == Position(x=110, y=20)
	assert doc.get_node("c").position == Position(x=210, y=20)
	assert doc.get_node("free").position == Position(x=500, y=0)

	# Second frame uses the previous frame as baseline
	tracker.drag(doc, "a", Position(x=15, y=20), cascade=True)
	assert doc.get_node("a").position == Position(x=15, y=20)
	assert doc.get_node("b").position == Position(x=115, y=20)

	tracker.end()
	assert not tracker.active


def test_drag_unknown_node_is_noop():
	doc = make_document([make_node("a")])
	assert DragTracker().drag(doc, "zzz", Position(x=1, y=1)) == []
