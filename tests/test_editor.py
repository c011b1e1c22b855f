"""Tests for the canvas editor: gated mutations and their audit events."""

import pytest

from canvas_planner.errors import NotFoundError, PermissionDeniedError, ValidationError
from canvas_planner.graph.editor import CanvasEditor
from canvas_planner.graph.models import NodeKind, Position, Prompt, prompt_handle
from canvas_planner.permissions import Role
from canvas_planner.persistence.models import EventType

from .helpers import make_document, make_edge, make_node


class ChangeRecorder:
	def __init__(self):
		self.count = 0

	def __call__(self, document):
		self.count += 1


@pytest.fixture
def changes():
	return ChangeRecorder()


@pytest.fixture
def editor(tracker, changes):
	return CanvasEditor(make_document(), Role.OWNER, "user-1", tracker, on_change=changes)


def event_types(tracker, canvas_id="canvas-1"):
	return [e.event_type for e in reversed(tracker.list(canvas_id))]


class TestNodes:
	def test_add_node_records_block_created(self, editor, tracker, changes):
		node = editor.add_node(position=Position(x=100, y=100), title="A", node_id="A")

		assert editor.document.node_ids() == {"A"}
		assert node.kind == NodeKind.TASK
		events = tracker.list("canvas-1")
		assert len(events) == 1
		assert events[0].event_type == EventType.BLOCK_CREATED
		assert events[0].target_id == "A"
		assert events[0].event_data["position"] == {"x": 100.0, "y": 100.0}
		assert changes.count == 1

	def test_add_goal_records_goal_created(self, editor, tracker):
		editor.add_node(kind=NodeKind.GOAL, title="Goal", node_id="G", category="health")
		events = tracker.list("canvas-1")
		assert events[0].event_type == EventType.GOAL_CREATED
		assert events[0].event_data["category"] == "health"

	def test_add_duplicate_node_rejected(self, editor):
		editor.add_node(node_id="A")
		with pytest.raises(ValidationError):
			editor.add_node(node_id="A")
		assert len(editor.document.nodes) == 1

	def test_unknown_kind_rejected(self, editor, tracker, changes):
		with pytest.raises(ValidationError, match="Unknown node kind"):
			editor.add_node(kind="stickyNote", node_id="A")

		editor.add_node(kind="goalBlock", node_id="G")
		with pytest.raises(ValidationError):
			editor.connect_to_new_node("G", Position(x=10, y=10), kind="stickyNote")

		assert editor.document.node_ids() == {"G"}
		assert editor.document.edges == []
		assert event_types(tracker) == [EventType.GOAL_CREATED]
		assert changes.count == 1

	def test_connect_to_new_node_from_prompt(self, editor, tracker):
		editor.add_node(position=Position(x=100, y=100), node_id="A")
		prompt = editor.add_prompt("A", "step one")

		node, edge = editor.connect_to_new_node("A", Position(x=300, y=100), source_prompt_id=prompt.id, node_id="B")

		assert len(editor.document.nodes) == 2
		assert len(editor.document.edges) == 1
		assert edge.source_handle == prompt_handle(prompt.id)
		assert edge.target_node_id == "B"
		assert node.position == Position(x=300, y=100)
		assert event_types(tracker) == [EventType.BLOCK_CREATED, EventType.PROMPT_ADDED, EventType.BLOCK_CREATED]

	def test_delete_node_drops_incident_edges(self, tracker, changes):
		doc = make_document(
			[make_node("a"), make_node("b"), make_node("c")],
			[make_edge("e1", "a", "b"), make_edge("e2", "b", "c"), make_edge("e3", "a", "c")],
		)
		editor = CanvasEditor(doc, Role.EDIT, "user-1", tracker, on_change=changes)

		editor.delete_node("b")

		assert doc.node_ids() == {"a", "c"}
		assert [e.id for e in doc.edges] == ["e3"]
		assert doc.integrity_errors() == []
		assert event_types(tracker) == [EventType.BLOCK_DELETED]

	def test_delete_missing_node(self, editor):
		with pytest.raises(NotFoundError):
			editor.delete_node("nope")

	def test_rename_records_old_and_new_title(self, editor, tracker):
		editor.add_node(node_id="A", title="Old")
		editor.rename_node("A", "New")
		editor.rename_node("A", "New")

		renamed = tracker.list("canvas-1", types=[EventType.BLOCK_RENAMED])
		assert len(renamed) == 1
		assert renamed[0].event_data == {"old_title": "Old", "new_title": "New"}

	def test_drag_cascade(self, tracker):
		doc = make_document([make_node("a"), make_node("b", x=50)], [make_edge("e1", "a", "b")])
		editor = CanvasEditor(doc, Role.OWNER, "user-1", tracker)

		editor.drag_node("a", Position(x=10, y=10), cascade=True)
		editor.end_drag()

		assert doc.get_node("b").position == Position(x=60, y=10)
		# Position changes are not audited
		assert tracker.list("canvas-1") == []


class TestPrompts:
	def test_delete_prompt_drops_anchored_edges(self, tracker):
		a = make_node("a", prompts=[Prompt(id="p1", content="one"), Prompt(id="p2", content="two")])
		doc = make_document(
			[a, make_node("b"), make_node("c")],
			[
				make_edge("e1", "a", "b", source_handle=prompt_handle("p1")),
				make_edge("e2", "a", "c", source_handle=prompt_handle("p2")),
				make_edge("e3", "a", "c"),
			],
		)
		editor = CanvasEditor(doc, Role.OWNER, "user-1", tracker)

		editor.delete_prompt("a", "p1")

		assert [p.id for p in doc.get_node("a").prompts] == ["p2"]
		assert [e.id for e in doc.edges] == ["e2", "e3"]
		events = tracker.list("canvas-1")
		assert events[0].event_type == EventType.PROMPT_DELETED
		assert events[0].target_id == "a:p1"

	def test_completion_toggles(self, editor, tracker):
		editor.add_node(node_id="A", title="Block")
		prompt = editor.add_prompt("A", "task", prompt_id="p1")

		editor.set_prompt_completed("A", prompt.id, True)
		editor.set_prompt_completed("A", prompt.id, True)
		editor.set_prompt_completed("A", prompt.id, False)

		assert event_types(tracker) == [
			EventType.BLOCK_CREATED,
			EventType.PROMPT_ADDED,
			EventType.PROMPT_COMPLETED,
			EventType.PROMPT_UNCOMPLETED,
		]
		completed = tracker.list("canvas-1", types=[EventType.PROMPT_COMPLETED])[0]
		assert completed.target_id == "A:p1"
		assert completed.event_data == {"node_title": "Block", "prompt_content": "task"}

	def test_edit_prompt(self, editor):
		editor.add_node(node_id="A")
		editor.add_prompt("A", "draft", prompt_id="p1")
		editor.edit_prompt("A", "p1", "final")
		assert editor.document.get_node("A").get_prompt("p1").content == "final"

	def test_duplicate_prompt_id_rejected(self, editor):
		editor.add_node(node_id="A")
		editor.add_prompt("A", prompt_id="p1")
		with pytest.raises(ValidationError):
			editor.add_prompt("A", prompt_id="p1")


class TestTimers:
	def test_start_and_stop(self, tracker):
		now = [1000.0]
		doc = make_document([make_node("a", title="Focus")])
		editor = CanvasEditor(doc, Role.OWNER, "user-1", tracker, clock=lambda: now[0])

		editor.start_timer("a", project_name="Deep work")
		assert editor.running_timers() == ["a"]
		now[0] += 90
		assert editor.stop_timer("a") == 90
		assert editor.stop_timer("a") is None

		events = tracker.list("canvas-1")
		assert events[0].event_type == EventType.TIMER_STOPPED
		assert events[0].event_data["duration"] == 90
		assert events[1].event_data["project_name"] == "Deep work"


class TestPermissionGate:
	@pytest.fixture
	def viewer(self, tracker, changes):
		doc = make_document(
			[make_node("a", prompts=[Prompt(id="p1")]), make_node("b")],
			[make_edge("e1", "a", "b")],
		)
		return CanvasEditor(doc, Role.VIEW, "viewer", tracker, on_change=changes)

	@pytest.mark.parametrize("action", [
		lambda e: e.add_node(node_id="x"),
		lambda e: e.connect_to_new_node("a", Position(x=1, y=1)),
		lambda e: e.delete_node("a"),
		lambda e: e.rename_node("a", "renamed"),
		lambda e: e.drag_node("a", Position(x=5, y=5), cascade=True),
		lambda e: e.connect("b", "a"),
		lambda e: e.disconnect("e1"),
		lambda e: e.add_prompt("a", "new"),
		lambda e: e.edit_prompt("a", "p1", "changed"),
		lambda e: e.delete_prompt("a", "p1"),
		lambda e: e.set_prompt_completed("a", "p1", True),
		lambda e: e.start_timer("a"),
		lambda e: e.stop_timer("a"),
		lambda e: e.replace_document([], []),
	])
	def test_view_role_blocks_every_mutation(self, viewer, tracker, changes, action):
		before = viewer.document.model_dump()

		with pytest.raises(PermissionDeniedError):
			action(viewer)

		assert viewer.document.model_dump() == before
		assert tracker.list("canvas-1") == []
		assert changes.count == 0


class TestReplaceDocument:
	def test_replace_keeps_canvas_id(self, editor, changes):
		editor.add_node(node_id="old")
		replaced = editor.replace_document([make_node("n1"), make_node("n2")], [make_edge("e", "n1", "n2")], "New title")

		assert replaced.id == "canvas-1"
		assert replaced.title == "New title"
		assert replaced.node_ids() == {"n1", "n2"}
		# Replacement is persisted by the caller, not via on_change
		assert changes.count == 1

	def test_replace_rejects_broken_graph(self, editor):
		editor.add_node(node_id="keep")
		with pytest.raises(ValidationError):
			editor.replace_document([make_node("a")], [make_edge("e", "a", "ghost")])
		assert editor.document.node_ids() == {"keep"}
