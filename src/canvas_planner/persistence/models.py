"""Typed results and records returned by the persistence layer."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..graph.models import Edge, Node, WireModel, utc_now


class UpsertResult(WireModel):
	"""Outcome of saving a canvas."""
	canvas_id: str
	action: Literal["created", "updated"]


class LoadResult(WireModel):
	"""A loaded canvas. ``exists=False`` means an empty, not-yet-saved document."""
	nodes: list[Node] = Field(default_factory=list)
	edges: list[Edge] = Field(default_factory=list)
	title: str = ""
	canvas_id: Optional[str] = None
	last_modified: Optional[str] = None
	exists: bool = False


class CanvasRecord(BaseModel):
	"""Row-level view of a canvas, used for access checks."""
	id: str
	user_id: str
	title: str
	last_modified_at: str


class PermissionLevel(str, Enum):
	VIEW = "view"
	EDIT = "edit"


class SharePermission(WireModel):
	"""A collaborator's access to a canvas, unique per (canvas, email)."""
	canvas_id: str
	shared_with_email: str
	permission_level: PermissionLevel
	shared_by_user_id: str
	created_at: str = Field(default_factory=utc_now)
	updated_at: str = Field(default_factory=utc_now)


class SaveSlot(WireModel):
	"""A numbered checkpoint. Saving to an occupied slot overwrites it."""
	canvas_id: str
	slot_number: int
	slot_name: Optional[str] = None
	nodes: list[Node] = Field(default_factory=list)
	edges: list[Edge] = Field(default_factory=list)
	saved_at: str = Field(default_factory=utc_now)


class EventType(str, Enum):
	"""Semantic mutations recorded in the audit trail."""
	BLOCK_CREATED = "block_created"
	GOAL_CREATED = "goal_created"
	BLOCK_DELETED = "block_deleted"
	BLOCK_RENAMED = "block_renamed"
	PROMPT_ADDED = "prompt_added"
	PROMPT_DELETED = "prompt_deleted"
	PROMPT_COMPLETED = "prompt_completed"
	PROMPT_UNCOMPLETED = "prompt_uncompleted"
	TIMER_STARTED = "timer_started"
	TIMER_STOPPED = "timer_stopped"


class AuditEvent(WireModel):
	"""One immutable audit record."""
	model_config = ConfigDict(frozen=True)

	id: str
	canvas_id: str
	user_id: str
	event_type: EventType
	target_id: str
	event_data: dict[str, Any] = Field(default_factory=dict)
	created_at: str
