"""Shared utilities for visualizer views."""

from datetime import datetime
from typing import Any

from ..persistence.models import EventType


def format_timestamp(iso_str: str) -> str:
	"""Format an ISO timestamp as relative time (e.g. '2m ago') or absolute."""
	try:
		dt = datetime.fromisoformat(iso_str)
		delta = datetime.now(dt.tzinfo) - dt
		total_secs = int(delta.total_seconds())

		if total_secs < 0:
			return iso_str[:19]
		if total_secs < 60:
			return f"{total_secs}s ago"
		if total_secs < 3600:
			return f"{total_secs // 60}m ago"
		if total_secs < 86400:
			return f"{total_secs // 3600}h ago"
		days = total_secs // 86400
		return f"{days}d ago"
	except (ValueError, TypeError):
		return str(iso_str)[:19]


def format_clock(iso_str: str) -> str:
	"""Local wall-clock time of an ISO timestamp, e.g. '14:05'."""
	try:
		return datetime.fromisoformat(iso_str).astimezone().strftime("%H:%M")
	except (ValueError, TypeError):
		return str(iso_str)[:16]


EVENT_STYLES = {
	EventType.BLOCK_CREATED: "green",
	EventType.GOAL_CREATED: "magenta",
	EventType.BLOCK_DELETED: "red",
	EventType.BLOCK_RENAMED: "yellow",
	EventType.PROMPT_ADDED: "cyan",
	EventType.PROMPT_DELETED: "red",
	EventType.PROMPT_COMPLETED: "green",
	EventType.PROMPT_UNCOMPLETED: "yellow",
	EventType.TIMER_STARTED: "blue",
	EventType.TIMER_STOPPED: "blue",
}


def describe_event(event_type: EventType, data: dict[str, Any]) -> str:
	"""One-line human description of an audit event."""
	if event_type == EventType.BLOCK_RENAMED:
		return f"{data.get('old_title', '')} -> {data.get('new_title', '')}"
	if event_type == EventType.TIMER_STOPPED and data.get("duration") is not None:
		return f"{data.get('node_title', '')} ({data['duration']}s)"
	if "prompt_content" in data:
		return f"{data.get('node_title', '')}: {data['prompt_content']}"
	return str(data.get("title") or data.get("node_title") or "")


def truncate(text: str, max_len: int = 60) -> str:
	"""Shorten text for table display."""
	if len(text) <= max_len:
		return text
	return text[:max_len - 3] + "..."
