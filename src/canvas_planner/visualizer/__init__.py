"""Visualizer package - Rich terminal views for canvas history and events."""

from .events import render_event_groups
from .history import render_backup_history, render_slots

__all__ = [
	"render_backup_history",
	"render_event_groups",
	"render_slots",
]
