"""Persistence layer - canvases, shares, save slots and the audit log."""

from .audit_log import AuditLog
from .canvases import CanvasBackend, CanvasRepository, RepositoryBackend
from .database import CanvasDatabase
from .models import (
	AuditEvent,
	EventType,
	LoadResult,
	PermissionLevel,
	SaveSlot,
	SharePermission,
	UpsertResult,
)
from .shares import ShareRepository
from .slots import SlotRepository

__all__ = [
	"AuditEvent",
	"AuditLog",
	"CanvasBackend",
	"CanvasDatabase",
	"CanvasRepository",
	"EventType",
	"LoadResult",
	"PermissionLevel",
	"RepositoryBackend",
	"SaveSlot",
	"ShareRepository",
	"SharePermission",
	"SlotRepository",
	"UpsertResult",
]
