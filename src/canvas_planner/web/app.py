"""Starlette app with route assembly."""

from __future__ import annotations

import contextlib
import logging
from typing import Optional

from starlette.applications import Starlette
from starlette.routing import Route

from ..audit import EventTracker
from ..config import Config, get_config
from ..errors import CanvasError
from ..persistence import AuditLog, CanvasDatabase, CanvasRepository, ShareRepository, SlotRepository
from .api import (
	api_autosave_load,
	api_autosave_save,
	api_events_list,
	api_events_record,
	api_export,
	api_shares,
	api_slots,
	handle_canvas_error,
)

logger = logging.getLogger(__name__)


def build_app(config: Optional[Config] = None) -> Starlette:
	"""Build and return the Starlette ASGI app."""
	config = config or get_config()

	@contextlib.asynccontextmanager
	async def lifespan(app: Starlette):
		database = CanvasDatabase(config.db_path)
		await database.init()
		app.state.database = database
		app.state.canvases = CanvasRepository(database, default_title=config.default_title)
		app.state.shares = ShareRepository(app.state.canvases)
		app.state.slots = SlotRepository(database, slot_count=config.slot_count)
		app.state.tracker = EventTracker(
			AuditLog(config.audit_db_path, retention=config.event_retention),
			max_undelivered=config.event_retention,
		)
		logger.info(f"Canvas API ready (db={config.db_path})")
		try:
			yield
		finally:
			await database.close()

	routes = [
		Route("/api/canvas/autosave", api_autosave_load, methods=["GET"]),
		Route("/api/canvas/autosave", api_autosave_save, methods=["POST"]),
		Route("/api/canvas/{id}/share", api_shares, methods=["GET", "POST", "DELETE"]),
		Route("/api/canvas/{id}/slots", api_slots, methods=["GET", "POST", "DELETE"]),
		Route("/api/canvas/{id}/events", api_events_list, methods=["GET"]),
		Route("/api/canvas/{id}/events", api_events_record, methods=["POST"]),
		Route("/api/canvas/{id}/export", api_export, methods=["GET"]),
	]

	return Starlette(
		routes=routes,
		lifespan=lifespan,
		exception_handlers={CanvasError: handle_canvas_error},
	)
