"""JSON API endpoints for canvas persistence, sharing, slots, events and export."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from typing import Any, Optional

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse

from ..audit import DateRange, EventTracker
from ..errors import AuthError, CanvasError, ValidationError
from ..graph.codec import to_json, to_outline
from ..graph.models import GraphDocument
from ..permissions import Operation, Role, require
from ..persistence import CanvasDatabase, CanvasRepository, EventType, ShareRepository, SlotRepository

logger = logging.getLogger(__name__)

USER_HEADER = "x-user-email"


def get_database(request: Request) -> CanvasDatabase:
	return request.app.state.database


def get_canvases(request: Request) -> CanvasRepository:
	return request.app.state.canvases


def get_tracker(request: Request) -> EventTracker:
	return request.app.state.tracker


async def current_user(request: Request) -> str:
	"""Map the upstream-authenticated email to a user id."""
	email = (request.headers.get(USER_HEADER) or "").strip()
	if not email:
		raise AuthError("Unauthorized")
	return await get_database(request).ensure_user(email)


async def read_json(request: Request) -> dict[str, Any]:
	try:
		body = await request.json()
	except json.JSONDecodeError:
		raise ValidationError("Request body must be valid JSON")
	if not isinstance(body, dict):
		raise ValidationError("Request body must be a JSON object")
	return body


async def canvas_role(request: Request, user_id: str) -> tuple[str, Role]:
	canvas_id = request.path_params["id"]
	role = await get_canvases(request).resolve_role(canvas_id, user_id)
	return canvas_id, role


async def handle_canvas_error(request: Request, exc: CanvasError) -> JSONResponse:
	"""Translate domain errors into ``{"error": message}`` responses."""
	if exc.status_code >= 500:
		logger.error(f"{request.method} {request.url.path} failed: {exc}")
	return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


# ----------------------------------------------------------------------
# Autosave
# ----------------------------------------------------------------------

async def api_autosave_load(request: Request) -> JSONResponse:
	"""Load a canvas by id, or the caller's most recent one."""
	user_id = await current_user(request)
	canvas_id = request.query_params.get("canvasId")
	result = await get_canvases(request).load(user_id, canvas_id)
	return JSONResponse(result.to_wire())


async def api_autosave_save(request: Request) -> JSONResponse:
	"""Upsert a canvas. Without ``canvasId`` the most recent canvas is updated or a new one created."""
	user_id = await current_user(request)
	body = await read_json(request)
	if "nodes" not in body or "edges" not in body:
		raise ValidationError("Invalid data: nodes and edges are required")

	result = await get_canvases(request).upsert(
		user_id,
		body.get("canvasId"),
		body["nodes"],
		body["edges"],
		body.get("title"),
	)
	return JSONResponse({"success": True, **result.to_wire()})


# ----------------------------------------------------------------------
# Sharing
# ----------------------------------------------------------------------

async def api_shares(request: Request) -> JSONResponse:
	user_id = await current_user(request)
	shares: ShareRepository = request.app.state.shares
	canvas_id = request.path_params["id"]

	if request.method == "GET":
		items = await shares.list_shares(user_id, canvas_id)
		return JSONResponse({"shares": [s.to_wire() for s in items]})

	if request.method == "POST":
		body = await read_json(request)
		share = await shares.add_or_update_share(
			user_id, canvas_id, body.get("email", ""), body.get("permission", "")
		)
		return JSONResponse({"success": True, "share": share.to_wire()})

	email = request.query_params.get("email", "")
	await shares.remove_share(user_id, canvas_id, email)
	return JSONResponse({"success": True})


# ----------------------------------------------------------------------
# Save slots
# ----------------------------------------------------------------------

def _slot_number(raw: Optional[str]) -> int:
	try:
		return int(raw)
	except (TypeError, ValueError):
		raise ValidationError("slotNumber must be an integer")


async def api_slots(request: Request) -> JSONResponse:
	user_id = await current_user(request)
	canvas_id, role = await canvas_role(request, user_id)
	slots: SlotRepository = request.app.state.slots

	if request.method == "GET":
		require(role, Operation.READ)
		slot_param = request.query_params.get("slot")
		if slot_param is not None:
			slot = await slots.get(canvas_id, _slot_number(slot_param))
			return JSONResponse({"slot": slot.to_wire()})
		items = await slots.list(canvas_id)
		return JSONResponse({"slots": [s.to_wire() for s in items]})

	require(role, Operation.MUTATE)

	if request.method == "POST":
		body = await read_json(request)
		if "nodes" not in body or "edges" not in body:
			raise ValidationError("Invalid data: nodes and edges are required")
		slot = await slots.save(
			canvas_id,
			_slot_number(body.get("slotNumber")),
			body["nodes"],
			body["edges"],
			body.get("slotName"),
		)
		return JSONResponse({"success": True, "slot": slot.to_wire()})

	await slots.delete(canvas_id, _slot_number(request.query_params.get("slot")))
	return JSONResponse({"success": True})


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------

def _parse_types(raw: Optional[str]) -> Optional[list[EventType]]:
	if raw is None:
		return None
	try:
		return [EventType(t.strip()) for t in raw.split(",") if t.strip()]
	except ValueError as e:
		raise ValidationError(f"Unknown event type: {e}")


def _parse_range(params) -> DateRange:
	start, end = params.get("from"), params.get("to")
	if start or end:
		try:
			return (
				date.fromisoformat(start) if start else None,
				date.fromisoformat(end) if end else None,
			)
		except ValueError:
			raise ValidationError("from/to must be YYYY-MM-DD dates")
	return params.get("range", "all")


async def api_events_list(request: Request) -> JSONResponse:
	"""Audit events for a canvas, newest first, plus their day grouping."""
	user_id = await current_user(request)
	canvas_id, role = await canvas_role(request, user_id)
	require(role, Operation.READ)

	params = request.query_params
	types = _parse_types(params.get("types"))
	date_range = _parse_range(params)
	try:
		limit = int(params.get("limit", "100"))
	except ValueError:
		raise ValidationError("limit must be an integer")

	tracker = get_tracker(request)
	groups = await asyncio.to_thread(
		tracker.list_grouped, canvas_id, types, date_range, limit
	)
	events = [event for group in groups for event in group.events]
	return JSONResponse({
		"events": [e.to_wire() for e in events],
		"groups": [
			{
				"day": g.day.isoformat(),
				"label": g.label,
				"events": [e.to_wire() for e in g.events],
			}
			for g in groups
		],
	})


async def api_events_record(request: Request) -> JSONResponse:
	"""Append one event. Only callers who may edit the canvas can record."""
	user_id = await current_user(request)
	canvas_id, role = await canvas_role(request, user_id)
	require(role, Operation.MUTATE)

	body = await read_json(request)
	event_type = body.get("eventType")
	target_id = body.get("targetId")
	if not event_type or not target_id:
		raise ValidationError("eventType and targetId are required")
	try:
		event_type = EventType(event_type)
	except ValueError:
		raise ValidationError(f"Unknown event type: {event_type}")

	event = await asyncio.to_thread(
		get_tracker(request).record,
		canvas_id,
		user_id,
		event_type,
		str(target_id),
		body.get("eventData") or {},
	)
	return JSONResponse({"success": True, "event": event.to_wire()}, status_code=201)


# ----------------------------------------------------------------------
# Export
# ----------------------------------------------------------------------

async def api_export(request: Request) -> JSONResponse | PlainTextResponse:
	user_id = await current_user(request)
	canvas_id, role = await canvas_role(request, user_id)
	require(role, Operation.READ)

	loaded = await get_canvases(request).load(user_id, canvas_id)
	document = GraphDocument(
		id=loaded.canvas_id,
		title=loaded.title,
		nodes=loaded.nodes,
		edges=loaded.edges,
		last_modified_at=loaded.last_modified,
	)

	fmt = request.query_params.get("format", "json")
	if fmt == "json":
		return JSONResponse(to_json(document))
	if fmt == "outline":
		return PlainTextResponse(to_outline(document), media_type="text/markdown")
	raise ValidationError(f"Unknown export format: {fmt}")
