"""
Event Tracker - audit trail of semantic canvas edits.

Events are recorded synchronously at the call site of each mutation, before
and independently of autosave, so the trail stays complete even when a later
graph save fails. Reads support type filters, date presets and grouping by
local calendar day.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from .errors import PersistenceError, ValidationError
from .persistence.audit_log import DEFAULT_RETENTION, AuditLog
from .persistence.models import AuditEvent, EventType

logger = logging.getLogger(__name__)


class DatePreset(str, Enum):
	ALL = "all"
	TODAY = "today"
	YESTERDAY = "yesterday"
	LAST_7_DAYS = "last7days"
	LAST_30_DAYS = "last30days"


DateRange = Union[DatePreset, str, tuple[Optional[date], Optional[date]]]


def prompt_target(node_id: str, prompt_id: str) -> str:
	"""Target id used for prompt-level events."""
	return f"{node_id}:{prompt_id}"


def _local_now(now: Optional[datetime]) -> datetime:
	now = now or datetime.now()
	# Naive datetimes are read as local time
	return now.astimezone() if now.tzinfo is None else now


def _day_start(day: date, tz: tzinfo) -> datetime:
	return datetime.combine(day, time.min, tzinfo=tz)


def _to_utc(value: Optional[datetime]) -> Optional[str]:
	if value is None:
		return None
	return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def resolve_date_range(
	date_range: DateRange,
	now: Optional[datetime] = None,
) -> tuple[Optional[datetime], Optional[datetime]]:
	"""
	Turn a preset or explicit range into ``[start, end)`` bounds in local time.

	``today``/``yesterday`` cover whole local days, ``last7days``/``last30days``
	reach back from ``now``, and an explicit ``(from, to)`` pair of dates is
	inclusive of both days. Either side of a pair may be None.
	"""
	now = _local_now(now)
	tz = now.tzinfo

	if isinstance(date_range, tuple):
		if len(date_range) != 2:
			raise ValidationError("Explicit date range must be a (from, to) pair")
		start_day, end_day = date_range
		if start_day and end_day and start_day > end_day:
			raise ValidationError("Date range start is after its end")
		start = _day_start(start_day, tz) if start_day else None
		end = _day_start(end_day + timedelta(days=1), tz) if end_day else None
		return start, end

	try:
		preset = DatePreset(date_range)
	except ValueError:
		raise ValidationError(f"Unknown date range: {date_range}")

	today = _day_start(now.date(), tz)
	if preset == DatePreset.TODAY:
		return today, today + timedelta(days=1)
	if preset == DatePreset.YESTERDAY:
		return today - timedelta(days=1), today
	if preset == DatePreset.LAST_7_DAYS:
		return now - timedelta(days=7), None
	if preset == DatePreset.LAST_30_DAYS:
		return now - timedelta(days=30), None
	return None, None


@dataclass
class DayGroup:
	"""Events of one local calendar day, newest first."""
	day: date
	label: str
	events: list[AuditEvent] = field(default_factory=list)


def day_label(day: date, today: date) -> str:
	if day == today:
		return "Today"
	if day == today - timedelta(days=1):
		return "Yesterday"
	return day.strftime("%d %B %Y")


def group_by_day(events: Iterable[AuditEvent], now: Optional[datetime] = None) -> list[DayGroup]:
	"""Group events by local day: newest day first, newest event first within a day."""
	now = _local_now(now)
	groups: dict[date, list[AuditEvent]] = {}
	for event in events:
		day = datetime.fromisoformat(event.created_at).astimezone(now.tzinfo).date()
		groups.setdefault(day, []).append(event)

	return [
		DayGroup(
			day=day,
			label=day_label(day, now.date()),
			events=sorted(groups[day], key=lambda e: e.created_at, reverse=True),
		)
		for day in sorted(groups, reverse=True)
	]


class EventTracker:
	"""
	Records and queries audit events for canvases.

	Usage:
		tracker = EventTracker(AuditLog("data/audit.db"))
		tracker.record(canvas_id, user_id, EventType.BLOCK_CREATED, node.id, {"title": node.title})
		groups = tracker.list_grouped(canvas_id, date_range="today")
	"""

	def __init__(
		self,
		log: AuditLog,
		clock: Optional[Callable[[], datetime]] = None,
		max_undelivered: int = DEFAULT_RETENTION,
	):
		self.log = log
		self._clock = clock or (lambda: datetime.now(timezone.utc))
		self.max_undelivered = max_undelivered
		# Events whose write failed; retried ahead of the next record
		self._undelivered: list[AuditEvent] = []

	@property
	def undelivered(self) -> list[AuditEvent]:
		return list(self._undelivered)

	def record(
		self,
		canvas_id: Optional[str],
		user_id: str,
		event_type: EventType | str,
		target_id: str,
		event_data: Optional[dict[str, Any]] = None,
	) -> Optional[AuditEvent]:
		"""
		Append one immutable event for a mutation that just happened.

		Returns:
			The recorded event, or None when there is no canvas to attach it to
		"""
		if not canvas_id:
			logger.warning(f"No canvas id for {event_type} on {target_id}, event not recorded")
			return None

		event = AuditEvent(
			id=str(uuid.uuid4()),
			canvas_id=canvas_id,
			user_id=user_id,
			event_type=EventType(event_type),
			target_id=target_id,
			event_data=event_data or {},
			created_at=_to_utc(self._clock()),
		)
		self._undelivered.append(event)
		if len(self._undelivered) > self.max_undelivered:
			dropped = self._undelivered.pop(0)
			logger.warning(f"Audit retry queue full, dropping {dropped.event_type.value} event {dropped.id}")
		self._deliver()
		return event

	def _deliver(self) -> None:
		while self._undelivered:
			event = self._undelivered[0]
			try:
				self.log.append(event)
			except PersistenceError:
				logger.exception(f"Audit write failed, {len(self._undelivered)} event(s) queued for retry")
				return
			self._undelivered.pop(0)

	def list(
		self,
		canvas_id: str,
		types: Optional[Iterable[EventType | str]] = None,
		date_range: DateRange = DatePreset.ALL,
		limit: int = 100,
		now: Optional[datetime] = None,
	) -> list[AuditEvent]:
		"""Events for a canvas matching the filters, newest first."""
		start, end = resolve_date_range(date_range, now)
		return self.log.list(
			canvas_id,
			types=types,
			since=_to_utc(start),
			until=_to_utc(end),
			limit=limit,
		)

	def list_grouped(
		self,
		canvas_id: str,
		types: Optional[Iterable[EventType | str]] = None,
		date_range: DateRange = DatePreset.ALL,
		limit: int = 100,
		now: Optional[datetime] = None,
	) -> list[DayGroup]:
		"""Like ``list`` but grouped by local calendar day for display."""
		events = self.list(canvas_id, types=types, date_range=date_range, limit=limit, now=now)
		return group_by_day(events, now=now)
