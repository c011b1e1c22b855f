"""Shared fixtures for tests that need a real canvas database."""

from pathlib import Path

import pytest
import pytest_asyncio

from canvas_planner.audit import EventTracker
from canvas_planner.backup import LocalBackupRing
from canvas_planner.persistence import AuditLog, CanvasDatabase, CanvasRepository, ShareRepository, SlotRepository


@pytest_asyncio.fixture
async def database(tmp_path: Path):
	db = CanvasDatabase(tmp_path / "canvas.db")
	await db.init()
	yield db
	await db.close()


@pytest.fixture
def canvases(database: CanvasDatabase) -> CanvasRepository:
	return CanvasRepository(database)


@pytest.fixture
def shares(canvases: CanvasRepository) -> ShareRepository:
	return ShareRepository(canvases)


@pytest.fixture
def slot_repository(database: CanvasDatabase) -> SlotRepository:
	return SlotRepository(database)


@pytest.fixture
def audit_log(tmp_path: Path) -> AuditLog:
	return AuditLog(tmp_path / "audit.db")


@pytest.fixture
def tracker(audit_log: AuditLog) -> EventTracker:
	return EventTracker(audit_log)


@pytest.fixture
def backups(tmp_path: Path) -> LocalBackupRing:
	return LocalBackupRing(tmp_path / "backups")
