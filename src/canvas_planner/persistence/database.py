"""
Canvas Database - SQLite-backed store for canvases, shares and save slots.

One connection is shared by the repositories built on top of it
(``CanvasRepository``, ``ShareRepository``, ``SlotRepository``).
"""

import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiosqlite

from ..errors import PersistenceError

logger = logging.getLogger(__name__)


SCHEMA = """
	CREATE TABLE IF NOT EXISTS users (
		id TEXT PRIMARY KEY,
		email TEXT UNIQUE NOT NULL,
		created_at TEXT NOT NULL
	);

	CREATE TABLE IF NOT EXISTS canvases (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
		title TEXT NOT NULL,
		nodes TEXT NOT NULL DEFAULT '[]',
		edges TEXT NOT NULL DEFAULT '[]',
		created_at TEXT NOT NULL,
		last_modified_at TEXT NOT NULL
	);

	CREATE TABLE IF NOT EXISTS canvas_shares (
		canvas_id TEXT NOT NULL REFERENCES canvases(id) ON DELETE CASCADE,
		shared_with_email TEXT NOT NULL,
		shared_by_user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
		permission_level TEXT NOT NULL CHECK (permission_level IN ('view', 'edit')),
		created_at TEXT NOT NULL,
		updated_at TEXT NOT NULL,
		UNIQUE(canvas_id, shared_with_email)
	);

	CREATE TABLE IF NOT EXISTS canvas_save_slots (
		canvas_id TEXT NOT NULL REFERENCES canvases(id) ON DELETE CASCADE,
		slot_number INTEGER NOT NULL,
		slot_name TEXT,
		nodes TEXT NOT NULL DEFAULT '[]',
		edges TEXT NOT NULL DEFAULT '[]',
		saved_at TEXT NOT NULL,
		UNIQUE(canvas_id, slot_number)
	);

	CREATE INDEX IF NOT EXISTS idx_canvases_user ON canvases(user_id, last_modified_at);
	CREATE INDEX IF NOT EXISTS idx_canvas_shares_email ON canvas_shares(shared_with_email);
"""


class CanvasDatabase:
	"""
	Owns the aiosqlite connection and schema.

	Usage:
		db = CanvasDatabase("data/canvas.db")
		await db.init()
		user_id = await db.ensure_user("me@example.com")
		...
		await db.close()
	"""

	def __init__(self, db_path: str | Path):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None

	async def init(self):
		"""Open the connection and create the schema."""
		if self._db is not None:
			return
		self._db = await aiosqlite.connect(str(self.db_path))
		self._db.row_factory = aiosqlite.Row
		await self._db.execute("PRAGMA foreign_keys = ON")
		await self._db.executescript(SCHEMA)
		await self._db.commit()
		logger.info(f"Canvas database initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	async def connection(self) -> aiosqlite.Connection:
		"""Return the open connection, initializing lazily."""
		if not self._db:
			await self.init()
		return self._db

	async def fetchone(self, query: str, params: tuple | list = ()) -> Optional[aiosqlite.Row]:
		db = await self.connection()
		try:
			async with db.execute(query, params) as cursor:
				return await cursor.fetchone()
		except sqlite3.Error as e:
			raise PersistenceError(f"Query failed: {e}") from e

	async def fetchall(self, query: str, params: tuple | list = ()) -> list[aiosqlite.Row]:
		db = await self.connection()
		try:
			async with db.execute(query, params) as cursor:
				return list(await cursor.fetchall())
		except sqlite3.Error as e:
			raise PersistenceError(f"Query failed: {e}") from e

	async def execute(self, query: str, params: tuple | list = ()) -> int:
		"""Run a write statement and commit. Returns the affected row count."""
		db = await self.connection()
		try:
			cursor = await db.execute(query, params)
			await db.commit()
			return cursor.rowcount
		except sqlite3.Error as e:
			await db.rollback()
			raise PersistenceError(f"Write failed: {e}") from e

	async def ensure_user(self, email: str) -> str:
		"""
		Get or create the user row for an authenticated email.

		Session issuance happens upstream; this only maps an email to a stable id.
		"""
		email = email.strip().lower()
		row = await self.fetchone("SELECT id FROM users WHERE email = ?", (email,))
		if row:
			return row["id"]

		user_id = str(uuid.uuid4())
		await self.execute(
			"INSERT INTO users (id, email, created_at) VALUES (?, ?, ?)",
			(user_id, email, datetime.now().isoformat()),
		)
		logger.info(f"Registered user {user_id}")
		return user_id

	async def get_user_email(self, user_id: str) -> Optional[str]:
		row = await self.fetchone("SELECT email FROM users WHERE id = ?", (user_id,))
		return row["email"] if row else None
