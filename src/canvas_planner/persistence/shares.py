"""Share Repository - owner-managed collaborator permissions per canvas."""

import logging

from ..errors import NotFoundError, ValidationError
from ..graph.models import utc_now
from ..permissions import require_owner
from .canvases import CanvasRepository
from .models import PermissionLevel, SharePermission

logger = logging.getLogger(__name__)


class ShareRepository:
	"""
	Sharing API. Every call requires the caller to own the canvas.

	Shares are keyed by (canvas, email); re-sharing with the same email
	updates the permission level in place.
	"""

	def __init__(self, canvases: CanvasRepository):
		self.canvases = canvases
		self.database = canvases.database

	async def _require_owner(self, user_id: str, canvas_id: str) -> None:
		role = await self.canvases.resolve_role(canvas_id, user_id)
		require_owner(role)

	async def list_shares(self, user_id: str, canvas_id: str) -> list[SharePermission]:
		"""Collaborators of a canvas, newest share first."""
		await self._require_owner(user_id, canvas_id)
		rows = await self.database.fetchall(
			"SELECT * FROM canvas_shares WHERE canvas_id = ? ORDER BY created_at DESC",
			(canvas_id,),
		)
		return [SharePermission.model_validate(dict(row)) for row in rows]

	async def add_or_update_share(
		self,
		user_id: str,
		canvas_id: str,
		email: str,
		level: str,
	) -> SharePermission:
		"""
		Grant or change a collaborator's access.

		Raises:
			ValidationError: Missing email, unknown level, or sharing with yourself
			PermissionDeniedError: Caller does not own the canvas
		"""
		email = (email or "").strip().lower()
		if not email:
			raise ValidationError("Email and permission are required")
		try:
			level = PermissionLevel(level)
		except ValueError:
			raise ValidationError(f"Invalid permission level: {level}")

		await self._require_owner(user_id, canvas_id)

		owner_email = await self.database.get_user_email(user_id)
		if owner_email and owner_email.lower() == email:
			raise ValidationError("Cannot share with yourself")

		now = utc_now()
		await self.database.execute(
			"""
			INSERT INTO canvas_shares
				(canvas_id, shared_with_email, shared_by_user_id, permission_level, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?)
			ON CONFLICT(canvas_id, shared_with_email) DO UPDATE SET
				permission_level = excluded.permission_level,
				shared_by_user_id = excluded.shared_by_user_id,
				updated_at = excluded.updated_at
			""",
			(canvas_id, email, user_id, level.value, now, now),
		)
		logger.info(f"Shared canvas {canvas_id} with {email} ({level.value})")

		row = await self.database.fetchone(
			"SELECT * FROM canvas_shares WHERE canvas_id = ? AND shared_with_email = ?",
			(canvas_id, email),
		)
		return SharePermission.model_validate(dict(row))

	async def remove_share(self, user_id: str, canvas_id: str, email: str) -> None:
		"""Revoke a collaborator's access."""
		email = (email or "").strip().lower()
		if not email:
			raise ValidationError("Email is required")

		await self._require_owner(user_id, canvas_id)
		removed = await self.database.execute(
			"DELETE FROM canvas_shares WHERE canvas_id = ? AND shared_with_email = ?",
			(canvas_id, email),
		)
		if not removed:
			raise NotFoundError(f"No share for {email} on canvas {canvas_id}")
		logger.info(f"Removed share of canvas {canvas_id} for {email}")

	async def shared_with(self, user_id: str) -> list[SharePermission]:
		"""Shares granted to the caller's email across all canvases."""
		email = await self.database.get_user_email(user_id)
		if not email:
			return []
		rows = await self.database.fetchall(
			"SELECT * FROM canvas_shares WHERE shared_with_email = ? ORDER BY updated_at DESC",
			(email,),
		)
		return [SharePermission.model_validate(dict(row)) for row in rows]
