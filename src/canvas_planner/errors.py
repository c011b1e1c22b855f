"""Error taxonomy shared by the editor, persistence layer and HTTP API."""


class CanvasError(Exception):
	"""Base class for all canvas-planner errors."""

	status_code = 500


class AuthError(CanvasError):
	"""Raised when a request carries no valid session."""

	status_code = 401


class PermissionDeniedError(CanvasError):
	"""Raised when a caller's role does not allow the requested operation."""

	status_code = 403


class NotFoundError(CanvasError):
	"""Raised when a canvas, user, slot or share does not exist."""

	status_code = 404


class ValidationError(CanvasError):
	"""Raised when a payload is malformed or breaks a graph invariant."""

	status_code = 400


class PersistenceError(CanvasError):
	"""Raised when the backing store is unreachable or rejects a write."""

	status_code = 503
