"""
Permission gate for canvas access.

A pure function decides whether a role may perform an operation. Editor entry
points, save-slot and restore actions, and the HTTP handlers all go through
``require`` before touching a document.
"""

from enum import Enum
from typing import Optional

from .errors import PermissionDeniedError


class Role(str, Enum):
	"""A caller's relationship to a canvas."""
	OWNER = "owner"
	EDIT = "edit"
	VIEW = "view"


class Operation(str, Enum):
	"""Kinds of access a caller may request."""
	MUTATE = "mutate"
	READ = "read"


_ALLOWED: dict[Role, frozenset[Operation]] = {
	Role.OWNER: frozenset({Operation.MUTATE, Operation.READ}),
	Role.EDIT: frozenset({Operation.MUTATE, Operation.READ}),
	Role.VIEW: frozenset({Operation.READ}),
}


def is_allowed(role: Role | str, operation: Operation | str) -> bool:
	"""Return True if ``role`` may perform ``operation``. Unknown values are denied."""
	try:
		role = Role(role)
		operation = Operation(operation)
	except ValueError:
		return False
	return operation in _ALLOWED[role]


def require(role: Role | str, operation: Operation | str) -> None:
	"""Raise PermissionDeniedError unless ``role`` may perform ``operation``."""
	if not is_allowed(role, operation):
		role_name = getattr(role, "value", role)
		op_name = getattr(operation, "value", operation)
		raise PermissionDeniedError(f"Role '{role_name}' may not {op_name} this canvas")


def require_owner(role: Role | str) -> None:
	"""Share management is reserved to the canvas owner."""
	if role != Role.OWNER:
		raise PermissionDeniedError("Only the canvas owner can manage sharing")


def resolve_role(owner_id: str, user_id: str, share_level: Optional[str] = None) -> Optional[Role]:
	"""
	Derive a caller's role on a canvas.

	Args:
		owner_id: User id that owns the canvas
		user_id: Caller's user id
		share_level: Permission level of a share matching the caller's email, if any

	Returns:
		The caller's Role, or None when the caller has no access
	"""
	if owner_id == user_id:
		return Role.OWNER
	if share_level == Role.EDIT.value:
		return Role.EDIT
	if share_level == Role.VIEW.value:
		return Role.VIEW
	return None
