"""Stack-inspection monitor: permission sets and the stack walk."""
from __future__ import annotations

from typing import Iterable, Optional

from ..constants import OPERATIONS, PERMISSIONS
from .core import MonitorState
from .errors import PermissionDenied


def permission_set(*names: str) -> frozenset:
    """Return a permission set, rejecting names outside the alphabet."""

    perms = frozenset(names)
    unknown = perms - PERMISSIONS
    if unknown:
        raise ValueError(f"Unknown permissions: {sorted(unknown)}")
    return perms


def required_permissions(operation: str) -> frozenset:
    try:
        return OPERATIONS[operation]["requires"]
    except KeyError:
        raise ValueError(f"Unknown privileged operation: {operation}") from None


def grants(frame: frozenset, requested: frozenset) -> bool:
    return (requested & frame) == requested


def denying_frame(requested: frozenset, stack: Iterable[frozenset]) -> Optional[int]:
    """Index of the first frame, most recent first, that lacks ``requested``."""

    if not requested:
        return None
    for index, frame in enumerate(stack):
        if not grants(frame, requested):
            return index
    return None


def check(requested: frozenset, stack: Iterable[frozenset]) -> bool:
    """Permit iff every frame on the call chain grants the whole request.

    An empty request, or an empty stack, always permits.
    """

    return denying_frame(requested, stack) is None


def missing(requested: frozenset, stack: tuple) -> frozenset:
    index = denying_frame(requested, stack)
    if index is None:
        return frozenset()
    return frozenset(requested - stack[index])


def inspect_stack(operation: str, resource: str, state: MonitorState) -> MonitorState:
    """Run the stack walk for a privileged operation.

    Returns ``state`` unchanged on success. On denial raises
    :class:`PermissionDenied` naming the missing capability, carrying the
    state with the denial recorded in its audit log.
    """

    requested = required_permissions(operation)
    lacking = missing(requested, state.stack)
    if lacking:
        error = PermissionDenied(operation, resource, lacking)
        error.monitor_state = state.record(f"{operation}:{resource}:deny:stack")
        raise error
    return state


__all__ = [
    "check",
    "denying_frame",
    "grants",
    "inspect_stack",
    "missing",
    "permission_set",
    "required_permissions",
]
