"""Allocation status values and lifecycle rules.

Confirmed -> Checked-in -> Checked-out   (forward only)
any active status -> Cancelled            (terminal)
Blocked is only created as a block and only left by unblock or cancel.
"""

from __future__ import annotations

from typing import Literal

from accommodation.domain.errors import InvalidStatusTransitionError

CONFIRMED = "Confirmed"
CHECKED_IN = "Checked-in"
CHECKED_OUT = "Checked-out"
CANCELLED = "Cancelled"
BLOCKED = "Blocked"

BookingStatus = Literal["Confirmed", "Checked-in", "Checked-out", "Cancelled", "Blocked"]

ALL_STATUSES = (CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED, BLOCKED)

# Statuses that hold a (room, date) slot exclusively
ACTIVE_STATUSES = (CONFIRMED, CHECKED_IN, CHECKED_OUT, BLOCKED)

# Statuses whose occupant counts for gender segregation
OCCUPIED_STATUSES = (CONFIRMED, CHECKED_IN, CHECKED_OUT)

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    CONFIRMED: frozenset({CHECKED_IN, CANCELLED}),
    CHECKED_IN: frozenset({CHECKED_OUT, CANCELLED}),
    CHECKED_OUT: frozenset({CANCELLED}),
    BLOCKED: frozenset({CANCELLED}),
    CANCELLED: frozenset(),
}


def is_active(status: str) -> bool:
    return status in ACTIVE_STATUSES


def can_transition(current: str, requested: str) -> bool:
    """Return True if ``current -> requested`` is allowed (same status is a no-op)."""
    if current == requested:
        return True
    return requested in _ALLOWED_TRANSITIONS.get(current, frozenset())


def assert_transition(current: str, requested: str) -> None:
    """Raise InvalidStatusTransitionError unless the status change is allowed."""
    if not can_transition(current, requested):
        raise InvalidStatusTransitionError(current, requested)
