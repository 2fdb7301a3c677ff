"""Slot conflict detection for room bookings.

For every target (room, date) the existing rows are classified as:

  free        - nothing booked
  recyclable  - only Cancelled rows; the writer deletes them and reuses the slot
  conflict    - an active row (Confirmed, Checked-in, Checked-out or Blocked)

Detection is advisory and has no side effects. Whether a conflict can be
overridden is decided by force_override; the partial unique index on
(room_id, date) remains the authoritative guard.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence

from psycopg2.extensions import cursor as PgCursor

from accommodation.domain.booking_status import BLOCKED, CANCELLED, is_active
from accommodation.infra.repositories.bookings_repository import select_slot_rows
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

FREE = "free"
RECYCLABLE = "recyclable"
CONFLICT = "conflict"


@dataclass(frozen=True)
class SlotState:
    """Classification of one (room, date) slot."""

    date: date
    kind: str
    existing_id: str | None = None
    existing_status: str | None = None
    recyclable_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_blocked(self) -> bool:
        return self.kind == CONFLICT and self.existing_status == BLOCKED


def classify_slot(day: date, rows: Iterable[tuple[str, str]]) -> SlotState:
    """Classify one date from its existing (booking_id, status) rows.

    An active row always wins; when several active rows exist (legacy data
    predating the unique index) a Blocked row is reported first.
    """
    active: list[tuple[str, str]] = []
    cancelled: list[str] = []
    for booking_id, status in rows:
        if status == CANCELLED:
            cancelled.append(booking_id)
        elif is_active(status):
            active.append((booking_id, status))

    if active:
        active.sort(key=lambda r: r[1] != BLOCKED)
        existing_id, existing_status = active[0]
        return SlotState(
            date=day,
            kind=CONFLICT,
            existing_id=existing_id,
            existing_status=existing_status,
            recyclable_ids=tuple(cancelled),
        )
    if cancelled:
        return SlotState(date=day, kind=RECYCLABLE, recyclable_ids=tuple(cancelled))
    return SlotState(date=day, kind=FREE)


def detect_conflicts(
    cur: PgCursor,
    *,
    room_id: str,
    dates: Sequence[date],
    exclude_booking_id: str | None = None,
    lock: bool = False,
) -> list[SlotState]:
    """Classify every target date of a room.

    Args:
        cur: Database cursor (should be within a transaction).
        room_id: Room identifier.
        dates: Ordered target dates.
        exclude_booking_id: Booking to ignore (for updates of itself).
        lock: If True, existing slot rows are locked FOR UPDATE.

    Returns:
        One SlotState per date, in the order of ``dates``.
    """
    rows_by_date: dict[date, list[tuple[str, str]]] = {d: [] for d in dates}
    for booking_id, day, status in select_slot_rows(
        cur,
        room_id=room_id,
        dates=dates,
        exclude_booking_id=exclude_booking_id,
        lock=lock,
    ):
        rows_by_date.setdefault(day, []).append((booking_id, status))

    slots = [classify_slot(d, rows_by_date[d]) for d in dates]

    conflicts = [s for s in slots if s.kind == CONFLICT]
    if conflicts:
        logger.warning(
            "booking conflict detected",
            extra={
                "extra_fields": safe_log_context(
                    room_id=room_id,
                    requested_dates=list(dates),
                    conflicting_dates=[s.date for s in conflicts],
                    blocked_count=sum(1 for s in conflicts if s.is_blocked),
                ),
            },
        )
    return slots


def conflicting(slots: Sequence[SlotState]) -> list[SlotState]:
    return [s for s in slots if s.kind == CONFLICT]


def recyclable_ids(slots: Sequence[SlotState]) -> list[str]:
    """Ids of Cancelled rows that must be deleted before inserting."""
    return [bid for s in slots for bid in s.recyclable_ids]
