"""Force-override of conflicting bookings when blocking a room.

A conflicting slot can only be taken over by a request that is itself a
block (status Blocked) submitted with ``force_block``. In that case every
active row in the way, including an earlier block, is cancelled with an audit
note before the new Blocked rows are written. Anything else with a conflict
fails with BookingConflictError listing every conflicting date.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from accommodation.domain.booking_conflict import SlotState, conflicting
from accommodation.domain.booking_status import BLOCKED
from accommodation.domain.errors import BookingConflictError, SlotConflict
from accommodation.infra.repositories.bookings_repository import cancel_bookings, select_cancellable
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

FORCE_CANCEL_NOTE = "[CANCELLED BY ADMIN FOR ROOM BLOCKING: {actor}]"


@dataclass(frozen=True)
class OverridePlan:
    """Rows to cancel before writing, one per conflicting date."""

    to_cancel: tuple[SlotState, ...] = ()

    @property
    def booking_ids(self) -> list[str]:
        return [s.existing_id for s in self.to_cancel if s.existing_id]


def is_force_override(target_status: str, force_block: bool) -> bool:
    return bool(force_block) and target_status == BLOCKED


def plan_override(
    room_id: str,
    slots: Sequence[SlotState],
    *,
    target_status: str,
    force_block: bool,
) -> OverridePlan:
    """Decide what happens to conflicting slots.

    Returns:
        An OverridePlan (empty when nothing conflicts).

    Raises:
        BookingConflictError: If any slot conflicts and the request is not a
            forced block. ``can_force_block`` is True when resubmitting the
            same request with force_block would succeed.
    """
    clashes = conflicting(slots)
    if not clashes:
        return OverridePlan()

    if is_force_override(target_status, force_block):
        return OverridePlan(to_cancel=tuple(clashes))

    raise BookingConflictError(
        room_id,
        [
            SlotConflict(date=s.date, booking_id=s.existing_id, status=s.existing_status)
            for s in clashes
        ],
        can_force_block=target_status == BLOCKED,
    )


def apply_override(
    cur: PgCursor,
    plan: OverridePlan,
    *,
    room_id: str,
    actor: str,
) -> list[dict]:
    """Cancel every row in the plan, appending an audit note naming the actor.

    Returns:
        The displaced bookings as they were before cancellation (occupant and
        TRF ids included, for the notification event).
    """
    if not plan.to_cancel:
        return []

    displaced = select_cancellable(cur, booking_ids=plan.booking_ids)
    cancelled = cancel_bookings(
        cur,
        [b["id"] for b in displaced],
        note=FORCE_CANCEL_NOTE.format(actor=actor),
    )
    logger.info(
        "bookings force-cancelled",
        extra={
            "extra_fields": safe_log_context(
                room_id=room_id,
                dates=[s.date for s in plan.to_cancel],
                cancelled_count=len(cancelled),
                actor=actor,
            )
        },
    )
    return displaced
