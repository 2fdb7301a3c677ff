"""Gender segregation check.

All active occupants of a room on a given date must share one gender. This
runs independently of slot conflict detection: an occupant elsewhere in a
shared room can still clash even when the slot itself is free.

Blocked rows without an occupant are gender-neutral, and occupants whose
gender is unknown never trigger a conflict.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from accommodation.domain.errors import GenderConflictError
from accommodation.domain.occupants import normalize_gender
from accommodation.infra.repositories.bookings_repository import select_occupant_genders
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)


def find_gender_conflict(
    gender: str,
    existing: Sequence[tuple[str, date, str | None]],
    dates: Sequence[date],
) -> tuple[date, str, str] | None:
    """Return (date, existing_gender, booking_id) of the first clash in date order."""
    by_date: dict[date, list[tuple[str, str]]] = {}
    for booking_id, day, existing_gender in existing:
        normalized = normalize_gender(existing_gender)
        if normalized is not None:
            by_date.setdefault(day, []).append((booking_id, normalized))

    for day in dates:
        for booking_id, existing_gender in by_date.get(day, []):
            if existing_gender != gender:
                return day, existing_gender, booking_id
    return None


def check_gender_segregation(
    cur: PgCursor,
    *,
    room_id: str,
    dates: Sequence[date],
    gender: str | None,
    exclude_booking_id: str | None = None,
) -> None:
    """Raise GenderConflictError if the occupant would share a room with the other gender.

    Args:
        cur: Database cursor (within the booking transaction).
        room_id: Room identifier.
        dates: Ordered target dates.
        gender: Gender of the new occupant; None skips the check.
        exclude_booking_id: Booking to ignore (for updates of itself).
    """
    if gender is None:
        return

    existing = select_occupant_genders(
        cur,
        room_id=room_id,
        dates=dates,
        exclude_booking_id=exclude_booking_id,
    )
    clash = find_gender_conflict(gender, existing, dates)
    if clash is None:
        return

    day, existing_gender, booking_id = clash
    logger.warning(
        "gender conflict detected",
        extra={
            "extra_fields": safe_log_context(
                room_id=room_id,
                date=day,
                existing_gender=existing_gender,
                requested_gender=gender,
                existing_booking_id=booking_id,
            )
        },
    )
    raise GenderConflictError(
        room_id=room_id,
        conflict_date=day,
        existing_gender=existing_gender,
        requested_gender=gender,
        existing_booking_id=booking_id,
    )
