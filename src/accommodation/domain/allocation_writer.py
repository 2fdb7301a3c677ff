"""Allocation writer - the write half of a booking unit of work.

Runs inside the caller's transaction: recycles Cancelled rows, then inserts
one row per date in a single batch. Any failure propagates and the caller's
``txn()`` rolls back the whole range; a partial multi-day booking is never
committed.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator, Sequence

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from accommodation.domain.errors import BookingConflictError, SlotConflict, TransactionFailure
from accommodation.infra.repositories.bookings_repository import (
    ACTIVE_SLOT_INDEX,
    delete_bookings,
    insert_bookings,
    update_booking,
)
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

# e.g. "Key (room_id, date)=(room-101, 2024-03-02) already exists."
_SLOT_KEY_PATTERN = re.compile(r"\(room_id, date\)=\([^,]+, (\d{4}-\d{2}-\d{2})\)")


@contextmanager
def transaction_guard(operation: str, **context: Any) -> Iterator[None]:
    """Surface database errors of a booking unit of work as TransactionFailure.

    Wrap the whole transaction, commit included:

        with transaction_guard("create bookings", room_id=room_id), txn() as cur:
            ...

    Domain errors pass through unchanged. Active-slot violations are already
    turned into BookingConflictError by the writer functions below.
    """
    try:
        yield
    except psycopg2.Error as exc:
        logger.error(
            "booking transaction failed",
            exc_info=True,
            extra={
                "extra_fields": safe_log_context(
                    operation=operation,
                    error_type=type(exc).__name__,
                    **context,
                )
            },
        )
        raise TransactionFailure(f"Failed to {operation}", cause=exc) from exc


def conflict_from_unique_violation(
    exc: pg_errors.UniqueViolation,
    *,
    room_id: str,
    dates: Sequence[date],
) -> BookingConflictError:
    """Turn an active-slot index violation into a BookingConflictError.

    The violating date is read from the constraint detail when available;
    otherwise every requested date is reported.
    """
    detail = getattr(getattr(exc, "diag", None), "message_detail", None) or ""
    match = _SLOT_KEY_PATTERN.search(detail)
    if match:
        conflict_dates = [date.fromisoformat(match.group(1))]
    else:
        conflict_dates = list(dates)
    return BookingConflictError(
        room_id,
        [SlotConflict(date=d, booking_id=None, status=None) for d in conflict_dates],
    )


def write_allocations(
    cur: PgCursor,
    *,
    room_id: str,
    staff_house_id: str,
    occupant_id: str | None,
    dates: Sequence[date],
    status: str,
    notes: str | None = None,
    trf_id: str | None = None,
    recycle_ids: Sequence[str] = (),
) -> list[str]:
    """Recycle cancelled slots and insert one booking per date.

    Args:
        cur: Cursor of the booking transaction.
        room_id: Room identifier.
        staff_house_id: House the room belongs to.
        occupant_id: Resolved occupant (None for placeholder/blocked rows).
        dates: Ordered dates to book.
        status: Target status for every new row.
        notes: Free-text notes copied to every row.
        trf_id: Optional travel request back-reference.
        recycle_ids: Cancelled bookings occupying target slots.

    Returns:
        New booking ids, ordered like ``dates``.

    Raises:
        BookingConflictError: A concurrent transaction took one of the slots
            (active-slot unique index violated).
        TransactionFailure: Any other database error.
    """
    try:
        if recycle_ids:
            delete_bookings(cur, recycle_ids)
        return insert_bookings(
            cur,
            staff_house_id=staff_house_id,
            room_id=room_id,
            occupant_id=occupant_id,
            dates=dates,
            status=status,
            notes=notes,
            trf_id=trf_id,
        )
    except pg_errors.UniqueViolation as exc:
        constraint = getattr(getattr(exc, "diag", None), "constraint_name", None)
        if constraint not in (None, ACTIVE_SLOT_INDEX):
            raise TransactionFailure("Failed to write bookings", cause=exc) from exc
        logger.warning(
            "booking race lost to concurrent transaction",
            extra={"extra_fields": safe_log_context(room_id=room_id, dates=list(dates))},
        )
        raise conflict_from_unique_violation(exc, room_id=room_id, dates=dates) from exc
    except psycopg2.Error as exc:
        logger.error(
            "booking transaction failed",
            exc_info=True,
            extra={
                "extra_fields": safe_log_context(
                    room_id=room_id,
                    dates=list(dates),
                    error_type=type(exc).__name__,
                )
            },
        )
        raise TransactionFailure("Failed to write bookings", cause=exc) from exc


def rewrite_allocation(
    cur: PgCursor,
    booking_id: str,
    *,
    room_id: str,
    staff_house_id: str,
    occupant_id: str | None,
    booking_date: date,
    status: str,
    notes: str | None,
    trf_id: str | None,
) -> dict | None:
    """Overwrite one existing booking, with the same error mapping as inserts."""
    try:
        return update_booking(
            cur,
            booking_id,
            staff_house_id=staff_house_id,
            room_id=room_id,
            occupant_id=occupant_id,
            booking_date=booking_date,
            status=status,
            notes=notes,
            trf_id=trf_id,
        )
    except pg_errors.UniqueViolation as exc:
        raise conflict_from_unique_violation(exc, room_id=room_id, dates=[booking_date]) from exc
    except psycopg2.Error as exc:
        logger.error(
            "booking transaction failed",
            exc_info=True,
            extra={
                "extra_fields": safe_log_context(
                    booking_id=booking_id,
                    error_type=type(exc).__name__,
                )
            },
        )
        raise TransactionFailure("Failed to update booking", cause=exc) from exc
