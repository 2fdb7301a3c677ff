"""Booking domain logic - transactional create / update / delete / cancel / unblock.

Every operation runs in one transaction:
normalise → lock room → segregation check → conflict detection →
force-override (or fail) → write → outbox event.

All detection happens before the first write. Any error rolls back the whole
batch, so a multi-day booking is created completely or not at all.
"""

from __future__ import annotations

from datetime import date as date_type
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from accommodation.domain.allocation_writer import (
    rewrite_allocation,
    transaction_guard,
    write_allocations,
)
from accommodation.domain.booking_conflict import (
    conflicting,
    detect_conflicts,
    recyclable_ids,
)
from accommodation.domain.booking_status import (
    ALL_STATUSES,
    BLOCKED,
    CANCELLED,
    OCCUPIED_STATUSES,
    assert_transition,
    is_active,
)
from accommodation.domain.date_range import DateLike, expand_dates, normalize_date
from accommodation.domain.errors import (
    BookingConflictError,
    InvalidInputError,
    NotFoundError,
    SlotConflict,
)
from accommodation.domain.force_override import apply_override, is_force_override, plan_override
from accommodation.domain.gender_segregation import check_gender_segregation
from accommodation.domain.occupants import ResolvedOccupant, resolve_occupant
from accommodation.infra.db import txn
from accommodation.infra.repositories import bookings_repository, outbox_repository
from accommodation.infra.repositories.directory_repository import Room, get_room
from accommodation.infra.repositories.travel_requests_repository import (
    append_comment,
    get_travel_request,
)
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

BATCH_CANCEL_NOTE = "[CANCELLED BY ADMIN - BATCH CANCELLATION]"


# ── Shared normalisation ──────────────────────────────────────────────────────


def _resolve_room(cur: PgCursor, room_id: str, staff_house_id: str | None) -> Room:
    """Lock the room row and check it belongs to the given house (if any).

    Raises:
        InvalidInputError: Unknown room, or room outside ``staff_house_id``.
    """
    room = get_room(cur, room_id, lock=True)
    if room is None:
        raise InvalidInputError({"roomId": f"Room with ID {room_id} not found"})
    if staff_house_id and str(staff_house_id) != room.staff_house_id:
        raise InvalidInputError(
            {"staffHouseId": f"room {room_id} does not belong to staff house {staff_house_id}"}
        )
    return room


def _resolve_occupant_strict(
    cur: PgCursor,
    occupant_id: str | None,
    trf_id: str | None,
) -> ResolvedOccupant:
    """Resolve the occupant; an explicit id that matches nobody is a 404.

    The TRF path stays lenient and falls back to no occupant.
    """
    occupant = resolve_occupant(cur, occupant_id=occupant_id, trf_id=trf_id)
    if occupant_id and not occupant.resolved:
        raise NotFoundError("occupant", occupant_id)
    return occupant


def _validate_status(status: str, *, creating: bool) -> None:
    if status not in ALL_STATUSES:
        raise InvalidInputError({"status": f"unknown status: {status}"})
    if creating and status == CANCELLED:
        raise InvalidInputError({"status": "cannot create a booking as Cancelled"})


# ── Create ────────────────────────────────────────────────────────────────────


def create_booking(
    *,
    room_id: str,
    status: str,
    actor: str,
    staff_house_id: str | None = None,
    occupant_id: str | None = None,
    date: DateLike | None = None,
    check_in: DateLike | None = None,
    check_out: DateLike | None = None,
    notes: str | None = None,
    block_reason: str | None = None,
    trf_id: str | None = None,
    force_block: bool = False,
    correlation_id: str | None = None,
    cur: PgCursor | None = None,
) -> dict:
    """Book a room for a single date or an inclusive date range.

    This function:
    1. Expands the requested dates (before any DB access)
    2. Locks the room row and resolves its staff house
    3. Resolves the occupant (explicit id or TRF requestor) and gender
    4. Checks gender segregation on every date (skipped for forced blocks)
    5. Classifies every date (free / recyclable / conflict)
    6. Cancels conflicting rows for a forced block, otherwise fails on conflict
    7. Deletes recyclable Cancelled rows and batch-inserts one row per date
    8. Emits outbox events (BOOKINGS_FORCE_CANCELLED, BOOKINGS_CREATED)

    Args:
        room_id: Room to book.
        status: Target status (Confirmed, Checked-in, Checked-out or Blocked).
        actor: Administrative actor, recorded in audit notes.
        staff_house_id: Optional; inferred from the room when omitted.
        occupant_id: Guest/user id of the occupant (optional).
        date: Single date to book.
        check_in: First date of an inclusive range.
        check_out: Last date of an inclusive range.
        notes: Free-text notes.
        block_reason: Used as notes when ``notes`` is empty.
        trf_id: Travel request this booking belongs to.
        force_block: With status Blocked, displace conflicting bookings.
        correlation_id: Optional correlation ID for tracing.
        cur: Existing transaction cursor; a new transaction is opened if None.

    Returns:
        Dict with created_ids, dates_booked, dates, staff_house_id,
        occupant_id and force_cancelled_ids.

    Raises:
        InvalidInputError: No date/range, bad status, unknown room.
        NotFoundError: Explicit occupant id or linked TRF does not exist.
        GenderConflictError: Segregation would be violated.
        BookingConflictError: Dates already taken and no override applies.
        TransactionFailure: Database error while writing.
    """
    _validate_status(status, creating=True)
    dates = expand_dates(date=date, check_in=check_in, check_out=check_out)
    final_notes = notes or block_reason or None
    forced = is_force_override(status, force_block)

    def _do(c: PgCursor) -> dict:
        room = _resolve_room(c, room_id, staff_house_id)
        if trf_id and get_travel_request(c, trf_id) is None:
            raise NotFoundError("travel request", trf_id)
        occupant = _resolve_occupant_strict(c, occupant_id, trf_id)

        # Rows displaced by a forced block are cancelled, so their occupants
        # no longer share the room.
        if not forced:
            check_gender_segregation(
                c, room_id=room.id, dates=dates, gender=occupant.gender
            )

        slots = detect_conflicts(c, room_id=room.id, dates=dates, lock=True)
        plan = plan_override(room.id, slots, target_status=status, force_block=force_block)
        displaced = apply_override(c, plan, room_id=room.id, actor=actor)
        if displaced:
            outbox_repository.emit_bookings_cancelled(
                c,
                bookings=displaced,
                event_type=outbox_repository.BOOKINGS_FORCE_CANCELLED,
                actor_id=actor,
                correlation_id=correlation_id,
            )

        created_ids = write_allocations(
            c,
            room_id=room.id,
            staff_house_id=room.staff_house_id,
            occupant_id=occupant.occupant_id,
            dates=dates,
            status=status,
            notes=final_notes,
            trf_id=trf_id,
            recycle_ids=recyclable_ids(slots),
        )
        outbox_repository.emit_bookings_created(
            c,
            room_id=room.id,
            booking_ids=created_ids,
            dates=dates,
            status=status,
            occupant_id=occupant.occupant_id,
            trf_id=trf_id,
            correlation_id=correlation_id,
        )
        return {
            "created_ids": created_ids,
            "dates_booked": len(dates),
            "dates": dates,
            "staff_house_id": room.staff_house_id,
            "occupant_id": occupant.occupant_id,
            "force_cancelled_ids": [b["id"] for b in displaced],
        }

    with transaction_guard("create bookings", room_id=room_id):
        if cur is not None:
            result = _do(cur)
        else:
            with txn() as c:
                result = _do(c)

    logger.info(
        "booking created",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                room_id=room_id,
                status=status,
                dates_booked=result["dates_booked"],
                first_date=dates[0],
                last_date=dates[-1],
                trf_id=trf_id,
                force_cancelled=len(result["force_cancelled_ids"]),
            )
        },
    )
    return result


# ── Update ────────────────────────────────────────────────────────────────────


def update_booking(
    booking_id: str,
    *,
    room_id: str,
    status: str,
    actor: str,
    staff_house_id: str | None = None,
    occupant_id: str | None = None,
    date: DateLike | None = None,
    check_in: DateLike | None = None,
    notes: str | None = None,
    block_reason: str | None = None,
    trf_id: str | None = None,
    correlation_id: str | None = None,
) -> dict:
    """Replace the fields of one booking.

    Re-runs the same-date slot check and segregation check with the booking
    itself excluded. Status changes must follow the allocation lifecycle.

    Raises:
        InvalidInputError: No date, bad status/transition, unknown room.
        NotFoundError: Booking or explicit occupant does not exist.
        BookingConflictError / GenderConflictError: Target slot is taken.
        TransactionFailure: Database error while writing.
    """
    _validate_status(status, creating=False)
    raw_date = date if date is not None else check_in
    if raw_date is None:
        raise InvalidInputError({"date": "date is required for booking updates"})
    booking_date = normalize_date(raw_date, "date")

    with transaction_guard("update booking", booking_id=booking_id), txn() as cur:
        existing = bookings_repository.get_booking(cur, booking_id, lock=True)
        if existing is None:
            raise NotFoundError("booking", booking_id)

        assert_transition(existing["status"], status)
        room = _resolve_room(cur, room_id, staff_house_id)
        occupant = _resolve_occupant_strict(cur, occupant_id, trf_id)

        if status in OCCUPIED_STATUSES:
            check_gender_segregation(
                cur,
                room_id=room.id,
                dates=[booking_date],
                gender=occupant.gender,
                exclude_booking_id=booking_id,
            )

        if is_active(status):
            slots = detect_conflicts(
                cur,
                room_id=room.id,
                dates=[booking_date],
                exclude_booking_id=booking_id,
                lock=True,
            )
            clashes = conflicting(slots)
            if clashes:
                raise BookingConflictError(
                    room.id,
                    [
                        SlotConflict(date=s.date, booking_id=s.existing_id, status=s.existing_status)
                        for s in clashes
                    ],
                )

        updated = rewrite_allocation(
            cur,
            booking_id,
            room_id=room.id,
            staff_house_id=room.staff_house_id,
            occupant_id=occupant.occupant_id,
            booking_date=booking_date,
            status=status,
            notes=notes or block_reason or None,
            trf_id=trf_id,
        )
        outbox_repository.emit_event(
            cur,
            event_type=outbox_repository.BOOKING_UPDATED,
            aggregate_type="booking",
            aggregate_id=booking_id,
            payload={
                "room_id": room.id,
                "date": booking_date.isoformat(),
                "previous_status": existing["status"],
                "status": status,
                "actor_id": actor,
            },
            correlation_id=correlation_id,
        )

    logger.info(
        "booking updated",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                booking_id=booking_id,
                room_id=room_id,
                date=booking_date,
                previous_status=existing["status"],
                status=status,
            )
        },
    )
    return updated


# ── Delete / unblock ──────────────────────────────────────────────────────────


def delete_booking(
    booking_id: str,
    *,
    actor: str,
    correlation_id: str | None = None,
) -> dict:
    """Physically delete one booking (unblocking it if it was a block).

    Raises:
        NotFoundError: Unknown booking id (never a silent no-op).
    """
    with transaction_guard("delete booking", booking_id=booking_id), txn() as cur:
        existing = bookings_repository.get_booking(cur, booking_id, lock=True)
        if existing is None:
            raise NotFoundError("booking", booking_id)

        bookings_repository.delete_bookings(cur, [booking_id])
        outbox_repository.emit_event(
            cur,
            event_type=outbox_repository.BOOKING_DELETED,
            aggregate_type="booking",
            aggregate_id=booking_id,
            payload={
                "room_id": existing["room_id"],
                "date": existing["date"].isoformat(),
                "previous_status": existing["status"],
                "occupant_id": existing["occupant_id"],
                "trf_id": existing["trf_id"],
                "actor_id": actor,
            },
            correlation_id=correlation_id,
        )

    logger.info(
        "booking deleted",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                booking_id=booking_id,
                room_id=existing["room_id"],
                previous_status=existing["status"],
            )
        },
    )
    return existing


def unblock_room(
    *,
    room_id: str,
    actor: str,
    date: DateLike | None = None,
    check_in: DateLike | None = None,
    check_out: DateLike | None = None,
    correlation_id: str | None = None,
) -> dict:
    """Remove Blocked bookings of a room for a date or inclusive range.

    Raises:
        InvalidInputError: No date/range or unknown room.
        NotFoundError: No Blocked booking in the range.
    """
    dates = expand_dates(date=date, check_in=check_in, check_out=check_out)

    with transaction_guard("unblock room", room_id=room_id), txn() as cur:
        room = _resolve_room(cur, room_id, None)
        rows = bookings_repository.select_slot_rows(
            cur, room_id=room.id, dates=dates, lock=True
        )
        blocked = [(bid, day) for bid, day, status in rows if status == BLOCKED]
        if not blocked:
            raise NotFoundError("blocked booking", room_id)

        deleted = bookings_repository.delete_bookings(cur, [bid for bid, _ in blocked])
        outbox_repository.emit_event(
            cur,
            event_type=outbox_repository.ROOM_UNBLOCKED,
            aggregate_type="room",
            aggregate_id=room.id,
            payload={
                "booking_ids": deleted,
                "dates": [day.isoformat() for _, day in blocked],
                "actor_id": actor,
            },
            correlation_id=correlation_id,
        )

    logger.info(
        "room unblocked",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                room_id=room_id,
                dates=[day for _, day in blocked],
            )
        },
    )
    return {"deleted_ids": deleted, "dates_unblocked": len(blocked)}


# ── Batch cancellation ────────────────────────────────────────────────────────


def cancel_bookings(
    *,
    actor: str,
    booking_ids: Sequence[str] | None = None,
    occupant_id: str | None = None,
    trf_id: str | None = None,
    start_date: DateLike | None = None,
    end_date: DateLike | None = None,
    correlation_id: str | None = None,
) -> dict:
    """Cancel every active booking matching all supplied criteria.

    At least one of booking_ids, occupant_id or trf_id is required; the date
    range only narrows the selection. Cancelled slots become reusable
    immediately. A TRF left without active bookings gets a comment appended
    and a TRF_ACCOMMODATION_RELEASED event; its approval status is left to
    the workflow engine.

    Returns:
        Dict with cancelled_count, cancelled_ids, released_trf_ids.

    Raises:
        InvalidInputError: No selection criterion, or a bad date range.
    """
    if not booking_ids and not occupant_id and not trf_id:
        raise InvalidInputError(
            {"criteria": "at least one of bookingIds, occupantId or trfId must be provided"}
        )
    start = normalize_date(start_date, "startDate") if start_date is not None else None
    end = normalize_date(end_date, "endDate") if end_date is not None else None
    if start is not None and end is not None and end < start:
        raise InvalidInputError({"endDate": "must be on or after startDate"})

    released: list[str] = []
    with transaction_guard("cancel bookings"), txn() as cur:
        rows = bookings_repository.select_cancellable(
            cur,
            booking_ids=booking_ids,
            occupant_id=occupant_id,
            trf_id=trf_id,
            start_date=start,
            end_date=end,
        )
        if not rows:
            return {"cancelled_count": 0, "cancelled_ids": [], "released_trf_ids": []}

        cancelled = bookings_repository.cancel_bookings(
            cur, [b["id"] for b in rows], note=BATCH_CANCEL_NOTE
        )
        outbox_repository.emit_bookings_cancelled(
            cur,
            bookings=rows,
            actor_id=actor,
            correlation_id=correlation_id,
        )

        for linked_trf in sorted({b["trf_id"] for b in rows if b["trf_id"]}):
            if bookings_repository.count_active_for_trf(cur, linked_trf) > 0:
                continue
            append_comment(
                cur,
                linked_trf,
                f"Accommodation bookings cancelled by {actor}",
            )
            outbox_repository.emit_event(
                cur,
                event_type=outbox_repository.TRF_ACCOMMODATION_RELEASED,
                aggregate_type="trf",
                aggregate_id=linked_trf,
                payload={"actor_id": actor},
                correlation_id=correlation_id,
            )
            released.append(linked_trf)

    logger.info(
        "bookings cancelled",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                cancelled_count=len(cancelled),
                released_trf_count=len(released),
            )
        },
    )
    return {
        "cancelled_count": len(cancelled),
        "cancelled_ids": cancelled,
        "released_trf_ids": released,
    }


def booking_to_view(booking: dict) -> dict:
    """Wire representation of a booking row."""
    day = booking["date"]
    return {
        "id": booking["id"],
        "staffHouseId": booking["staff_house_id"],
        "roomId": booking["room_id"],
        "occupantId": booking["occupant_id"],
        "bookingDate": day.isoformat() if isinstance(day, date_type) else day,
        "status": booking["status"],
        "notes": booking["notes"],
        "trfId": booking["trf_id"],
    }
