"""Outbox repository - event emission for the notification dispatcher.

Uses raw SQL with psycopg2 (no ORM). Events are written in the same
transaction as the booking change they describe, so a rolled-back booking
never notifies anyone. Delivery is the dispatcher's job (fire-and-forget from
the engine's point of view).
"""

import json
from datetime import date
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

BOOKINGS_CREATED = "BOOKINGS_CREATED"
BOOKING_UPDATED = "BOOKING_UPDATED"
BOOKING_DELETED = "BOOKING_DELETED"
BOOKINGS_CANCELLED = "BOOKINGS_CANCELLED"
BOOKINGS_FORCE_CANCELLED = "BOOKINGS_FORCE_CANCELLED"
ROOM_UNBLOCKED = "ROOM_UNBLOCKED"
TRF_ACCOMMODATION_ASSIGNED = "TRF_ACCOMMODATION_ASSIGNED"
TRF_ACCOMMODATION_RELEASED = "TRF_ACCOMMODATION_RELEASED"


def emit_event(
    cur: PgCursor,
    *,
    event_type: str,
    aggregate_type: str,
    aggregate_id: str,
    payload: dict | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit an event to the outbox.

    Args:
        cur: Database cursor (within transaction).
        event_type: Event type (e.g., BOOKINGS_CREATED).
        aggregate_type: Aggregate type (e.g., room, booking, trf).
        aggregate_id: Aggregate ID.
        payload: Optional JSON payload (ids, dates and statuses only).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The generated event ID.
    """
    payload_json = json.dumps(payload, default=str) if payload else None

    cur.execute(
        """
        INSERT INTO outbox_events (
            event_type, aggregate_type, aggregate_id, payload, correlation_id
        )
        VALUES (%s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            event_type,
            aggregate_type,
            aggregate_id,
            payload_json,
            correlation_id,
        ),
    )
    return cur.fetchone()[0]


def emit_bookings_created(
    cur: PgCursor,
    *,
    room_id: str,
    booking_ids: Sequence[str],
    dates: Sequence[date],
    status: str,
    occupant_id: str | None,
    trf_id: str | None,
    correlation_id: str | None = None,
) -> int:
    """Emit BOOKINGS_CREATED for one booking batch (one room, N dates)."""
    payload = {
        "booking_ids": list(booking_ids),
        "dates": [d.isoformat() for d in dates],
        "status": status,
        "occupant_id": occupant_id,
        "trf_id": trf_id,
    }
    return emit_event(
        cur,
        event_type=BOOKINGS_CREATED,
        aggregate_type="room",
        aggregate_id=room_id,
        payload=payload,
        correlation_id=correlation_id,
    )


def emit_bookings_cancelled(
    cur: PgCursor,
    *,
    bookings: Sequence[dict],
    event_type: str = BOOKINGS_CANCELLED,
    actor_id: str | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit a cancellation event listing every affected booking.

    The payload carries occupant and TRF ids so the dispatcher can decide
    whom to notify.
    """
    payload = {
        "actor_id": actor_id,
        "bookings": [
            {
                "id": b["id"],
                "room_id": b["room_id"],
                "date": b["date"].isoformat() if isinstance(b["date"], date) else b["date"],
                "occupant_id": b.get("occupant_id"),
                "trf_id": b.get("trf_id"),
                "previous_status": b.get("status"),
            }
            for b in bookings
        ],
    }
    aggregate_id = bookings[0]["room_id"] if len({b["room_id"] for b in bookings}) == 1 else "multiple"
    return emit_event(
        cur,
        event_type=event_type,
        aggregate_type="room",
        aggregate_id=aggregate_id,
        payload=payload,
        correlation_id=correlation_id,
    )
