"""Bookings repository - accommodation_bookings persistence.

Uses raw SQL with psycopg2 (no ORM). Every function takes a cursor and must
run inside the caller's transaction (``with txn() as cur:``); nothing here
commits.

One row = one room on one calendar date. The partial unique index
``accommodation_bookings_active_slot_uq`` on (room_id, date) WHERE status <>
'Cancelled' is the last line of defence against double booking.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import execute_values

from accommodation.domain.booking_status import ACTIVE_STATUSES, CANCELLED, OCCUPIED_STATUSES

ACTIVE_SLOT_INDEX = "accommodation_bookings_active_slot_uq"

_BOOKING_COLUMNS = """
    id, staff_house_id, room_id, occupant_id, date, status, notes, trf_id,
    created_at, updated_at
"""


def _row_to_booking(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "staff_house_id": row[1],
        "room_id": row[2],
        "occupant_id": row[3],
        "date": row[4],
        "status": row[5],
        "notes": row[6],
        "trf_id": row[7],
        "created_at": row[8],
        "updated_at": row[9],
    }


def get_booking(cur: PgCursor, booking_id: str, *, lock: bool = False) -> dict | None:
    """Fetch one booking by id (optionally locking it FOR UPDATE)."""
    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"SELECT {_BOOKING_COLUMNS} FROM accommodation_bookings WHERE id = %s{suffix}",
        (booking_id,),
    )
    row = cur.fetchone()
    return _row_to_booking(row) if row is not None else None


def select_slot_rows(
    cur: PgCursor,
    *,
    room_id: str,
    dates: Sequence[date],
    exclude_booking_id: str | None = None,
    lock: bool = False,
) -> list[tuple[str, date, str]]:
    """All bookings (any status) of a room on the given dates.

    Returns:
        List of (booking_id, date, status), ordered by date.
    """
    conditions = ["room_id = %s", "date = ANY(%s::date[])"]
    params: list[Any] = [room_id, list(dates)]

    if exclude_booking_id is not None:
        conditions.append("id != %s")
        params.append(exclude_booking_id)

    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"""
        SELECT id, date, status
        FROM accommodation_bookings
        WHERE {" AND ".join(conditions)}
        ORDER BY date, created_at
        {suffix}
        """,
        params,
    )
    return [(str(r[0]), r[1], r[2]) for r in cur.fetchall()]


def select_occupant_genders(
    cur: PgCursor,
    *,
    room_id: str,
    dates: Sequence[date],
    exclude_booking_id: str | None = None,
) -> list[tuple[str, date, str | None]]:
    """Gender of every occupied (non-blocked, non-cancelled) booking on the dates.

    Gender comes from the guest record first, then the user record.

    Returns:
        List of (booking_id, date, gender-or-None), ordered by date.
    """
    conditions = [
        "b.room_id = %s",
        "b.date = ANY(%s::date[])",
        "b.status = ANY(%s)",
        "b.occupant_id IS NOT NULL",
    ]
    params: list[Any] = [room_id, list(dates), list(OCCUPIED_STATUSES)]

    if exclude_booking_id is not None:
        conditions.append("b.id != %s")
        params.append(exclude_booking_id)

    cur.execute(
        f"""
        SELECT b.id, b.date, COALESCE(sg.gender, u.gender) AS gender
        FROM accommodation_bookings b
        LEFT JOIN staff_guests sg ON b.occupant_id = sg.id
        LEFT JOIN users u ON b.occupant_id = u.id
        WHERE {" AND ".join(conditions)}
        ORDER BY b.date
        """,
        params,
    )
    return [(str(r[0]), r[1], r[2]) for r in cur.fetchall()]


def insert_bookings(
    cur: PgCursor,
    *,
    staff_house_id: str,
    room_id: str,
    occupant_id: str | None,
    dates: Sequence[date],
    status: str,
    notes: str | None,
    trf_id: str | None,
) -> list[str]:
    """Insert one booking per date in a single statement.

    Returns:
        New booking ids, in the same order as ``dates``.
    """
    rows = [
        (staff_house_id, room_id, occupant_id, d, status, notes, trf_id)
        for d in dates
    ]
    result = execute_values(
        cur,
        """
        INSERT INTO accommodation_bookings
            (staff_house_id, room_id, occupant_id, date, status, notes, trf_id)
        VALUES %s
        RETURNING id, date
        """,
        rows,
        template="(%s, %s, %s, %s::date, %s, %s, %s)",
        fetch=True,
    )
    by_date = {r[1]: str(r[0]) for r in result}
    return [by_date[d] for d in dates]


def delete_bookings(cur: PgCursor, booking_ids: Sequence[str]) -> list[str]:
    """Physically delete bookings by id. Returns the ids actually deleted."""
    if not booking_ids:
        return []
    cur.execute(
        "DELETE FROM accommodation_bookings WHERE id = ANY(%s) RETURNING id",
        (list(booking_ids),),
    )
    return [str(r[0]) for r in cur.fetchall()]


def cancel_bookings(cur: PgCursor, booking_ids: Sequence[str], *, note: str) -> list[str]:
    """Mark bookings Cancelled, appending ``note`` to their notes.

    Already-cancelled rows are left untouched.

    Returns:
        Ids of the rows that changed status.
    """
    if not booking_ids:
        return []
    cur.execute(
        """
        UPDATE accommodation_bookings
        SET status = %s,
            notes = COALESCE(notes || ' ', '') || %s,
            updated_at = now()
        WHERE id = ANY(%s)
          AND status != %s
        RETURNING id
        """,
        (CANCELLED, note, list(booking_ids), CANCELLED),
    )
    return [str(r[0]) for r in cur.fetchall()]


def update_booking(
    cur: PgCursor,
    booking_id: str,
    *,
    staff_house_id: str,
    room_id: str,
    occupant_id: str | None,
    booking_date: date,
    status: str,
    notes: str | None,
    trf_id: str | None,
) -> dict | None:
    """Overwrite the mutable fields of one booking. Returns the updated row."""
    cur.execute(
        f"""
        UPDATE accommodation_bookings
        SET staff_house_id = %s,
            room_id = %s,
            occupant_id = %s,
            date = %s::date,
            status = %s,
            notes = %s,
            trf_id = %s,
            updated_at = now()
        WHERE id = %s
        RETURNING {_BOOKING_COLUMNS}
        """,
        (staff_house_id, room_id, occupant_id, booking_date, status, notes, trf_id, booking_id),
    )
    row = cur.fetchone()
    return _row_to_booking(row) if row is not None else None


def select_cancellable(
    cur: PgCursor,
    *,
    booking_ids: Sequence[str] | None = None,
    occupant_id: str | None = None,
    trf_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[dict]:
    """Active bookings matching every supplied criterion, locked FOR UPDATE."""
    conditions = ["status != %s"]
    params: list[Any] = [CANCELLED]

    if booking_ids:
        conditions.append("id = ANY(%s)")
        params.append(list(booking_ids))
    if occupant_id:
        conditions.append("occupant_id = %s")
        params.append(occupant_id)
    if trf_id:
        conditions.append("trf_id = %s")
        params.append(trf_id)
    if start_date is not None:
        conditions.append("date >= %s")
        params.append(start_date)
    if end_date is not None:
        conditions.append("date <= %s")
        params.append(end_date)

    cur.execute(
        f"""
        SELECT {_BOOKING_COLUMNS}
        FROM accommodation_bookings
        WHERE {" AND ".join(conditions)}
        ORDER BY date, room_id
        FOR UPDATE
        """,
        params,
    )
    return [_row_to_booking(r) for r in cur.fetchall()]


def count_active_for_trf(cur: PgCursor, trf_id: str) -> int:
    cur.execute(
        "SELECT count(*) FROM accommodation_bookings WHERE trf_id = %s AND status = ANY(%s)",
        (trf_id, list(ACTIVE_STATUSES)),
    )
    return cur.fetchone()[0]


def delete_for_trf(cur: PgCursor, trf_id: str) -> list[str]:
    """Delete every booking linked to a travel request (re-assignment)."""
    cur.execute(
        "DELETE FROM accommodation_bookings WHERE trf_id = %s RETURNING id",
        (trf_id,),
    )
    return [str(r[0]) for r in cur.fetchall()]
