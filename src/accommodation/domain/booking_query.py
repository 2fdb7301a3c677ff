"""Booking query - month view of allocations with display data.

Read-only. Filters (house, room, occupant) combine freely within one calendar
month. A missing bookings table (fresh database) yields an empty list rather
than an error.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from psycopg2 import errors as pg_errors

from accommodation.infra.db import txn
from accommodation.infra.time import utc_today
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


def month_bounds(year: int | None, month: int | None, *, today: date | None = None) -> tuple[date, date]:
    """Return [first day of month, first day of next month).

    Missing or out-of-range year/month fall back to the current ones.
    """
    today = today or utc_today()
    if year is None or not MIN_YEAR <= year <= MAX_YEAR:
        year = today.year
    if month is None or not 1 <= month <= 12:
        month = today.month

    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def _row_to_view(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "staffHouseId": row[1],
        "staffHouseName": row[2],
        "roomId": row[3],
        "roomName": row[4],
        "occupantId": row[5],
        "guestName": row[6],
        "gender": row[7],
        "bookingDate": row[8].isoformat(),
        "status": row[9],
        "notes": row[10],
        "trfId": row[11],
    }


def list_bookings(
    *,
    year: int | None = None,
    month: int | None = None,
    staff_house_id: str | None = None,
    room_id: str | None = None,
    occupant_id: str | None = None,
    today: date | None = None,
) -> list[dict]:
    """List bookings of one month, sorted by date then room name.

    Args:
        year: Calendar year (2000-2100); defaults to the current year.
        month: Calendar month (1-12); defaults to the current month.
        staff_house_id: Restrict to one staff house.
        room_id: Restrict to one room.
        occupant_id: Restrict to one occupant.
        today: Reference date for defaults (tests).

    Returns:
        List of booking view dicts (camelCase keys).
    """
    start, end = month_bounds(year, month, today=today)

    conditions = ["b.date >= %s", "b.date < %s"]
    params: list[Any] = [start, end]
    if staff_house_id:
        conditions.append("b.staff_house_id = %s")
        params.append(staff_house_id)
    if room_id:
        conditions.append("b.room_id = %s")
        params.append(room_id)
    if occupant_id:
        conditions.append("b.occupant_id = %s")
        params.append(occupant_id)

    try:
        with txn() as cur:
            cur.execute(
                f"""
                SELECT b.id, b.staff_house_id, sh.name, b.room_id, r.name,
                       b.occupant_id,
                       COALESCE(sg.name, u.name) AS guest_name,
                       COALESCE(sg.gender, u.gender) AS gender,
                       b.date, b.status, b.notes, b.trf_id
                FROM accommodation_bookings b
                LEFT JOIN accommodation_rooms r ON r.id = b.room_id
                LEFT JOIN accommodation_staff_houses sh ON sh.id = b.staff_house_id
                LEFT JOIN staff_guests sg ON sg.id = b.occupant_id
                LEFT JOIN users u ON u.id = b.occupant_id
                WHERE {" AND ".join(conditions)}
                ORDER BY b.date, r.name, b.room_id
                """,
                params,
            )
            rows = cur.fetchall()
    except pg_errors.UndefinedTable:
        logger.warning(
            "bookings table missing",
            extra={"extra_fields": safe_log_context(start=start, end=end)},
        )
        return []

    return [_row_to_view(r) for r in rows]
