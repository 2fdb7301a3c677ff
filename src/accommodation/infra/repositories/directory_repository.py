"""Directory repository - staff houses and rooms (read-only reference data).

Uses raw SQL with psycopg2 (no ORM). Gender is not a room attribute; it
belongs to the occupant.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg2.extensions import cursor as PgCursor

LOCATIONS = ("Ashgabat", "Kiyanly", "Turkmenbashy")
ROOM_TYPES = ("Single", "Double", "Suite", "Tent")
ROOM_STATUSES = ("Available", "Maintenance", "Reserved")


@dataclass(frozen=True)
class Room:
    """A bookable room and the staff house it belongs to."""

    id: str
    staff_house_id: str
    name: str
    room_type: str
    capacity: int
    status: str


def get_room(cur: PgCursor, room_id: str, *, lock: bool = False) -> Room | None:
    """Fetch a room by id.

    With ``lock=True`` the room row is locked FOR UPDATE, which serialises
    concurrent booking transactions targeting the same room.
    """
    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"""
        SELECT id, staff_house_id, name, room_type, capacity, status
        FROM accommodation_rooms
        WHERE id = %s{suffix}
        """,
        (room_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return Room(
        id=str(row[0]),
        staff_house_id=str(row[1]),
        name=row[2],
        room_type=row[3],
        capacity=row[4],
        status=row[5],
    )


def list_staff_houses(cur: PgCursor, *, location: str | None = None) -> list[dict]:
    """List staff houses with their room count, optionally for one location."""
    conditions: list[str] = []
    params: list = []
    if location:
        conditions.append("sh.location = %s")
        params.append(location)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    cur.execute(
        f"""
        SELECT sh.id, sh.name, sh.location, sh.address, sh.description,
               count(r.id) AS room_count
        FROM accommodation_staff_houses sh
        LEFT JOIN accommodation_rooms r ON r.staff_house_id = sh.id
        {where}
        GROUP BY sh.id
        ORDER BY sh.location, sh.name
        """,
        params,
    )
    return [
        {
            "id": str(row[0]),
            "name": row[1],
            "location": row[2],
            "address": row[3],
            "description": row[4],
            "roomCount": row[5],
        }
        for row in cur.fetchall()
    ]


def list_rooms(cur: PgCursor, *, staff_house_id: str | None = None) -> list[dict]:
    """List rooms, optionally restricted to one staff house."""
    conditions: list[str] = []
    params: list = []
    if staff_house_id:
        conditions.append("staff_house_id = %s")
        params.append(staff_house_id)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    cur.execute(
        f"""
        SELECT id, staff_house_id, name, room_type, capacity, status
        FROM accommodation_rooms
        {where}
        ORDER BY staff_house_id, name
        """,
        params,
    )
    return [
        {
            "id": str(row[0]),
            "staffHouseId": str(row[1]),
            "name": row[2],
            "roomType": row[3],
            "capacity": row[4],
            "status": row[5],
        }
        for row in cur.fetchall()
    ]
