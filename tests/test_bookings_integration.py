"""End-to-end booking tests against PostgreSQL (requires a migrated DATABASE_URL)."""

import os
import threading
import uuid
from datetime import date

import pytest

from accommodation.infra.db import get_conn, txn

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not os.environ.get("DATABASE_URL"),
        reason="DATABASE_URL not set - skipping booking integration tests",
    ),
]

MAR_1 = date(2031, 3, 1)
MAR_2 = date(2031, 3, 2)
MAR_3 = date(2031, 3, 3)


@pytest.fixture
def room():
    """A fresh house, room and two guests; everything is removed afterwards."""
    suffix = uuid.uuid4().hex[:8]
    ids = {
        "house": f"test-house-{suffix}",
        "room": f"test-room-{suffix}",
        "male": f"test-guest-m-{suffix}",
        "female": f"test-guest-f-{suffix}",
    }
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            cur.execute(
                "INSERT INTO accommodation_staff_houses (id, name, location) VALUES (%s, %s, 'Kiyanly')",
                (ids["house"], f"House {suffix}"),
            )
            cur.execute(
                """
                INSERT INTO accommodation_rooms (id, staff_house_id, name, room_type, capacity)
                VALUES (%s, %s, %s, 'Double', 2)
                """,
                (ids["room"], ids["house"], f"Room {suffix}"),
            )
            cur.execute(
                "INSERT INTO staff_guests (id, name, gender) VALUES (%s, 'Guest M', 'Male'), (%s, 'Guest F', 'Female')",
                (ids["male"], ids["female"]),
            )
        conn.commit()
    finally:
        conn.close()

    yield ids

    conn = get_conn()
    try:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM accommodation_bookings WHERE room_id = %s", (ids["room"],))
            cur.execute("DELETE FROM outbox_events WHERE aggregate_id = %s", (ids["room"],))
            cur.execute("DELETE FROM accommodation_rooms WHERE id = %s", (ids["room"],))
            cur.execute("DELETE FROM accommodation_staff_houses WHERE id = %s", (ids["house"],))
            cur.execute("DELETE FROM staff_guests WHERE id IN (%s, %s)", (ids["male"], ids["female"]))
        conn.commit()
    finally:
        conn.close()


def _rows(room_id):
    with txn() as cur:
        cur.execute(
            "SELECT date, status, occupant_id FROM accommodation_bookings WHERE room_id = %s ORDER BY date, created_at",
            (room_id,),
        )
        return cur.fetchall()


class TestBookingLifecycle:
    def test_range_then_gender_conflict_is_atomic(self, room):
        from accommodation.domain.bookings import create_booking
        from accommodation.domain.errors import GenderConflictError

        create_booking(room_id=room["room"], status="Confirmed", date=MAR_2, occupant_id=room["male"], actor="t")

        with pytest.raises(GenderConflictError) as exc_info:
            create_booking(
                room_id=room["room"], status="Confirmed", check_in=MAR_1, check_out=MAR_3,
                occupant_id=room["female"], actor="t",
            )

        assert exc_info.value.date == MAR_2
        assert [r[0] for r in _rows(room["room"])] == [MAR_2]

    def test_cancel_then_rebook_recycles_slot(self, room):
        from accommodation.domain.bookings import cancel_bookings, create_booking

        first = create_booking(room_id=room["room"], status="Confirmed", date=MAR_2, occupant_id=room["male"], actor="t")
        cancel_bookings(booking_ids=first["created_ids"], actor="t")

        create_booking(room_id=room["room"], status="Confirmed", date=MAR_2, occupant_id=room["female"], actor="t")

        assert _rows(room["room"]) == [(MAR_2, "Confirmed", room["female"])]

    def test_forced_block_cancels_and_blocks(self, room):
        from accommodation.domain.bookings import create_booking

        create_booking(room_id=room["room"], status="Confirmed", date=MAR_1, occupant_id=room["male"], actor="t")
        result = create_booking(
            room_id=room["room"], status="Blocked", date=MAR_1, force_block=True,
            block_reason="Repairs", actor="t",
        )

        assert len(result["force_cancelled_ids"]) == 1
        statuses = sorted(r[1] for r in _rows(room["room"]))
        assert statuses == ["Blocked", "Cancelled"]

    def test_conflict_leaves_database_unchanged(self, room):
        from accommodation.domain.bookings import create_booking
        from accommodation.domain.errors import BookingConflictError

        create_booking(room_id=room["room"], status="Confirmed", date=MAR_3, occupant_id=room["male"], actor="t")
        before = _rows(room["room"])

        with pytest.raises(BookingConflictError) as exc_info:
            create_booking(
                room_id=room["room"], status="Confirmed", check_in=MAR_1, check_out=MAR_3,
                occupant_id=room["male"], actor="t",
            )

        assert exc_info.value.conflicting_dates == [MAR_3]
        assert _rows(room["room"]) == before


class TestConcurrentBooking:
    def test_only_one_of_two_racing_requests_wins(self, room):
        from accommodation.domain.bookings import create_booking
        from accommodation.domain.errors import BookingConflictError

        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(occupant_id):
            barrier.wait()
            try:
                create_booking(room_id=room["room"], status="Confirmed", date=MAR_1, occupant_id=occupant_id, actor="t")
                result = "ok"
            except BookingConflictError:
                result = "conflict"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(room["male"],)) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["conflict", "ok"]
        assert len(_rows(room["room"])) == 1

    def test_unique_index_rejects_second_active_row(self, room):
        from psycopg2 import errors as pg_errors

        with pytest.raises(pg_errors.UniqueViolation):
            with txn() as cur:
                for _ in range(2):
                    cur.execute(
                        """
                        INSERT INTO accommodation_bookings (staff_house_id, room_id, date, status)
                        VALUES (%s, %s, %s, 'Blocked')
                        """,
                        (room["house"], room["room"], MAR_2),
                    )
