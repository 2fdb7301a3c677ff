"""Travel requests repository - read access to the approval workflow's TRFs.

The approval workflow owns ``travel_requests``. The accommodation engine only
reads a request's requestor and approval status, and appends to its comment
log and approval-step history; it never changes the approval status itself.
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor


def get_travel_request(cur: PgCursor, trf_id: str, *, lock: bool = False) -> dict | None:
    """Fetch the fields of a TRF the booking engine cares about."""
    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"""
        SELECT id, staff_id, requestor_name, status, travel_type
        FROM travel_requests
        WHERE id = %s{suffix}
        """,
        (trf_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "staff_id": row[1],
        "requestor_name": row[2],
        "status": row[3],
        "travel_type": row[4],
    }


def append_comment(cur: PgCursor, trf_id: str, comment: str) -> None:
    """Append a line to the TRF's additional_comments log."""
    cur.execute(
        """
        UPDATE travel_requests
        SET additional_comments = COALESCE(additional_comments || E'\\n\\n', '') || %s,
            updated_at = now()
        WHERE id = %s
        """,
        (comment, trf_id),
    )


def insert_approval_step(
    cur: PgCursor,
    *,
    trf_id: str,
    step_role: str,
    step_name: str,
    status: str,
    comments: str | None = None,
) -> None:
    """Record an entry in the TRF approval-step history."""
    cur.execute(
        """
        INSERT INTO trf_approval_steps (trf_id, step_role, step_name, status, step_date, comments)
        VALUES (%s, %s, %s, %s, now(), %s)
        """,
        (trf_id, step_role, step_name, status, comments),
    )
