"""Occupant resolution.

Maps whatever identity the caller supplies to the canonical occupant id stored
on a booking, plus the occupant's gender for segregation checks:

  - explicit id: a staff_guests id, else a users id or users.staff_id
  - travel request id: the TRF's staff_id mapped to the users record

Resolution never raises. An unresolvable identity yields a null occupant
(administrative placeholder bookings are allowed); an unknown gender only
disables the segregation check for that request. Gender is never guessed.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg2.extensions import cursor as PgCursor

from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

GENDERS = ("Male", "Female")


@dataclass(frozen=True)
class ResolvedOccupant:
    """Result of occupant resolution.

    ``source`` is one of "guest", "user", "trf" or None when unresolved.
    """

    occupant_id: str | None
    gender: str | None
    source: str | None = None

    @property
    def resolved(self) -> bool:
        return self.occupant_id is not None


NO_OCCUPANT = ResolvedOccupant(occupant_id=None, gender=None)


def normalize_gender(value: str | None) -> str | None:
    """Return "Male"/"Female" for recognised values, None for anything else."""
    if not value:
        return None
    text = value.strip().capitalize()
    return text if text in GENDERS else None


def _by_explicit_id(cur: PgCursor, occupant_id: str) -> ResolvedOccupant | None:
    cur.execute("SELECT id, gender FROM staff_guests WHERE id = %s", (occupant_id,))
    row = cur.fetchone()
    if row is not None:
        return ResolvedOccupant(str(row[0]), normalize_gender(row[1]), "guest")

    cur.execute(
        """
        SELECT id, gender FROM users
        WHERE id = %s OR staff_id = %s
        ORDER BY (id = %s) DESC
        LIMIT 1
        """,
        (occupant_id, occupant_id, occupant_id),
    )
    row = cur.fetchone()
    if row is not None:
        return ResolvedOccupant(str(row[0]), normalize_gender(row[1]), "user")
    return None


def _by_travel_request(cur: PgCursor, trf_id: str) -> ResolvedOccupant | None:
    cur.execute(
        """
        SELECT u.id, u.gender
        FROM travel_requests tr
        JOIN users u ON u.staff_id = tr.staff_id
        WHERE tr.id = %s
        LIMIT 1
        """,
        (trf_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return ResolvedOccupant(str(row[0]), normalize_gender(row[1]), "trf")


def resolve_occupant(
    cur: PgCursor,
    *,
    occupant_id: str | None = None,
    trf_id: str | None = None,
) -> ResolvedOccupant:
    """Resolve the occupant for a booking request.

    An explicit ``occupant_id`` wins over the TRF requestor. Returns
    NO_OCCUPANT when nothing resolves; never raises for a missing record.
    """
    resolved: ResolvedOccupant | None = None
    if occupant_id:
        resolved = _by_explicit_id(cur, occupant_id)
    elif trf_id:
        resolved = _by_travel_request(cur, trf_id)
    else:
        return NO_OCCUPANT

    if resolved is None:
        logger.warning(
            "occupant unresolved",
            extra={
                "extra_fields": safe_log_context(
                    occupant_id=occupant_id,
                    trf_id=trf_id,
                )
            },
        )
        return NO_OCCUPANT

    if resolved.gender is None:
        logger.info(
            "segregation check skipped",
            extra={
                "extra_fields": safe_log_context(
                    occupant_id=resolved.occupant_id,
                    reason="gender unknown",
                )
            },
        )
    return resolved
