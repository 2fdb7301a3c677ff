"""Date-range expansion for booking requests.

A stay is stored one row per calendar date, so every request is first turned
into the ordered, inclusive list of dates it covers. This runs before any
database access: a request that names no date at all never reaches Postgres.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from accommodation.domain.errors import InvalidInputError

# Upper bound on a single request; protects the batch insert from runaway ranges
MAX_BOOKING_DAYS = 366

DateLike = date | datetime | str


def normalize_date(value: DateLike, field: str) -> date:
    """Coerce a date, datetime or ISO string to a plain ``date``.

    Time components are dropped so (room, date) keys stay unambiguous.

    Raises:
        InvalidInputError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            # Full ISO timestamp, e.g. "2024-03-01T00:00:00Z"
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
    raise InvalidInputError({field: f"invalid date: {value!r}"})


def expand_dates(
    *,
    date: DateLike | None = None,
    check_in: DateLike | None = None,
    check_out: DateLike | None = None,
) -> list:
    """Expand a single date or an inclusive (check_in, check_out) range.

    A complete range takes precedence over ``date`` when both are given.

    Args:
        date: Single booking date.
        check_in: First date of the range (inclusive).
        check_out: Last date of the range (inclusive).

    Returns:
        Ordered list of ``datetime.date`` values, one per booked day.

    Raises:
        InvalidInputError: If neither a date nor a full range is supplied,
            the range is reversed, or it exceeds MAX_BOOKING_DAYS.
    """
    if check_in is not None and check_out is not None:
        start = normalize_date(check_in, "checkInDate")
        end = normalize_date(check_out, "checkOutDate")
        if end < start:
            raise InvalidInputError(
                {"checkOutDate": "must be on or after checkInDate"}
            )
        days = (end - start).days + 1
        if days > MAX_BOOKING_DAYS:
            raise InvalidInputError(
                {"checkOutDate": f"range exceeds {MAX_BOOKING_DAYS} days"}
            )
        return [start + timedelta(days=i) for i in range(days)]

    if date is not None:
        return [normalize_date(date, "date")]

    if check_in is not None or check_out is not None:
        missing = "checkOutDate" if check_out is None else "checkInDate"
        raise InvalidInputError({missing: "required when booking a date range"})

    raise InvalidInputError(
        {"date": "either date or checkInDate/checkOutDate must be provided"}
    )
