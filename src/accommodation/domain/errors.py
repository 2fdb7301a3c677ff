"""Booking error taxonomy.

Domain functions raise these; the route layer translates them to HTTP
responses (400 / 404 / 409 / 500). Every error raised inside ``txn()`` rolls
the whole transaction back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


class BookingError(Exception):
    """Base class for booking engine errors."""


class InvalidInputError(BookingError):
    """Malformed or missing request fields.

    ``errors`` maps field name -> human readable reason.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"Invalid input ({detail})")


class InvalidStatusTransitionError(InvalidInputError):
    """Requested status change is not allowed by the allocation lifecycle."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__({"status": f"cannot change status from {current} to {requested}"})


class NotFoundError(BookingError):
    """Referenced booking, room, occupant or travel request does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


@dataclass(frozen=True)
class SlotConflict:
    """One (room, date) slot already held by an active allocation."""

    date: date
    booking_id: str | None
    status: str | None


class BookingConflictError(BookingError):
    """One or more target dates are already taken.

    Carries every conflicting date, not only the first, so the caller can
    correct the request (or retry as a forced block) in one go.
    """

    def __init__(
        self,
        room_id: str,
        conflicts: list[SlotConflict],
        *,
        can_force_block: bool = False,
    ) -> None:
        self.room_id = room_id
        self.conflicts = sorted(conflicts, key=lambda c: c.date)
        self.can_force_block = can_force_block
        super().__init__(
            f"Room {room_id} already has active bookings on: "
            + ", ".join(
                f"{c.date.isoformat()} ({c.status})" if c.status else c.date.isoformat()
                for c in self.conflicts
            )
        )

    @property
    def conflicting_dates(self) -> list[date]:
        return [c.date for c in self.conflicts]


class GenderConflictError(BookingConflictError):
    """Occupant gender differs from an active occupant of the room on a date."""

    def __init__(
        self,
        room_id: str,
        conflict_date: date,
        existing_gender: str,
        requested_gender: str,
        existing_booking_id: str | None = None,
    ) -> None:
        self.date = conflict_date
        self.existing_gender = existing_gender
        self.requested_gender = requested_gender
        super().__init__(
            room_id,
            [SlotConflict(date=conflict_date, booking_id=existing_booking_id, status=None)],
        )
        # Replace the generic message built by the parent
        self.args = (
            f"Gender conflict: cannot book {requested_gender} occupant in room "
            f"{room_id} with {existing_gender} occupants on {conflict_date.isoformat()}",
        )


class TransactionFailure(BookingError):
    """Database error while writing a booking batch; nothing was applied."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class TrfNotAssignableError(BookingError):
    """Travel request is not in an approval status that allows accommodation."""

    def __init__(self, trf_id: str, status: str | None) -> None:
        self.trf_id = trf_id
        self.status = status
        super().__init__(
            f"Cannot assign accommodation for TRF {trf_id} with status: {status}"
        )
