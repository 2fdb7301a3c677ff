"""Translation of booking domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from accommodation.domain.errors import (
    BookingConflictError,
    BookingError,
    GenderConflictError,
    InvalidInputError,
    InvalidStatusTransitionError,
    NotFoundError,
    TransactionFailure,
    TrfNotAssignableError,
)


def http_error(exc: BookingError) -> HTTPException:
    """Map a domain error to an HTTPException with a structured detail."""
    if isinstance(exc, GenderConflictError):
        return HTTPException(
            status_code=409,
            detail={
                "error": "gender_conflict",
                "message": str(exc),
                "date": exc.date.isoformat(),
                "existingGender": exc.existing_gender,
                "requestedGender": exc.requested_gender,
            },
        )
    if isinstance(exc, BookingConflictError):
        return HTTPException(
            status_code=409,
            detail={
                "error": "booking_conflict",
                "message": str(exc),
                "conflictingDates": [d.isoformat() for d in exc.conflicting_dates],
                "conflicts": [
                    {
                        "date": c.date.isoformat(),
                        "bookingId": c.booking_id,
                        "status": c.status,
                    }
                    for c in exc.conflicts
                ],
                "canForceBlock": exc.can_force_block,
            },
        )
    if isinstance(exc, InvalidStatusTransitionError):
        return HTTPException(
            status_code=400,
            detail={"error": "invalid_status_transition", "message": str(exc), "fields": exc.errors},
        )
    if isinstance(exc, InvalidInputError):
        return HTTPException(
            status_code=400,
            detail={"error": "invalid_input", "message": str(exc), "fields": exc.errors},
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": str(exc), "entity": exc.entity},
        )
    if isinstance(exc, TrfNotAssignableError):
        return HTTPException(
            status_code=409,
            detail={"error": "trf_not_assignable", "message": str(exc), "trfStatus": exc.status},
        )
    if isinstance(exc, TransactionFailure):
        return HTTPException(
            status_code=500,
            detail={"error": "transaction_failed", "message": str(exc)},
        )
    return HTTPException(status_code=500, detail={"error": "booking_error", "message": str(exc)})
