"""Accommodation booking endpoints for the admin dashboard.

Provides:
- POST   /accommodation/bookings           create (single date or range, blocks)
- PUT    /accommodation/bookings/{id}      replace one booking
- DELETE /accommodation/bookings/{id}      delete / unblock one booking
- GET    /accommodation/bookings           month view with filters
- POST   /accommodation/bookings/cancel    batch cancellation
- POST   /accommodation/bookings/unblock   unblock a room for a date range

All endpoints require the manage_accommodation_bookings capability.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import AliasChoices, Field

from accommodation.api.errors import http_error
from accommodation.api.models import CamelModel
from accommodation.api.rbac import MANAGE_BOOKINGS, PermissionContext, require_permission
from accommodation.domain import bookings as booking_service
from accommodation.domain.booking_query import list_bookings
from accommodation.domain.errors import BookingError
from accommodation.observability.correlation import get_or_none

router = APIRouter(prefix="/accommodation/bookings", tags=["bookings"])

_OCCUPANT_ALIASES = AliasChoices("occupantId", "staffId", "occupant_id")


class CreateBookingRequest(CamelModel):
    """Request body for creating bookings.

    Either ``date`` or both ``checkInDate`` and ``checkOutDate`` must be set;
    dates are ISO strings and are validated by the domain layer.
    """

    room_id: str
    status: str
    staff_house_id: str | None = None
    occupant_id: str | None = Field(default=None, validation_alias=_OCCUPANT_ALIASES)
    date: str | None = None
    check_in_date: str | None = None
    check_out_date: str | None = None
    notes: str | None = None
    block_reason: str | None = None
    trf_id: str | None = None
    force_block: bool = False


class UpdateBookingRequest(CamelModel):
    room_id: str
    status: str
    staff_house_id: str | None = None
    occupant_id: str | None = Field(default=None, validation_alias=_OCCUPANT_ALIASES)
    date: str | None = None
    check_in_date: str | None = None
    notes: str | None = None
    block_reason: str | None = None
    trf_id: str | None = None


class DateRange(CamelModel):
    start_date: str | None = None
    end_date: str | None = None


class CancelBookingsRequest(CamelModel):
    """Batch cancellation criteria (combined with AND)."""

    booking_ids: list[str] | None = None
    occupant_id: str | None = Field(default=None, validation_alias=_OCCUPANT_ALIASES)
    trf_id: str | None = None
    date_range: DateRange | None = None


class UnblockRequest(CamelModel):
    room_id: str
    date: str | None = None
    check_in_date: str | None = None
    check_out_date: str | None = None


def _int_or_none(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@router.post("", status_code=201)
def create_booking(
    body: CreateBookingRequest,
    ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS)),
) -> dict:
    """Book a room for a date or an inclusive range, or block it."""
    try:
        result = booking_service.create_booking(
            room_id=body.room_id,
            status=body.status,
            staff_house_id=body.staff_house_id,
            occupant_id=body.occupant_id,
            date=body.date,
            check_in=body.check_in_date,
            check_out=body.check_out_date,
            notes=body.notes,
            block_reason=body.block_reason,
            trf_id=body.trf_id,
            force_block=body.force_block,
            actor=ctx.actor,
            correlation_id=get_or_none(),
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    count = result["dates_booked"]
    message = f"Successfully booked {count} date(s)"
    if result["force_cancelled_ids"]:
        message += f"; {len(result['force_cancelled_ids'])} existing booking(s) cancelled"
    return {
        "createdIds": result["created_ids"],
        "datesBooked": count,
        "forceCancelledIds": result["force_cancelled_ids"],
        "message": message,
    }


@router.get("")
def get_bookings(
    year: str | None = Query(None),
    month: str | None = Query(None),
    staff_house_id: str | None = Query(None, alias="staffHouseId"),
    room_id: str | None = Query(None, alias="roomId"),
    occupant_id: str | None = Query(None, alias="occupantId"),
    ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS)),
) -> dict:
    """Bookings of one month (current month by default)."""
    rows = list_bookings(
        year=_int_or_none(year),
        month=_int_or_none(month),
        staff_house_id=staff_house_id,
        room_id=room_id,
        occupant_id=occupant_id,
    )
    return {"bookings": rows}


@router.post("/cancel")
def cancel_bookings(
    body: CancelBookingsRequest,
    ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS)),
) -> dict:
    """Cancel bookings by ids, occupant, TRF and/or date range."""
    date_range = body.date_range or DateRange()
    try:
        result = booking_service.cancel_bookings(
            booking_ids=body.booking_ids,
            occupant_id=body.occupant_id,
            trf_id=body.trf_id,
            start_date=date_range.start_date,
            end_date=date_range.end_date,
            actor=ctx.actor,
            correlation_id=get_or_none(),
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    return {
        "cancelledCount": result["cancelled_count"],
        "cancelledBookingIds": result["cancelled_ids"],
        "releasedTrfIds": result["released_trf_ids"],
    }


@router.post("/unblock")
def unblock_room(
    body: UnblockRequest,
    ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS)),
) -> dict:
    """Remove Blocked bookings of a room for a date or range."""
    try:
        result = booking_service.unblock_room(
            room_id=body.room_id,
            date=body.date,
            check_in=body.check_in_date,
            check_out=body.check_out_date,
            actor=ctx.actor,
            correlation_id=get_or_none(),
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    return {"deletedIds": result["deleted_ids"], "datesUnblocked": result["dates_unblocked"]}


@router.put("/{booking_id}")
def update_booking(
    body: UpdateBookingRequest,
    booking_id: str = Path(..., description="Booking ID"),
    ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS)),
) -> dict:
    """Replace one booking (room, date, occupant, status, notes)."""
    try:
        updated = booking_service.update_booking(
            booking_id,
            room_id=body.room_id,
            status=body.status,
            staff_house_id=body.staff_house_id,
            occupant_id=body.occupant_id,
            date=body.date,
            check_in=body.check_in_date,
            notes=body.notes,
            block_reason=body.block_reason,
            trf_id=body.trf_id,
            actor=ctx.actor,
            correlation_id=get_or_none(),
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    if updated is None:
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": "Booking not found"})
    return {"booking": booking_service.booking_to_view(updated)}


@router.delete("/{booking_id}")
def delete_booking(
    booking_id: str = Path(..., description="Booking ID"),
    ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS)),
) -> dict:
    """Delete one booking (also used to unblock a single blocked date)."""
    try:
        booking_service.delete_booking(
            booking_id,
            actor=ctx.actor,
            correlation_id=get_or_none(),
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    return {"message": "Booking deleted successfully", "id": booking_id}
