"""Travel-request accommodation assignment.

Provides:
- POST /accommodation/trf/{trf_id}/assign
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from accommodation.api.errors import http_error
from accommodation.api.models import CamelModel
from accommodation.api.rbac import APPROVE_REQUESTS, PermissionContext, require_permission
from accommodation.domain.errors import BookingError
from accommodation.domain.trf_assignment import assign_trf_accommodation
from accommodation.observability.correlation import get_or_none

router = APIRouter(prefix="/accommodation/trf", tags=["trf"])


class AssignAccommodationRequest(CamelModel):
    room_id: str
    check_in_date: str
    check_out_date: str
    staff_house_id: str | None = None
    assigned_room_info: str | None = None


@router.post("/{trf_id}/assign")
def assign_accommodation(
    body: AssignAccommodationRequest,
    trf_id: str = Path(..., description="Travel request ID"),
    ctx: PermissionContext = Depends(require_permission(APPROVE_REQUESTS)),
) -> dict:
    """Book a room range for the TRF's requestor, replacing earlier bookings."""
    try:
        result = assign_trf_accommodation(
            trf_id,
            room_id=body.room_id,
            staff_house_id=body.staff_house_id,
            check_in=body.check_in_date,
            check_out=body.check_out_date,
            assigned_room_info=body.assigned_room_info,
            actor=ctx.actor,
            correlation_id=get_or_none(),
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    return {
        "trfId": result["trf_id"],
        "createdIds": result["created_ids"],
        "datesBooked": result["dates_booked"],
    }
