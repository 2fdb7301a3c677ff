"""TRF-driven accommodation assignment.

An accommodation admin books a room range for the requestor of an approved
travel request. Earlier allocations of the same TRF are replaced, and the
assignment is recorded in the TRF comment log and approval-step history. The
TRF's approval status itself belongs to the workflow engine and is not changed
here.
"""

from __future__ import annotations

from accommodation.domain.allocation_writer import transaction_guard
from accommodation.domain.booking_status import CONFIRMED
from accommodation.domain.bookings import create_booking
from accommodation.domain.date_range import DateLike
from accommodation.domain.errors import NotFoundError, TrfNotAssignableError
from accommodation.infra.db import txn
from accommodation.infra.repositories import bookings_repository, outbox_repository
from accommodation.infra.repositories.travel_requests_repository import (
    append_comment,
    get_travel_request,
    insert_approval_step,
)
from accommodation.observability.logging import get_logger
from accommodation.observability.redaction import safe_log_context

logger = get_logger(__name__)

ASSIGNABLE_STATUSES = frozenset(
    {
        "Processing Accommodation",
        "Pending",
        "Approved",
        "Finance Approved",
    }
)

APPROVAL_STEP_ROLE = "Accommodation Admin"
APPROVAL_STEP_NAME = "Accommodation Assigned"


def assign_trf_accommodation(
    trf_id: str,
    *,
    room_id: str,
    check_in: DateLike,
    check_out: DateLike,
    actor: str,
    staff_house_id: str | None = None,
    assigned_room_info: str | None = None,
    correlation_id: str | None = None,
) -> dict:
    """Book ``room_id`` from check_in to check_out for the TRF's requestor.

    Raises:
        NotFoundError: Unknown TRF.
        TrfNotAssignableError: TRF approval status does not allow assignment.
        BookingConflictError / GenderConflictError: Room is taken.
        InvalidInputError: Bad dates or room.
        TransactionFailure: Database error during the assignment.
    """
    with transaction_guard("assign trf accommodation", trf_id=trf_id), txn() as cur:
        trf = get_travel_request(cur, trf_id, lock=True)
        if trf is None:
            raise NotFoundError("travel request", trf_id)
        if trf["status"] not in ASSIGNABLE_STATUSES:
            raise TrfNotAssignableError(trf_id, trf["status"])

        replaced = bookings_repository.delete_for_trf(cur, trf_id)

        result = create_booking(
            room_id=room_id,
            staff_house_id=staff_house_id,
            status=CONFIRMED,
            check_in=check_in,
            check_out=check_out,
            trf_id=trf_id,
            notes=f"Assigned for TRF {trf_id}",
            actor=actor,
            correlation_id=correlation_id,
            cur=cur,
        )

        summary = assigned_room_info or f"room {room_id}"
        comment = (
            f"Accommodation Assigned by Admin: {summary}, "
            f"{result['dates'][0].isoformat()} to {result['dates'][-1].isoformat()}"
        )
        append_comment(cur, trf_id, comment)
        insert_approval_step(
            cur,
            trf_id=trf_id,
            step_role=APPROVAL_STEP_ROLE,
            step_name=APPROVAL_STEP_NAME,
            status="Approved",
            comments=comment,
        )
        outbox_repository.emit_event(
            cur,
            event_type=outbox_repository.TRF_ACCOMMODATION_ASSIGNED,
            aggregate_type="trf",
            aggregate_id=trf_id,
            payload={
                "room_id": room_id,
                "booking_ids": result["created_ids"],
                "replaced_booking_ids": replaced,
                "occupant_id": result["occupant_id"],
                "actor_id": actor,
            },
            correlation_id=correlation_id,
        )

    logger.info(
        "trf accommodation assigned",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                trf_id=trf_id,
                room_id=room_id,
                dates_booked=result["dates_booked"],
                replaced_count=len(replaced),
            )
        },
    )
    return {
        "trf_id": trf_id,
        "created_ids": result["created_ids"],
        "dates_booked": result["dates_booked"],
        "replaced_ids": replaced,
    }
