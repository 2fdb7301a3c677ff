"""Tests for TRF-driven accommodation assignment."""

from datetime import date
from types import SimpleNamespace
from unittest.mock import patch

import psycopg2
import pytest

from accommodation.domain.errors import NotFoundError, TransactionFailure, TrfNotAssignableError
from accommodation.domain.trf_assignment import assign_trf_accommodation
from helpers import mock_txn

TRF = {
    "id": "TRF-1",
    "staff_id": "ST-9",
    "requestor_name": "A. Traveller",
    "status": "Processing Accommodation",
    "travel_type": "Domestic",
}

CREATED = {
    "created_ids": ["n1", "n2"],
    "dates_booked": 2,
    "dates": [date(2024, 4, 1), date(2024, 4, 2)],
    "staff_house_id": "H1",
    "occupant_id": "user-9",
    "force_cancelled_ids": [],
}


@pytest.fixture
def trf_env():
    with patch("accommodation.domain.trf_assignment.txn") as txn_fn, \
         patch("accommodation.domain.trf_assignment.get_travel_request") as get_trf, \
         patch("accommodation.domain.trf_assignment.create_booking", return_value=CREATED) as create, \
         patch("accommodation.domain.trf_assignment.append_comment") as comment, \
         patch("accommodation.domain.trf_assignment.insert_approval_step") as step, \
         patch("accommodation.infra.repositories.bookings_repository.delete_for_trf", return_value=["old-1"]) as delete_old, \
         patch("accommodation.infra.repositories.outbox_repository.emit_event", return_value=1) as emit:
        cur = mock_txn(txn_fn)
        yield SimpleNamespace(
            cur=cur, get_trf=get_trf, create=create, comment=comment, step=step,
            delete_old=delete_old, emit=emit,
        )


def _assign(**overrides):
    kwargs = dict(room_id="R101", check_in="2024-04-01", check_out="2024-04-02", actor="Jane Admin")
    kwargs.update(overrides)
    return assign_trf_accommodation("TRF-1", **kwargs)


def test_assigns_room_for_requestor(trf_env):
    trf_env.get_trf.return_value = dict(TRF)

    result = _assign(assigned_room_info="Kiyanly House, room 101")

    assert result == {
        "trf_id": "TRF-1",
        "created_ids": ["n1", "n2"],
        "dates_booked": 2,
        "replaced_ids": ["old-1"],
    }
    trf_env.delete_old.assert_called_once_with(trf_env.cur, "TRF-1")
    create_kwargs = trf_env.create.call_args.kwargs
    assert create_kwargs["trf_id"] == "TRF-1"
    assert create_kwargs["status"] == "Confirmed"
    assert create_kwargs["cur"] is trf_env.cur
    assert "occupant_id" not in create_kwargs

    comment = trf_env.comment.call_args.args[2]
    assert comment.startswith("Accommodation Assigned by Admin: Kiyanly House, room 101")
    assert trf_env.step.call_args.kwargs["step_name"] == "Accommodation Assigned"
    assert trf_env.emit.call_args.kwargs["event_type"] == "TRF_ACCOMMODATION_ASSIGNED"


def test_unknown_trf(trf_env):
    trf_env.get_trf.return_value = None
    with pytest.raises(NotFoundError):
        _assign()
    trf_env.create.assert_not_called()


@pytest.mark.parametrize("status", ["Draft", "Rejected", "Cancelled", "Completed"])
def test_status_gate(trf_env, status):
    trf_env.get_trf.return_value = {**TRF, "status": status}
    with pytest.raises(TrfNotAssignableError) as exc_info:
        _assign()
    assert exc_info.value.status == status
    trf_env.delete_old.assert_not_called()


def test_database_error_becomes_transaction_failure(trf_env):
    trf_env.get_trf.return_value = TRF
    trf_env.emit.side_effect = psycopg2.OperationalError("disk full")

    with pytest.raises(TransactionFailure) as exc_info:
        _assign()

    assert isinstance(exc_info.value.cause, psycopg2.OperationalError)
