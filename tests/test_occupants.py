"""Tests for occupant resolution."""

from unittest.mock import MagicMock

from accommodation.domain.occupants import NO_OCCUPANT, normalize_gender, resolve_occupant


def _cursor(*rows):
    cur = MagicMock()
    cur.fetchone.side_effect = list(rows)
    return cur


class TestResolveOccupant:
    def test_guest_record_first(self):
        cur = _cursor(("guest-1", "Female"))
        result = resolve_occupant(cur, occupant_id="guest-1")
        assert result.occupant_id == "guest-1"
        assert result.gender == "Female"
        assert result.source == "guest"
        assert cur.execute.call_count == 1

    def test_falls_back_to_user_by_id_or_staff_id(self):
        cur = _cursor(None, ("user-7", "male"))
        result = resolve_occupant(cur, occupant_id="ST-007")
        assert result.occupant_id == "user-7"
        assert result.gender == "Male"
        assert result.source == "user"
        sql, params = cur.execute.call_args.args
        assert "staff_id = %s" in sql
        assert params == ("ST-007", "ST-007", "ST-007")

    def test_explicit_id_wins_over_trf(self):
        cur = _cursor(("guest-1", "Male"))
        result = resolve_occupant(cur, occupant_id="guest-1", trf_id="TRF-1")
        assert result.source == "guest"

    def test_trf_requestor(self):
        cur = _cursor(("user-3", "Female"))
        result = resolve_occupant(cur, trf_id="TRF-1")
        assert result.occupant_id == "user-3"
        assert result.source == "trf"
        assert "travel_requests" in cur.execute.call_args.args[0]

    def test_unresolved_never_raises(self):
        cur = _cursor(None, None)
        assert resolve_occupant(cur, occupant_id="ghost") is NO_OCCUPANT

    def test_unresolved_trf(self):
        cur = _cursor(None)
        result = resolve_occupant(cur, trf_id="TRF-404")
        assert not result.resolved

    def test_nothing_supplied_skips_db(self):
        cur = MagicMock()
        assert resolve_occupant(cur) is NO_OCCUPANT
        cur.execute.assert_not_called()

    def test_unknown_gender_kept_as_none(self):
        cur = _cursor(("guest-2", "X"))
        result = resolve_occupant(cur, occupant_id="guest-2")
        assert result.resolved
        assert result.gender is None


def test_normalize_gender():
    assert normalize_gender("FEMALE") == "Female"
    assert normalize_gender("") is None
    assert normalize_gender(None) is None
    assert normalize_gender("other") is None
