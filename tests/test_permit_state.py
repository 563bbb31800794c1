"""Unit tests for permit state transitions, checklist merging and readiness."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.domain.clock import as_utc
from src.domain.entities import (
    InvalidStateTransition,
    Permit,
    Photo,
    activate_permit,
    evaluate_readiness,
    expire_permit,
    is_ready,
    merge_checklist,
    normalize_checklist,
)
from src.domain.enums import CHECKLIST_KEYS, PERMIT_DURATION, PermitStatus, PhotoSlot
from src.domain.errors import InvalidState, NotReady

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def _complete_permit() -> Permit:
    return Permit(
        checklist={key: True for key in CHECKLIST_KEYS},
        photos=[Photo(slot=slot) for slot in PhotoSlot],
    )


class TestPermitStateMachine:
    def test_initial_status_is_pending(self):
        assert Permit().status == PermitStatus.PENDING

    # ── Valid transitions ─────────────────────────────────────────

    def test_pending_to_active(self):
        permit = Permit()
        permit.activate(NOW)
        assert permit.status == PermitStatus.ACTIVE
        assert permit.issued_at == NOW
        assert permit.expires_at == NOW + timedelta(hours=16)

    def test_pending_to_rejected(self):
        permit = Permit()
        permit.transition_to(PermitStatus.REJECTED)
        assert permit.status == PermitStatus.REJECTED

    def test_active_to_expired_clears_routing_flag(self):
        permit = Permit(status=PermitStatus.ACTIVE, order_routing_enabled=True)
        permit.expire()
        assert permit.status == PermitStatus.EXPIRED
        assert permit.order_routing_enabled is False

    # ── Invalid transitions ───────────────────────────────────────

    def test_pending_to_expired_fails(self):
        with pytest.raises(InvalidStateTransition):
            Permit().expire()

    def test_expired_is_terminal(self):
        permit = Permit(status=PermitStatus.EXPIRED)
        with pytest.raises(InvalidStateTransition):
            permit.transition_to(PermitStatus.ACTIVE)

    def test_rejected_is_terminal(self):
        permit = Permit(status=PermitStatus.REJECTED)
        with pytest.raises(InvalidStateTransition):
            permit.transition_to(PermitStatus.PENDING)

    def test_active_cannot_be_reactivated(self):
        permit = Permit(status=PermitStatus.ACTIVE)
        with pytest.raises(InvalidStateTransition):
            permit.activate(NOW)

    def test_transition_error_is_an_invalid_state(self):
        assert issubclass(InvalidStateTransition, InvalidState)

    # ── Currency ──────────────────────────────────────────────────

    def test_is_current_until_expiry(self):
        permit = Permit()
        permit.activate(NOW)
        assert permit.is_current(NOW + PERMIT_DURATION - timedelta(seconds=1))
        assert not permit.is_current(NOW + PERMIT_DURATION)

    def test_pending_is_never_current(self):
        assert not Permit().is_current(NOW)


class TestTransitionHelpers:
    """The same rules apply to ORM rows, which only share the attribute names."""

    def test_activate_row(self):
        row = SimpleNamespace(
            status="pending", issued_at=None, expires_at=None, order_routing_enabled=True
        )
        activate_permit(row, NOW)
        assert row.status == PermitStatus.ACTIVE
        assert row.expires_at - row.issued_at == PERMIT_DURATION
        assert row.order_routing_enabled is False

    def test_expire_row(self):
        row = SimpleNamespace(status=PermitStatus.ACTIVE, order_routing_enabled=True)
        expire_permit(row)
        assert row.status == PermitStatus.EXPIRED
        assert row.order_routing_enabled is False

    def test_expire_pending_row_fails(self):
        row = SimpleNamespace(status="pending", order_routing_enabled=False)
        with pytest.raises(InvalidStateTransition):
            expire_permit(row)
        assert row.status == "pending"


class TestChecklistHelpers:
    def test_normalize_fills_missing_keys(self):
        checklist = normalize_checklist({"plafon": True})
        assert list(checklist) == list(CHECKLIST_KEYS)
        assert checklist["plafon"] is True
        assert checklist["dashcam"] is False

    def test_normalize_treats_truthy_non_bool_as_false(self):
        assert normalize_checklist({"plafon": "yes"})["plafon"] is False

    def test_merge_ignores_unknown_keys(self):
        merged = merge_checklist(None, {"spareTyre": True, "lights": 1})
        assert "spareTyre" not in merged
        assert merged["lights"] is True

    def test_merge_can_unset(self):
        merged = merge_checklist({"plafon": True}, {"plafon": False})
        assert merged["plafon"] is False


class TestReadiness:
    def test_complete_permit_is_ready(self):
        assert is_ready(_complete_permit())

    def test_one_unchecked_item_blocks(self):
        permit = _complete_permit()
        permit.checklist["medicalCheck"] = False
        readiness = evaluate_readiness(permit.checklist, [p.slot for p in permit.photos])
        assert not readiness.ready
        assert readiness.missing_checklist == ("medicalCheck",)
        assert readiness.missing_photos == ()

    def test_one_missing_photo_blocks(self):
        permit = _complete_permit()
        permit.photos = [p for p in permit.photos if p.slot != PhotoSlot.WAYBILL_2]
        assert not is_ready(permit)

    def test_slot_values_as_plain_strings(self):
        readiness = evaluate_readiness(
            {key: True for key in CHECKLIST_KEYS}, ["waybill_1", "car_exterior"]
        )
        assert readiness.missing_photos == ("waybill_2", "car_interior")

    def test_not_ready_message_names_categories(self):
        assert str(NotReady(["plafon"], [])).endswith("incomplete checklist")
        assert str(NotReady(["plafon"], ["waybill_1"])).endswith(
            "incomplete checklist and photos"
        )


class TestClock:
    def test_naive_values_are_treated_as_utc(self):
        assert as_utc(datetime(2026, 1, 1, 12, 0)) == datetime(
            2026, 1, 1, 12, 0, tzinfo=timezone.utc
        )
