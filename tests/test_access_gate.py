from __future__ import annotations

from datetime import timedelta

import pytest

from pipelines.access_gate import Denied, Granted, NotActivated, days_left
from pipelines.errors import ValidationError
from storage import db
from storage.device_state import EXPIRY_KEY
from storage.models import UserRole


def test_fresh_device_is_not_activated(gate):
    assert isinstance(gate.check_access(), NotActivated)


def test_activation_grants_thirty_days(gate, clock):
    expiry = gate.activate("123456")

    assert (expiry - clock.now).days == 30
    access = gate.check_access()
    assert isinstance(access, Granted)
    assert access.days_remaining == 30
    assert access.role is None
    assert not access.show_warning


@pytest.mark.parametrize(
    "code",
    ["", "12345", "12a456", "1234567", "abcdef", "12 456", "123456\n", "١٢٣٤٥٦"],
)
def test_activation_rejects_malformed_codes(gate, code):
    with pytest.raises(ValidationError) as info:
        gate.activate(code)

    assert info.value.field == "code"
    assert isinstance(gate.check_access(), NotActivated)


def test_any_six_digit_code_is_accepted(gate):
    gate.activate("000000")
    assert isinstance(gate.check_access(), Granted)


@pytest.mark.parametrize(
    "elapsed, remaining, warning, critical",
    [
        ({"days": 22}, 8, False, False),
        ({"days": 23}, 7, True, False),
        ({"days": 27}, 3, True, True),
        ({"days": 29, "hours": 23}, 1, True, True),
    ],
)
def test_remaining_days_round_up_and_drive_warnings(gate, clock, elapsed, remaining, warning, critical):
    gate.activate("123456")
    clock.advance(**elapsed)

    access = gate.check_access()
    assert isinstance(access, Granted)
    assert access.days_remaining == remaining
    assert access.show_warning is warning
    assert access.is_critical is critical


def test_expiry_purges_role_and_last_case(gate, device, clock):
    gate.activate("123456")
    gate.select_role(UserRole.nurse)
    device.remember_case(7)

    clock.advance(days=30)

    assert isinstance(gate.check_access(), Denied)
    assert device.get_expiry_raw() is None
    assert device.get_role() is None
    assert device.get_last_case_id() is None
    # once purged the device looks never-activated
    assert isinstance(gate.check_access(), NotActivated)


def test_reactivation_after_expiry_restores_access_without_role(gate, clock):
    gate.activate("123456")
    gate.select_role(UserRole.physician)
    clock.advance(days=31)
    assert isinstance(gate.check_access(), Denied)

    gate.activate("654321")

    access = gate.check_access()
    assert isinstance(access, Granted)
    assert access.days_remaining == 30
    assert access.role is None


def test_role_is_reported_once_selected(gate):
    gate.activate("123456")
    gate.select_role(UserRole.first_responder)

    access = gate.check_access()
    assert access.role is UserRole.first_responder


def test_unreadable_expiry_is_treated_as_expired(gate, device):
    db.set_setting(EXPIRY_KEY, "not-a-date")

    assert isinstance(gate.check_access(), Denied)
    assert device.get_expiry_raw() is None


def test_days_left_is_ceiling_of_remaining_time(clock):
    gate_now = clock.now
    clock.advance(days=2, seconds=1)
    assert days_left(clock.now, gate_now) == 3
    assert days_left(gate_now, clock.now) == -2


def test_last_second_of_grant_still_counts_as_one_day(gate, device, clock):
    device.set_expiry(clock.now + timedelta(days=1, seconds=-1))

    access = gate.check_access()
    assert isinstance(access, Granted)
    assert access.days_remaining == 1


def test_expiry_at_exactly_now_is_denied(gate, device, clock):
    device.set_expiry(clock.now)

    assert isinstance(gate.check_access(), Denied)
