"""Tests for usage-selection, AC-hours and equipment quantity rules."""

from __future__ import annotations

from datetime import date

import pytest

from backend.domain.constraints import (
    EVENING_EXTENSION_ORPHANED,
    MIDDAY_EXTENSION_ORPHANED,
    NO_MAIN_SLOT,
    validate_ac_hours,
    validate_equipment_quantity,
    validate_usage_selection,
)
from backend.domain.models import UsageSelection


def selection(**flags) -> UsageSelection:
    """Return a usage on a fixed date with the given slot flags."""
    return UsageSelection(room_id=1, date=date(2025, 1, 15), **flags)


# --- Main slot requirement ---

def test_single_main_slot_is_valid():
    for flag in ("use_morning", "use_afternoon", "use_evening"):
        result = validate_usage_selection(selection(**{flag: True}))
        assert result.valid
        assert result.reason is None


def test_no_main_slot_is_rejected():
    result = validate_usage_selection(selection())
    assert not result.valid
    assert result.reason == NO_MAIN_SLOT


def test_extensions_alone_report_missing_main_slot_first():
    """Fail fast: only the first violated rule is reported."""
    result = validate_usage_selection(
        selection(use_midday_extension=True, use_evening_extension=True)
    )
    assert result.reason == NO_MAIN_SLOT


# --- Midday extension ---

def test_midday_extension_with_morning_only_is_valid():
    assert validate_usage_selection(selection(use_morning=True, use_midday_extension=True)).valid


def test_midday_extension_with_afternoon_only_is_valid():
    assert validate_usage_selection(selection(use_afternoon=True, use_midday_extension=True)).valid


def test_midday_extension_with_evening_only_is_rejected():
    result = validate_usage_selection(selection(use_evening=True, use_midday_extension=True))
    assert not result.valid
    assert result.reason == MIDDAY_EXTENSION_ORPHANED


# --- Evening extension ---

def test_evening_extension_with_evening_only_is_valid():
    assert validate_usage_selection(selection(use_evening=True, use_evening_extension=True)).valid


def test_evening_extension_with_morning_only_is_rejected():
    result = validate_usage_selection(selection(use_morning=True, use_evening_extension=True))
    assert not result.valid
    assert result.reason == EVENING_EXTENSION_ORPHANED


def test_midday_rule_is_checked_before_evening_rule():
    result = validate_usage_selection(
        selection(use_evening=False, use_morning=False, use_afternoon=False)
    )
    assert result.reason == NO_MAIN_SLOT

    both_orphaned = selection(
        use_evening=True,
        use_midday_extension=True,
        use_evening_extension=False,
    )
    assert validate_usage_selection(both_orphaned).reason == MIDDAY_EXTENSION_ORPHANED


# --- AC hours ---

def test_clearing_ac_hours_is_always_allowed():
    assert validate_ac_hours(ac_requested=False, ac_hours=None).valid
    assert validate_ac_hours(ac_requested=True, ac_hours=None).valid


def test_ac_hours_without_request_is_rejected():
    result = validate_ac_hours(ac_requested=False, ac_hours=1.0)
    assert not result.valid
    assert "not requested" in result.reason


def test_negative_ac_hours_is_rejected():
    result = validate_ac_hours(ac_requested=True, ac_hours=-0.5)
    assert not result.valid
    assert result.reason == "AC hours cannot be negative"


def test_zero_ac_hours_is_allowed():
    assert validate_ac_hours(ac_requested=True, ac_hours=0.0).valid


@pytest.mark.parametrize("hours", [float("inf"), float("-inf"), float("nan")])
def test_non_finite_ac_hours_is_rejected(hours):
    result = validate_ac_hours(ac_requested=True, ac_hours=hours)
    assert not result.valid
    assert result.reason == "AC hours must be a finite number"


# --- Equipment quantity ---

def test_equipment_quantity_at_maximum_passes():
    assert validate_equipment_quantity("Microphone", 4, 4).valid


def test_equipment_quantity_over_maximum_is_rejected():
    result = validate_equipment_quantity("Microphone", 5, 4)
    assert not result.valid
    assert result.reason == 'Equipment "Microphone" quantity exceeds maximum (4)'


def test_equipment_quantity_zero_is_rejected():
    assert not validate_equipment_quantity("Microphone", 0, 4).valid
