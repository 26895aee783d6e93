"""Domain-level validation rules for usage selections."""

from __future__ import annotations

import math
from typing import Optional

from backend.domain.models import UsageSelection, ValidationResult


NO_MAIN_SLOT = "At least one main time slot (morning, afternoon, or evening) must be selected"
MIDDAY_EXTENSION_ORPHANED = "Midday extension requires morning or afternoon slot to be selected"
EVENING_EXTENSION_ORPHANED = "Evening extension requires afternoon or evening slot to be selected"


def validate_usage_selection(usage: UsageSelection) -> ValidationResult:
    """Check slot flags, returning the first violated rule only."""
    if not (usage.use_morning or usage.use_afternoon or usage.use_evening):
        return ValidationResult(valid=False, reason=NO_MAIN_SLOT)
    if usage.use_midday_extension and not (usage.use_morning or usage.use_afternoon):
        return ValidationResult(valid=False, reason=MIDDAY_EXTENSION_ORPHANED)
    if usage.use_evening_extension and not (usage.use_afternoon or usage.use_evening):
        return ValidationResult(valid=False, reason=EVENING_EXTENSION_ORPHANED)
    return ValidationResult(valid=True)


def validate_ac_hours(ac_requested: bool, ac_hours: Optional[float]) -> ValidationResult:
    # Clearing the value is always allowed.
    if ac_hours is None:
        return ValidationResult(valid=True)
    if not ac_requested:
        return ValidationResult(
            valid=False,
            reason="Air conditioning was not requested for this usage",
        )
    if not math.isfinite(ac_hours):
        return ValidationResult(valid=False, reason="AC hours must be a finite number")
    if ac_hours < 0:
        return ValidationResult(valid=False, reason="AC hours cannot be negative")
    return ValidationResult(valid=True)


def validate_equipment_quantity(name: str, quantity: int, max_quantity: int) -> ValidationResult:
    if quantity <= 0:
        return ValidationResult(
            valid=False,
            reason=f'Equipment "{name}" quantity must be at least 1',
        )
    if quantity > max_quantity:
        return ValidationResult(
            valid=False,
            reason=f'Equipment "{name}" quantity exceeds maximum ({max_quantity})',
        )
    return ValidationResult(valid=True)
