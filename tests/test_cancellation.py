from __future__ import annotations

from datetime import date, datetime

from backend.domain.models import CancellationRecord
from backend.domain.pricing import calculate_cancellation_fee, summarize_cancellation


USAGE_DATE = date(2025, 12, 25)


def test_cancellation_before_usage_day_is_free():
    assert calculate_cancellation_fee(USAGE_DATE, datetime(2025, 12, 24, 23, 59, 59), 15000) == 0
    assert calculate_cancellation_fee(USAGE_DATE, datetime(2025, 11, 1, 9, 0), 15000) == 0


def test_cancellation_on_usage_day_charges_full_subtotal():
    assert calculate_cancellation_fee(USAGE_DATE, datetime(2025, 12, 25, 0, 0, 0), 15000) == 15000
    assert calculate_cancellation_fee(USAGE_DATE, datetime(2025, 12, 25, 8, 0), 15000) == 15000


def test_cancellation_after_usage_day_charges_full_subtotal():
    assert calculate_cancellation_fee(USAGE_DATE, datetime(2025, 12, 26, 10, 0), 15000) == 15000


def test_missing_cancellation_time_means_no_fee():
    assert calculate_cancellation_fee(USAGE_DATE, None, 15000) == 0


def test_fee_is_a_step_function_of_the_calendar_date():
    fees = {
        calculate_cancellation_fee(USAGE_DATE, datetime(2025, 12, 25, hour, 0), 8000)
        for hour in range(24)
    }
    assert fees == {8000}


def test_summary_charges_only_usages_already_reached():
    cancelled_at = datetime(2025, 12, 25, 10, 0)
    records = [
        CancellationRecord(usage_date=date(2025, 12, 25), cancelled_at=cancelled_at, subtotal=15000),
        CancellationRecord(usage_date=date(2025, 12, 27), cancelled_at=cancelled_at, subtotal=25000),
    ]
    summary = summarize_cancellation(records, total_amount=40000)
    assert summary.total_amount == 40000
    assert summary.cancellation_fee == 15000
    assert summary.refund_amount == 25000
    assert len(summary.records) == 2


def test_summary_refund_never_goes_negative():
    records = [
        CancellationRecord(
            usage_date=date(2025, 12, 25),
            cancelled_at=datetime(2025, 12, 26, 9, 0),
            subtotal=20000,
        )
    ]
    summary = summarize_cancellation(records, total_amount=15000)
    assert summary.cancellation_fee == 20000
    assert summary.refund_amount == 0
