from datetime import date

import pytest

from backend.recurrence import InvalidRangeError, default_until, expand, parse_rrule_frequency


def test_daily_expansion_includes_until_date():
    assert expand("2024-01-01", "daily", "2024-01-03") == ["2024-01-01", "2024-01-02", "2024-01-03"]


def test_weekly_expansion():
    assert expand("2024-01-01", "weekly", "2024-01-22") == [
        "2024-01-01", "2024-01-08", "2024-01-15", "2024-01-22",
    ]


def test_weekly_expansion_stops_before_a_partial_week():
    assert expand("2024-01-01", "weekly", "2024-01-21") == ["2024-01-01", "2024-01-08", "2024-01-15"]


def test_until_before_start_is_rejected():
    with pytest.raises(InvalidRangeError):
        expand("2024-02-01", "daily", "2024-01-01")


def test_single_day_range_yields_start_date():
    assert expand(date(2024, 3, 5), "monthly", date(2024, 3, 5)) == ["2024-03-05"]


def test_monthly_clamps_to_month_end_without_drifting():
    assert expand("2024-01-31", "monthly", "2024-04-30") == [
        "2024-01-31", "2024-02-29", "2024-03-31", "2024-04-30",
    ]


def test_unknown_frequency_is_a_value_error():
    with pytest.raises(ValueError):
        expand("2024-01-01", "yearly", "2025-01-01")


def test_rrule_frequency_detection():
    assert parse_rrule_frequency("FREQ=DAILY;COUNT=5") == "daily"
    assert parse_rrule_frequency("freq=monthly;bymonthday=1") == "monthly"
    assert parse_rrule_frequency("FREQ=WEEKLY;BYDAY=MO") == "weekly"
    assert parse_rrule_frequency("FREQ=YEARLY") == "weekly"
    assert parse_rrule_frequency(None) == "weekly"


def test_default_until_is_six_months_out():
    assert default_until("2024-01-15") == date(2024, 7, 15)
    assert default_until(date(2024, 8, 31)) == date(2025, 2, 28)
