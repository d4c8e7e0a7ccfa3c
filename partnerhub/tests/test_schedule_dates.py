from __future__ import annotations

from datetime import datetime

import pytest

from partnerhub.services.schedule_dates import (
    compute_deadline,
    compute_next_send_at,
    days_until_weekday,
    parse_time_of_day,
    sunday_based_weekday,
)


def test_sunday_is_weekday_zero():
    assert sunday_based_weekday(datetime(2026, 3, 1)) == 0  # Sunday
    assert sunday_based_weekday(datetime(2026, 3, 2)) == 1
    assert sunday_based_weekday(datetime(2026, 3, 7)) == 6


def test_days_until_same_weekday_is_a_full_week():
    assert days_until_weekday(3, 3) == 7
    assert days_until_weekday(3, 5) == 2
    assert days_until_weekday(5, 1) == 3


def test_parse_time_of_day_accepts_short_and_long_forms():
    assert parse_time_of_day("18:30").hour == 18
    assert parse_time_of_day("07:05:00").minute == 5
    assert parse_time_of_day(None).hour == 9


def test_daily_schedule_fires_next_day_at_time_of_day():
    now = datetime(2026, 3, 1, 9, 0, 0)
    assert compute_next_send_at("daily", now, time_of_day="09:00:00") == datetime(2026, 3, 2, 9, 0)
    assert compute_deadline(now, 3) == datetime(2026, 3, 4, 9, 0)


@pytest.mark.parametrize("day_of_week", range(7))
def test_weekly_lands_strictly_after_now_on_requested_weekday(day_of_week):
    for day in range(1, 15):
        now = datetime(2026, 3, day, 10, 15)
        result = compute_next_send_at("weekly", now, day_of_week=day_of_week, time_of_day="09:00")
        assert result > now
        assert sunday_based_weekday(result) == day_of_week
        assert (result.date() - now.date()).days <= 7


def test_weekly_defaults_to_monday():
    now = datetime(2026, 3, 4, 12, 0)  # Wednesday
    assert compute_next_send_at("weekly", now) == datetime(2026, 3, 9, 9, 0)


def test_biweekly_adds_one_more_week():
    now = datetime(2026, 3, 4, 12, 0)  # Wednesday
    assert compute_next_send_at("biweekly", now, day_of_week=5) == datetime(2026, 3, 13, 9, 0)


def test_monthly_day_31_clamps_to_end_of_february():
    assert compute_next_send_at("monthly", datetime(2026, 1, 31, 9, 0), day_of_month=31) == datetime(2026, 2, 28, 9, 0)
    assert compute_next_send_at("monthly", datetime(2028, 1, 15, 9, 0), day_of_month=31) == datetime(2028, 2, 29, 9, 0)


def test_monthly_wraps_into_next_year():
    result = compute_next_send_at("monthly", datetime(2026, 12, 20, 8, 0), day_of_month=5, time_of_day="10:00")
    assert result == datetime(2027, 1, 5, 10, 0)


def test_monthly_defaults_to_first_of_month():
    assert compute_next_send_at("monthly", datetime(2026, 4, 10)) == datetime(2026, 5, 1, 9, 0)


def test_unknown_frequency_is_rejected():
    with pytest.raises(ValueError):
        compute_next_send_at("hourly", datetime(2026, 3, 1))
