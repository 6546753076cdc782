from __future__ import annotations
from datetime import datetime, timedelta, timezone
from townhall.services.time_windows import (
    deadline_label,
    is_ending_soon,
    next_weekly_reset,
    parse_timestamp,
    time_range_lower_bound,
    week_start,
)
import pytest

UTC = timezone.utc


def test_week_starts_monday_midnight_utc():
    wed = datetime(2025, 1, 15, 9, 30, tzinfo=UTC)
    assert week_start(wed) == datetime(2025, 1, 13, tzinfo=UTC)
    assert next_weekly_reset(wed) == datetime(2025, 1, 20, tzinfo=UTC)


def test_reset_on_boundary_moves_a_full_week():
    """A time exactly on the boundary has already been reset"""
    monday = datetime(2025, 1, 13, tzinfo=UTC)
    assert week_start(monday) == monday
    assert next_weekly_reset(monday) == datetime(2025, 1, 20, tzinfo=UTC)


def test_week_start_handles_other_timezones():
    # Monday 01:00 in Berlin is still Sunday in UTC
    berlin = timezone(timedelta(hours=1))
    t = datetime(2025, 1, 13, 0, 30, tzinfo=berlin)
    assert week_start(t) == datetime(2025, 1, 6, tzinfo=UTC)


def test_today_is_utc_midnight():
    now = datetime(2025, 3, 12, 18, 45, tzinfo=UTC)
    assert time_range_lower_bound("today", now) == datetime(2025, 3, 12, tzinfo=UTC)


def test_week_is_seven_days_back():
    now = datetime(2025, 3, 12, 18, 45, tzinfo=UTC)
    assert time_range_lower_bound("week", now) == now - timedelta(days=7)


def test_month_clamps_day():
    now = datetime(2025, 3, 31, 10, 0, tzinfo=UTC)
    assert time_range_lower_bound("month", now) == datetime(2025, 2, 28, 10, 0, tzinfo=UTC)
    jan = datetime(2025, 1, 15, tzinfo=UTC)
    assert time_range_lower_bound("month", jan) == datetime(2024, 12, 15, tzinfo=UTC)


@pytest.mark.parametrize("tr", ["all", None, "forever"])
def test_no_bound(tr):
    assert time_range_lower_bound(tr, datetime(2025, 3, 12, tzinfo=UTC)) is None


def test_ending_soon_window():
    now = datetime(2025, 3, 12, tzinfo=UTC)
    assert is_ending_soon(now + timedelta(days=6, hours=23), now)
    assert not is_ending_soon(now + timedelta(days=7), now)
    assert is_ending_soon(now - timedelta(days=1), now)
    assert not is_ending_soon(None, now)


@pytest.mark.parametrize("delta,text,urgent,ended", [
    (timedelta(days=10), "10 days left", False, False),
    (timedelta(days=6, hours=1), "7 days left", True, False),
    (timedelta(hours=30), "2 days left", True, False),
    (timedelta(hours=20), "Ends tomorrow", True, False),
    (timedelta(hours=-3), "Ends today", True, True),
    (timedelta(days=-2), "Voting ended", False, True),
])
def test_deadline_labels(delta, text, urgent, ended):
    now = datetime(2025, 3, 12, 12, tzinfo=UTC)
    label = deadline_label(now + delta, now)
    assert (label.text, label.urgent, label.ended) == (text, urgent, ended)


def test_parse_timestamp_naive_is_utc():
    assert parse_timestamp("2025-03-12T08:00:00") == datetime(2025, 3, 12, 8, tzinfo=UTC)
    assert parse_timestamp("2025-03-12T08:00:00+02:00") == datetime(2025, 3, 12, 6, tzinfo=UTC)
    assert parse_timestamp(None) is None and parse_timestamp("") is None
