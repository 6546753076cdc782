from __future__ import annotations
import calendar
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_tz

from townhall.config import settings

# Weekly vote allowance resets on a fixed boundary, independent of user activity.
WEEKLY_RESET_WEEKDAY = settings.weekly_reset_weekday  # 0 = Monday
WEEKLY_RESET_HOUR = settings.weekly_reset_hour  # UTC
ENDING_SOON_WINDOW = timedelta(days=settings.ending_soon_days)

TIME_RANGES = ("today", "week", "month", "all")


def utcnow() -> datetime:
    return datetime.now(dt_tz.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Backend timestamps arrive as ISO-8601 strings; None passes through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(value))


def week_start(now: datetime, weekday: int = WEEKLY_RESET_WEEKDAY, hour: int = WEEKLY_RESET_HOUR) -> datetime:
    """
    Most recent weekly reset boundary at or before `now`.

    Examples:
        >>> week_start(datetime(2025, 1, 15, 9, 30, tzinfo=dt_tz.utc))  # Wednesday
        datetime.datetime(2025, 1, 13, 0, 0, tzinfo=datetime.timezone.utc)
    """
    now = as_utc(now)
    anchor = datetime(now.year, now.month, now.day, hour, tzinfo=dt_tz.utc)
    anchor -= timedelta(days=(anchor.weekday() - weekday) % 7)
    if anchor > now:
        anchor -= timedelta(days=7)
    return anchor


def next_weekly_reset(now: datetime, weekday: int = WEEKLY_RESET_WEEKDAY, hour: int = WEEKLY_RESET_HOUR) -> datetime:
    """
    Next weekly reset strictly after `now`.

    A `now` that sits exactly on a boundary resets a week later, since that
    boundary has already been applied.

    Examples:
        >>> next_weekly_reset(datetime(2025, 1, 15, 9, 30, tzinfo=dt_tz.utc))
        datetime.datetime(2025, 1, 20, 0, 0, tzinfo=datetime.timezone.utc)
    """
    return week_start(now, weekday, hour) + timedelta(days=7)


def _minus_one_month(dt: datetime) -> datetime:
    year, month = (dt.year - 1, 12) if dt.month == 1 else (dt.year, dt.month - 1)
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def time_range_lower_bound(time_range: str | None, now: datetime) -> datetime | None:
    """
    Inclusive lower bound on `created_at` for a feed time range.

    `today` is UTC midnight, `week` is seven days back, `month` is the same
    instant one calendar month back (day clamped to the month's length).
    `all` and anything unrecognised mean no bound.
    """
    now = as_utc(now)
    if time_range == "today":
        return datetime(now.year, now.month, now.day, tzinfo=dt_tz.utc)
    if time_range == "week":
        return now - timedelta(days=7)
    if time_range == "month":
        return _minus_one_month(now)
    return None


def is_ending_soon(voting_ends_at: datetime | None, now: datetime, window: timedelta = ENDING_SOON_WINDOW) -> bool:
    # A deadline already in the past still counts: it is closer than the window.
    if voting_ends_at is None:
        return False
    return as_utc(voting_ends_at) - as_utc(now) < window


@dataclass(frozen=True)
class DeadlineLabel:
    text: str
    days_left: int
    urgent: bool
    ended: bool


def deadline_label(voting_ends_at: datetime, now: datetime) -> DeadlineLabel:
    """
    Human label for an official proposal's voting deadline.

    Days left are rounded up: 20 hours away is "Ends tomorrow", 30 hours
    away is "2 days left". A deadline less than a day in the past still
    reads "Ends today" (with `ended` set) before switching to "Voting ended".
    """
    diff = (as_utc(voting_ends_at) - as_utc(now)).total_seconds()
    days = math.ceil(diff / 86400)
    if days < 0:
        return DeadlineLabel("Voting ended", days, urgent=False, ended=True)
    if days <= 0:
        return DeadlineLabel("Ends today", 0, urgent=True, ended=diff <= 0)
    if days == 1:
        return DeadlineLabel("Ends tomorrow", 1, urgent=True, ended=False)
    return DeadlineLabel(f"{days} days left", days, urgent=days <= ENDING_SOON_WINDOW.days, ended=False)
