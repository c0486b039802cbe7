"""Next-run calculation for every recurrence kind.

All functions here are pure: the reference instant is always passed in, and
every instant returned is an aware UTC datetime strictly after it. Wall-clock
arithmetic (times of day, weekdays, month ends) happens in the schedule's own
timezone.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadCronError, CroniterBadDateError, croniter

from recur.infrastructure.clock import to_utc
from recur.infrastructure.config import CRON_SEARCH_YEARS
from recur.scheduling.errors import ScheduleValidationError
from recur.scheduling.types import (
    CustomRecurrence,
    DailyRecurrence,
    MonthlyRecurrence,
    OnceRecurrence,
    Recurrence,
    WeeklyRecurrence,
)

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
CRON_FIELD_COUNT = 5


def compute_next_run(recurrence: Recurrence, reference: datetime, tz: str = "UTC") -> datetime | None:
    """Return the first instant strictly after reference at which recurrence fires.

    Returns None when the rule has no future occurrence: a Once whose time
    has passed, or a cron expression that matches nothing within
    CRON_SEARCH_YEARS (e.g. Feb 30).
    """
    reference = to_utc(reference)
    zone = get_zone(tz)

    if isinstance(recurrence, OnceRecurrence):
        at = localize(recurrence.at, zone) if recurrence.at.tzinfo is None else to_utc(recurrence.at)
        return at if at > reference else None
    if isinstance(recurrence, DailyRecurrence):
        return _first_after(reference, zone, recurrence.at, _days_from(reference, zone, 3))
    if isinstance(recurrence, WeeklyRecurrence):
        wanted = set(recurrence.days_of_week)
        days = (d for d in _days_from(reference, zone, 8) if js_weekday(d) in wanted)
        return _first_after(reference, zone, recurrence.at, days)
    if isinstance(recurrence, MonthlyRecurrence):
        return _first_after(reference, zone, recurrence.at, _month_days_from(reference, zone, recurrence.day_of_month))
    if isinstance(recurrence, CustomRecurrence):
        return _next_cron(recurrence.cron_expression, reference, zone)
    raise TypeError(f"Unsupported recurrence: {recurrence!r}")


def validate_recurrence(recurrence: Recurrence, tz: str = "UTC") -> None:
    """Reject rules that can never be evaluated. Field ranges are checked by the models."""
    get_zone(tz)
    if isinstance(recurrence, CustomRecurrence):
        check_cron_expression(recurrence.cron_expression)


def check_cron_expression(expression: str) -> None:
    fields = expression.split()
    if len(fields) != CRON_FIELD_COUNT:
        raise ScheduleValidationError(
            f"Invalid cron expression: {expression!r} (expected {CRON_FIELD_COUNT} fields, got {len(fields)})",
            {"cron_expression": expression},
        )
    if not croniter.is_valid(expression):
        raise ScheduleValidationError(f"Invalid cron expression: {expression!r}", {"cron_expression": expression})


def describe_recurrence(recurrence: Recurrence) -> str:
    """Human-readable summary, e.g. "Weekly on Mon, Wed at 09:00"."""
    if isinstance(recurrence, OnceRecurrence):
        return f"Once at {recurrence.at:%Y-%m-%d %H:%M}"
    if isinstance(recurrence, DailyRecurrence):
        return f"Daily at {recurrence.at:%H:%M}"
    if isinstance(recurrence, WeeklyRecurrence):
        days = ", ".join(WEEKDAY_NAMES[d] for d in recurrence.days_of_week)
        return f"Weekly on {days} at {recurrence.at:%H:%M}"
    if isinstance(recurrence, MonthlyRecurrence):
        return f"Monthly on day {recurrence.day_of_month} at {recurrence.at:%H:%M}"
    if isinstance(recurrence, CustomRecurrence):
        return f"Custom: {recurrence.cron_expression}"
    raise TypeError(f"Unsupported recurrence: {recurrence!r}")


# --- Timezone helpers ---


def get_zone(tz: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise ScheduleValidationError(f"Unknown timezone: {tz!r}", {"timezone": tz})


def js_weekday(day: date) -> int:
    """Weekday number with 0 = Sunday."""
    return (day.weekday() + 1) % 7


def localize(wall: datetime, zone: ZoneInfo) -> datetime:
    """Resolve a naive wall-clock time in zone to an aware UTC instant.

    Ambiguous times (clocks going back) resolve to the later occurrence.
    Times that don't exist (clocks going forward) round up to the first
    instant after the gap.
    """
    wall = wall.replace(tzinfo=None)
    # Compare through UTC: astimezone() to the same zone is a no-op.
    later = wall.replace(tzinfo=zone, fold=1).astimezone(timezone.utc)
    if _wall_time(later, zone) == wall:
        return later

    earlier = wall.replace(tzinfo=zone, fold=0).astimezone(timezone.utc)
    instant = min(later, earlier).replace(second=0, microsecond=0)
    # Offset changes land on minute boundaries.
    while _wall_time(instant, zone) < wall:
        instant += timedelta(minutes=1)
    return instant


def _wall_time(instant: datetime, zone: ZoneInfo) -> datetime:
    return instant.astimezone(zone).replace(tzinfo=None)


# --- Per-kind helpers ---


def _days_from(reference: datetime, zone: ZoneInfo, count: int) -> list[date]:
    today = reference.astimezone(zone).date()
    return [today + timedelta(days=n) for n in range(count)]


def _month_days_from(reference: datetime, zone: ZoneInfo, day_of_month: int) -> list[date]:
    """This month's and the next two months' occurrence, clamped to month length."""
    today = reference.astimezone(zone).date()
    year, month = today.year, today.month
    days = []
    for _ in range(3):
        last_day = calendar.monthrange(year, month)[1]
        days.append(date(year, month, min(day_of_month, last_day)))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return days


def _first_after(reference: datetime, zone: ZoneInfo, at: time, days: Iterable[date]) -> datetime | None:
    for day in days:
        candidate = localize(datetime.combine(day, at), zone)
        if candidate > reference:
            return candidate
    return None


def _next_cron(expression: str, reference: datetime, zone: ZoneInfo) -> datetime | None:
    """Next cron match, with its wall time resolved by the same DST rules as localize().

    Both halves of a repeated hour map to the later instant, so a fall-back
    day fires once.
    """
    try:
        it = croniter(expression, reference.astimezone(zone), max_years_between_matches=CRON_SEARCH_YEARS)
        while True:
            candidate = localize(it.get_next(datetime), zone)
            if candidate > reference:
                return candidate
    except (CroniterBadCronError, CroniterBadDateError):
        return None
