"""Next-run calculation for scheduled workflows.

All inputs and outputs are UTC; the wall-clock fields of a schedule
(``time``, ``dayOfWeek``, ``dayOfMonth``, cron fields) are interpreted in
the store's local zone.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from croniter import croniter

from storeflow.domain.entities.workflow import Schedule
from storeflow.domain.enums import ScheduleType
from storeflow.domain.exceptions import ValidationException
from storeflow.shared.utils.datetime import ensure_utc

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

# Upper bound on months scanned for a monthly day (31 only exists in 7 of 12).
_MAX_MONTH_SCAN = 24


def parse_time_of_day(value: str | None) -> tuple[int, int]:
    """Parse ``HH:MM``. Raises ValidationException on malformed input."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValidationException(
            f"Schedule time must be HH:MM, got: {value!r}", field="time"
        )
    return int(match.group(1)), int(match.group(2))


def is_valid_cron(expression: str | None) -> bool:
    return bool(expression) and croniter.is_valid(expression)


def _js_weekday(moment: datetime) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def _next_daily(local_now: datetime, hour: int, minute: int) -> datetime:
    candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= local_now:
        candidate = _at_time(candidate.date() + timedelta(days=1), hour, minute, local_now.tzinfo)
    return candidate


def _next_weekly(
    local_now: datetime, hour: int, minute: int, day_of_week: int
) -> datetime:
    days_until = (day_of_week - _js_weekday(local_now)) % 7
    candidate = _at_time(
        local_now.date() + timedelta(days=days_until), hour, minute, local_now.tzinfo
    )
    if candidate <= local_now:
        candidate = _at_time(
            candidate.date() + timedelta(days=7), hour, minute, local_now.tzinfo
        )
    return candidate


def _next_monthly(
    local_now: datetime, hour: int, minute: int, day_of_month: int
) -> datetime:
    """Next occurrence of ``day_of_month``; months without that day are skipped."""
    year, month = local_now.year, local_now.month
    for _ in range(_MAX_MONTH_SCAN):
        if day_of_month <= calendar.monthrange(year, month)[1]:
            candidate = local_now.replace(
                year=year,
                month=month,
                day=day_of_month,
                hour=hour,
                minute=minute,
                second=0,
                microsecond=0,
            )
            if candidate > local_now:
                return candidate
        month += 1
        if month > 12:
            year, month = year + 1, 1
    raise ValidationException(
        f"No month contains day {day_of_month}", field="dayOfMonth"
    )


def _at_time(day, hour: int, minute: int, tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=tzinfo)


def calculate_next_run(
    now: datetime,
    schedule: Schedule | None,
    tz: ZoneInfo | str = "UTC",
) -> datetime | None:
    """Return the next UTC fire time strictly after ``now``.

    Args:
        now: Reference instant (aware; naive is treated as UTC).
        schedule: Schedule record; None yields None.
        tz: Store-local zone for the wall-clock fields.

    Returns:
        UTC datetime, or None for schedules that cannot produce a time
        (missing fields, invalid cron).
    """
    if schedule is None:
        return None
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    now_utc = ensure_utc(now)
    assert now_utc is not None
    local_now = now_utc.astimezone(zone)

    if schedule.type == ScheduleType.CRON:
        if not is_valid_cron(schedule.cron_expression):
            return None
        local_next = croniter(schedule.cron_expression, local_now).get_next(datetime)
        return ensure_utc(local_next)

    try:
        hour, minute = parse_time_of_day(schedule.time)
    except ValidationException:
        return None

    if schedule.type == ScheduleType.DAILY:
        local_next = _next_daily(local_now, hour, minute)
    elif schedule.type == ScheduleType.WEEKLY:
        if schedule.day_of_week is None or not 0 <= schedule.day_of_week <= 6:
            return None
        local_next = _next_weekly(local_now, hour, minute, schedule.day_of_week)
    elif schedule.type == ScheduleType.MONTHLY:
        if schedule.day_of_month is None or not 1 <= schedule.day_of_month <= 31:
            return None
        local_next = _next_monthly(local_now, hour, minute, schedule.day_of_month)
    else:
        return None

    result = ensure_utc(local_next)
    # A DST gap can fold the local candidate back onto or before now.
    if result is not None and result <= now_utc:
        return calculate_next_run(now_utc + timedelta(hours=1), schedule, zone)
    return result
