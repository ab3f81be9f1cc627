from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


SATURDAY = 5
SUNDAY = 6


class DateComputationError(ValueError):
    pass


def _require_date(value: object, field: str) -> date:
    # datetime subclasses date; time-of-day must never leak into calendar arithmetic.
    if isinstance(value, datetime) or not isinstance(value, date):
        raise DateComputationError(f"{field} must be a calendar date, got {type(value).__name__}")
    return value


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    zero_based = (year * 12 + (month - 1)) + offset
    return zero_based // 12, (zero_based % 12) + 1


def shift_days(value: date, days: int, *, field: str = "date") -> date:
    _require_date(value, field)
    try:
        return value + timedelta(days=days)
    except OverflowError as exc:
        raise DateComputationError(f"{field} {value.isoformat()} shifted by {days} days is out of range") from exc


def resolve_month_end(anchor: date) -> date:
    """Return the last day of the one-month window that starts on ``anchor``.

    The window ends the day before the same day-of-month in the following
    month. An anchor on the 1st closes on the last day of its own month, and
    when the following month is too short the result clips to its last day
    (so 2024-01-31 resolves to 2024-02-29 and 2023-01-31 to 2023-02-28).
    """
    _require_date(anchor, "anchor")
    if anchor.day == 1:
        return anchor.replace(day=_days_in_month(anchor.year, anchor.month))

    year, month = _add_months(anchor.year, anchor.month, 1)
    if year > date.max.year:
        raise DateComputationError(f"Month window starting {anchor.isoformat()} ends past {date.max.isoformat()}")
    return date(year, month, min(anchor.day - 1, _days_in_month(year, month)))


def adjust_check_date(raw_date: date) -> date:
    """Move a disbursement date that lands on a weekend back to the Friday before."""
    _require_date(raw_date, "check date")
    weekday = raw_date.weekday()
    if weekday == SATURDAY:
        return shift_days(raw_date, -1, field="check date")
    if weekday == SUNDAY:
        return shift_days(raw_date, -2, field="check date")
    return raw_date


def local_today(timezone: str) -> date:
    try:
        return datetime.now(ZoneInfo(timezone)).date()
    except ZoneInfoNotFoundError:
        # Hosts without IANA tzdata fall back to the process-local date.
        return date.today()
