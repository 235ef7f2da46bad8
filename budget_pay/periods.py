"""Budget periods and date-range helpers.

Every calculation in the application is relative to one of four periods.
Monthly figures (income, savings goal) are scaled to the selected period
with :func:`period_multiplier`, and transactions are filtered to the
current calendar window returned by :func:`period_range`.
"""

from __future__ import annotations

import calendar
import datetime as dt
from typing import Optional, Tuple, Union

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
YEARLY = "yearly"

PERIOD_OPTIONS = (
    (DAILY, "Daily"),
    (WEEKLY, "Weekly"),
    (MONTHLY, "Monthly"),
    (YEARLY, "Yearly"),
)
PERIOD_LABELS = {key: label for key, label in PERIOD_OPTIONS}
DEFAULT_PERIOD = MONTHLY

# The dashboard summary endpoint also accepts the short forms.
_ALIASES = {"day": DAILY, "week": WEEKLY, "month": MONTHLY, "year": YEARLY}

_MULTIPLIERS = {DAILY: 1 / 30, WEEKLY: 7 / 30, MONTHLY: 1.0, YEARLY: 12.0}
_BUDGET_DIVISORS = {DAILY: 1, WEEKLY: 7, MONTHLY: 30, YEARLY: 365}
_PERIOD_END_LABELS = {
    DAILY: "End of Day",
    WEEKLY: "End of Week",
    MONTHLY: "Month End",
    YEARLY: "Year End",
}

DATE_FILTER_OPTIONS = (
    ("today", "Today"),
    ("this_week", "This Week"),
    ("this_month", "This Month"),
    ("this_year", "This Year"),
    ("all", "All Time"),
)
_DATE_FILTER_PERIODS = {
    "today": DAILY,
    "this_week": WEEKLY,
    "this_month": MONTHLY,
    "this_year": YEARLY,
}
DEFAULT_DATE_FILTER = "this_month"

DateLike = Union[dt.date, dt.datetime]


def normalize_period(value: Optional[str]) -> str:
    value = (value or "").strip().lower()
    value = _ALIASES.get(value, value)
    return value if value in PERIOD_LABELS else DEFAULT_PERIOD


def period_label(period: str) -> str:
    return PERIOD_LABELS.get(period, PERIOD_LABELS[DEFAULT_PERIOD])


def period_end_label(period: str) -> str:
    return _PERIOD_END_LABELS.get(period, "Period End")


def period_multiplier(period: str) -> float:
    """Fraction of a month covered by ``period`` (a month is taken as 30 days)."""
    return _MULTIPLIERS.get(period, 1.0)


def days_in_budget_divisor(period: str) -> int:
    return _BUDGET_DIVISORS.get(period, 30)


def _as_date(value: DateLike) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def start_of_week(day: dt.date) -> dt.date:
    # Weeks run Sunday to Saturday.
    return day - dt.timedelta(days=(day.weekday() + 1) % 7)


def month_bounds(year: int, month: int) -> Tuple[dt.date, dt.date]:
    last = calendar.monthrange(year, month)[1]
    return dt.date(year, month, 1), dt.date(year, month, last)


def add_months(value: dt.date, months: int) -> dt.date:
    """Shift ``value`` by whole months, clamping the day to the target month's length."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return dt.date(year, month, day)


def month_floor(value: DateLike) -> dt.date:
    value = _as_date(value)
    return dt.date(value.year, value.month, 1)


def period_range(period: str, today: Optional[dt.date] = None) -> Tuple[dt.date, dt.date]:
    """Inclusive calendar window of ``period`` that contains ``today``."""
    today = _as_date(today or dt.date.today())
    if period == DAILY:
        return today, today
    if period == WEEKLY:
        start = start_of_week(today)
        return start, start + dt.timedelta(days=6)
    if period == YEARLY:
        return dt.date(today.year, 1, 1), dt.date(today.year, 12, 31)
    return month_bounds(today.year, today.month)


def date_filter_range(date_filter: str, today: Optional[dt.date] = None) -> Optional[Tuple[dt.date, dt.date]]:
    period = _DATE_FILTER_PERIODS.get(date_filter)
    if period is None:
        return None
    return period_range(period, today)


def in_range(value: DateLike, start: dt.date, end: dt.date) -> bool:
    return start <= _as_date(value) <= end


def elapsed_budget_days(period: str, today: Optional[dt.date] = None) -> int:
    """Days of ``period`` that have started, today included."""
    today = _as_date(today or dt.date.today())
    if period == DAILY:
        return 1
    if period == WEEKLY:
        return min((today - start_of_week(today)).days + 1, 7)
    if period == YEARLY:
        return today.timetuple().tm_yday
    return today.day


def days_until(end: dt.date, now: Optional[dt.datetime] = None) -> int:
    """Whole days left until the end of ``end`` (23:59:59), rounded up, never negative."""
    now = now or dt.datetime.now()
    end_of_day = dt.datetime.combine(end, dt.time(23, 59, 59, 999999))
    remaining = (end_of_day - now).total_seconds()
    if remaining <= 0:
        return 0
    return int(-(-remaining // 86400))
