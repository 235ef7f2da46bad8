"""Analytics and trend calculations.

Functions that turn a user's transactions into chart series and list
views. Budget and savings arithmetic lives in :mod:`budget_pay.budgeting`.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import periods as p
from .budgeting import UNCATEGORIZED, period_transactions

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

SORT_OPTIONS = (
    ("newest", "Newest first"),
    ("oldest", "Oldest first"),
    ("highest", "Highest amount"),
    ("lowest", "Lowest amount"),
)


def month_key(d: dt.date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _as_datetime(value) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    return dt.datetime.combine(value, dt.time())


def _short_day(d: dt.date) -> str:
    return f"{MONTH_LABELS[d.month - 1]} {d.day}"


def spending_trends(transactions: Sequence, period: str, today: Optional[dt.date] = None) -> List[Tuple[str, float]]:
    """Spend within the current period, bucketed one level finer than the period.

    daily -> hours, weekly -> weekdays, monthly -> weeks of the month
    (days 29-31 fold into week 4), yearly -> months.
    """

    if period == p.DAILY:
        labels = [f"{hour}:00" for hour in range(24)]
        bucket = lambda when: f"{when.hour}:00"  # noqa: E731
    elif period == p.WEEKLY:
        labels = list(WEEKDAY_LABELS)
        bucket = lambda when: WEEKDAY_LABELS[(when.weekday() + 1) % 7]  # noqa: E731
    elif period == p.YEARLY:
        labels = list(MONTH_LABELS)
        bucket = lambda when: MONTH_LABELS[when.month - 1]  # noqa: E731
    else:
        labels = [f"Week {week}" for week in range(1, 5)]
        bucket = lambda when: f"Week {min(-(-when.day // 7), 4)}"  # noqa: E731

    grouped: Dict[str, float] = {label: 0.0 for label in labels}
    for t in period_transactions(transactions, period, today):
        grouped[bucket(_as_datetime(t.transaction_date))] += t.amount
    return [(label, round(grouped[label], 2)) for label in labels]


def daily_spending(transactions: Iterable, today: Optional[dt.date] = None, days: int = 7) -> List[Tuple[str, float]]:
    """Spend per calendar day for today and the ``days`` days before it, oldest first."""
    today = today or dt.date.today()
    window = [today - dt.timedelta(days=offset) for offset in range(days, -1, -1)]
    totals: Dict[dt.date, float] = {d: 0.0 for d in window}
    for t in transactions:
        d = _as_datetime(t.transaction_date).date()
        if d in totals:
            totals[d] += t.amount
    return [(_short_day(d), round(totals[d], 2)) for d in window]


def spending_by_category(transactions: Iterable, categories: Sequence) -> Dict[str, float]:
    names = {c.id: c.name for c in categories}
    totals: Dict[str, float] = defaultdict(float)
    for t in transactions:
        name = names.get(t.category_id, "Uncategorized") if t.category_id else "Uncategorized"
        totals[name] += t.amount
    return {k: round(v, 2) for k, v in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)}


def monthly_totals(transactions: Iterable) -> Dict[str, Dict[str, float]]:
    months: Dict[str, Dict[str, float]] = defaultdict(lambda: {"spent": 0.0, "count": 0})
    for t in transactions:
        m = month_key(_as_datetime(t.transaction_date).date())
        months[m]["spent"] += t.amount
        months[m]["count"] += 1
    return {m: {"spent": round(v["spent"], 2), "count": int(v["count"])} for m, v in sorted(months.items())}


def top_spending_category(transactions: Iterable, categories: Sequence):
    """Category with the highest categorized spend, or ``None``."""
    spend: Dict[object, float] = defaultdict(float)
    for t in transactions:
        if t.category_id:
            spend[t.category_id] += t.amount
    if not spend:
        return None
    top_id = max(spend.items(), key=lambda kv: kv[1])[0]
    return next((c for c in categories if c.id == top_id), None)


def tracking_streak(transactions: Iterable, today: Optional[dt.date] = None) -> int:
    """Consecutive days, ending today, on which at least one transaction was logged."""
    today = today or dt.date.today()
    logged = {_as_datetime(t.transaction_date).date() for t in transactions}
    streak = 0
    while today - dt.timedelta(days=streak) in logged:
        streak += 1
    return streak


def filter_transactions(
    transactions: Iterable,
    date_filter: str = p.DEFAULT_DATE_FILTER,
    category: str = "all",
    search: str = "",
    sort: str = "newest",
    today: Optional[dt.date] = None,
) -> List:
    """Apply the transaction list's date, category and text filters, then sort."""
    filtered = list(transactions)
    window = p.date_filter_range(date_filter, today)
    if window is not None:
        filtered = [t for t in filtered if p.in_range(t.transaction_date, *window)]

    if category and category != "all":
        if category == UNCATEGORIZED:
            filtered = [t for t in filtered if not t.category_id]
        else:
            filtered = [t for t in filtered if str(t.category_id) == str(category)]

    term = (search or "").strip().lower()
    if term:
        filtered = [t for t in filtered if term in (t.description or "").lower()]

    if sort == "oldest":
        filtered.sort(key=lambda t: _as_datetime(t.transaction_date))
    elif sort == "highest":
        filtered.sort(key=lambda t: t.amount, reverse=True)
    elif sort == "lowest":
        filtered.sort(key=lambda t: t.amount)
    else:
        filtered.sort(key=lambda t: _as_datetime(t.transaction_date), reverse=True)
    return filtered
