from __future__ import annotations

import datetime as dt

from budget_pay import analytics as an
from budget_pay import periods as p

from .helpers import category, txn

TODAY = dt.date(2024, 5, 15)


def test_weekly_trends_bucket_by_weekday_from_sunday():
    txns = [txn(100, dt.date(2024, 5, 12)), txn(50, TODAY), txn(999, dt.date(2024, 5, 11))]
    trends = an.spending_trends(txns, p.WEEKLY, TODAY)
    assert [label for label, _ in trends] == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    assert dict(trends) == {"Sun": 100, "Mon": 0, "Tue": 0, "Wed": 50, "Thu": 0, "Fri": 0, "Sat": 0}


def test_monthly_trends_fold_late_days_into_week_four():
    today = dt.date(2024, 5, 31)
    txns = [txn(10, dt.date(2024, 5, 8)), txn(20, dt.date(2024, 5, 29)), txn(5, dt.date(2024, 5, 28))]
    assert dict(an.spending_trends(txns, p.MONTHLY, today)) == {
        "Week 1": 0, "Week 2": 10, "Week 3": 0, "Week 4": 25,
    }


def test_daily_trends_use_hours():
    txns = [txn(12.5, dt.datetime(2024, 5, 15, 9, 30))]
    trends = dict(an.spending_trends(txns, p.DAILY, TODAY))
    assert len(trends) == 24
    assert trends["9:00"] == 12.5


def test_daily_spending_covers_eight_days_oldest_first():
    series = an.daily_spending([txn(40, TODAY), txn(15, dt.date(2024, 5, 8))], TODAY)
    assert len(series) == 8
    assert series[0] == ("May 8", 15)
    assert series[-1] == ("May 15", 40)


def test_spending_by_category_sorted_with_uncategorized():
    cats = [category(1, "Food"), category(2, "Rent")]
    txns = [txn(10, TODAY, 1), txn(300, TODAY, 2), txn(25, TODAY, None)]
    assert list(an.spending_by_category(txns, cats).items()) == [
        ("Rent", 300), ("Uncategorized", 25), ("Food", 10),
    ]


def test_monthly_totals():
    txns = [txn(10, dt.date(2024, 4, 1)), txn(5, dt.date(2024, 4, 30)), txn(7, TODAY)]
    assert an.monthly_totals(txns) == {
        "2024-04": {"spent": 15, "count": 2},
        "2024-05": {"spent": 7, "count": 1},
    }


def test_tracking_streak_stops_at_gap():
    txns = [txn(1, TODAY), txn(1, dt.date(2024, 5, 14)), txn(1, dt.date(2024, 5, 13)), txn(1, dt.date(2024, 5, 11))]
    assert an.tracking_streak(txns, TODAY) == 3
    assert an.tracking_streak(txns[1:], TODAY) == 0


def test_top_spending_category_ignores_uncategorized():
    cats = [category(1, "Food"), category(2, "Rent")]
    assert an.top_spending_category([txn(500, TODAY, None), txn(20, TODAY, 1)], cats).name == "Food"
    assert an.top_spending_category([txn(500, TODAY, None)], cats) is None


def test_filter_transactions():
    txns = [
        txn(30, TODAY, 1, "Coffee beans"),
        txn(90, dt.date(2024, 5, 2), None, "Taxi"),
        txn(60, dt.date(2024, 4, 20), 1, "Coffee shop"),
    ]
    this_month = an.filter_transactions(txns, "this_month", today=TODAY)
    assert [t.description for t in this_month] == ["Coffee beans", "Taxi"]
    assert [t.description for t in an.filter_transactions(txns, "all", search="coffee", sort="highest", today=TODAY)] == [
        "Coffee shop", "Coffee beans",
    ]
    assert [t.description for t in an.filter_transactions(txns, "all", category="uncategorized", today=TODAY)] == ["Taxi"]
    assert [t.amount for t in an.filter_transactions(txns, "all", category="1", sort="oldest", today=TODAY)] == [60, 30]
