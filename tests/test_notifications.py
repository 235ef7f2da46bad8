from __future__ import annotations

import datetime as dt

from budget_pay import notifications as nt

from .helpers import category, txn


def _ids(feed):
    return [n.id for n in feed]


def test_budget_warning_with_welcome_padding():
    now = dt.datetime(2024, 5, 15, 10, 0)
    feed = nt.build_notifications(10000, 0, [category(1, "Food", 50)], [txn(4600, dt.date(2024, 5, 15), 1)], now)
    assert _ids(feed) == ["budget_warning_1", "welcome", "tip_categories"]
    warning = feed[0]
    assert warning.priority == "medium"
    assert "92.0%" in warning.message
    assert warning.category == "Food"


def test_budget_warning_high_priority_when_exceeded():
    now = dt.datetime(2024, 5, 15, 10, 0)
    feed = nt.build_notifications(10000, 0, [category(1, "Food", 10)], [txn(1200, dt.date(2024, 5, 3), 1)], now)
    assert next(n for n in feed if n.id == "budget_warning_1").priority == "high"


def test_goal_achievement_and_overspending():
    now = dt.datetime(2024, 5, 15, 10, 0)
    achieved = nt.build_notifications(10000, 1000, [], [txn(500, dt.date(2024, 5, 2))], now)
    assert "goal_achievement" in _ids(achieved)

    overspent = nt.build_notifications(1000, 0, [], [txn(950, dt.date(2024, 5, 2))], now)
    alert = next(n for n in overspent if n.id == "overspending_alert")
    assert alert.priority == "high"
    assert "95.0%" in alert.message


def test_savings_reminder_late_in_month():
    now = dt.datetime(2024, 5, 25, 10, 0)
    feed = nt.build_notifications(10000, 5000, [], [txn(8000, dt.date(2024, 5, 2))], now)
    assert "savings_reminder" in _ids(feed)


def test_weekly_summary_on_sunday_and_monthly_report_on_first():
    sunday = nt.build_notifications(0, 0, [], [txn(20, dt.date(2024, 5, 12))], dt.datetime(2024, 5, 12, 9, 0))
    assert "weekly_summary_2024-05-12" in _ids(sunday)

    first = nt.build_notifications(0, 0, [], [txn(75, dt.date(2024, 5, 20))], dt.datetime(2024, 6, 1, 9, 0))
    report = next(n for n in first if n.id == "monthly_report_2024-05-01")
    assert "₹75.00" in report.message


def test_streak_milestone():
    today = dt.date(2024, 5, 15)
    txns = [txn(5, today - dt.timedelta(days=i)) for i in range(7)]
    feed = nt.build_notifications(0, 0, [], txns, dt.datetime(2024, 5, 15, 10, 0))
    assert "streak_7" in _ids(feed)


def test_feed_is_newest_first():
    feed = nt.build_notifications(0, 0, [], [], dt.datetime(2024, 5, 15, 10, 0))
    stamps = [n.timestamp for n in feed]
    assert stamps == sorted(stamps, reverse=True)


def test_apply_states_hides_dismissed_and_marks_read():
    feed = nt.build_notifications(0, 0, [], [], dt.datetime(2024, 5, 15, 10, 0))
    visible = nt.apply_states(feed, {"welcome": (True, False), "tip_categories": (False, True)})
    assert _ids(visible) == ["welcome"]
    assert visible[0].is_read is True
    assert nt.unread_count(visible) == 0
    assert nt.summarize(visible)["notifications"][0]["timestamp"].startswith("2024-05-14")
