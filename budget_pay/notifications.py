"""Notification feed.

Notifications are not stored; they are recomputed from the user's plan and
transactions on every request. Only the read/dismissed flags persist
(:class:`budget_pay.models.NotificationState`), keyed by the notification
id, so ids are deterministic for a given situation (for example the weekly
summary id embeds the week's start date).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from . import periods as p
from .analytics import top_spending_category, tracking_streak
from .budgeting import effective_percentage, total_spent, transactions_in_range

BUDGET_WARNING_USAGE = 90.0
OVERSPENDING_SHARE = 0.9
MILESTONE_TRANSACTIONS = 50
STREAK_MILESTONES = (7, 30, 100)
TIP_MIN_TRANSACTIONS = 10


@dataclass
class Notification:
    id: str
    type: str
    title: str
    message: str
    timestamp: dt.datetime
    priority: str  # low | medium | high
    is_read: bool = False
    actionable: bool = False
    category: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


def build_notifications(
    monthly_income: float,
    savings_goal: float,
    categories: Sequence,
    transactions: Sequence,
    now: Optional[dt.datetime] = None,
    currency: str = "₹",
) -> List[Notification]:
    """Compute the feed for ``now``, newest first, without read state applied."""
    now = now or dt.datetime.now()
    today = now.date()
    monthly_income = monthly_income or 0.0
    savings_goal = savings_goal or 0.0
    hours = lambda n: now - dt.timedelta(hours=n)  # noqa: E731

    month_start, month_end = p.period_range(p.MONTHLY, today)
    week_start, week_end = p.period_range(p.WEEKLY, today)
    month_txns = transactions_in_range(transactions, month_start, month_end)
    week_txns = transactions_in_range(transactions, week_start, week_end)
    month_spent = total_spent(month_txns)

    feed: List[Notification] = []

    available = monthly_income - savings_goal
    for category in categories:
        spent = total_spent(t for t in month_txns if t.category_id == category.id)
        allocated = available * effective_percentage(category) / 100
        usage = spent / allocated * 100 if allocated > 0 else 0.0
        if usage >= BUDGET_WARNING_USAGE:
            feed.append(Notification(
                id=f"budget_warning_{category.id}",
                type="budget_warning",
                title="Budget Alert",
                message=f"You've used {usage:.1f}% of your {category.name} budget this month.",
                timestamp=hours(3),
                priority="high" if usage >= 100 else "medium",
                actionable=True,
                category=category.name,
            ))

    if savings_goal > 0:
        saved = max(0.0, monthly_income - month_spent)
        progress = saved / savings_goal * 100
        if progress >= 100:
            feed.append(Notification(
                id="goal_achievement",
                type="goal_achievement",
                title="Goal Achieved!",
                message=f"Congratulations! You've reached your monthly savings goal of {currency}{savings_goal:,.2f}.",
                timestamp=hours(2),
                priority="high",
            ))
        elif today.day > 20 and progress < 50:
            feed.append(Notification(
                id="savings_reminder",
                type="savings_reminder",
                title="Savings Reminder",
                message=(
                    f"You're {100 - progress:.1f}% away from your monthly savings goal. "
                    "Consider reducing spending."
                ),
                timestamp=hours(6),
                priority="medium",
                actionable=True,
            ))

    if len(month_txns) == MILESTONE_TRANSACTIONS:
        feed.append(Notification(
            id=f"transaction_milestone_{MILESTONE_TRANSACTIONS}",
            type="transaction_milestone",
            title="Transaction Milestone",
            message=(
                f"You've made {MILESTONE_TRANSACTIONS} transactions this month! "
                "Great job tracking your expenses."
            ),
            timestamp=hours(12),
            priority="low",
        ))

    # Weeks start on Sunday; the summary is shown on that day.
    if week_start == today:
        feed.append(Notification(
            id=f"weekly_summary_{week_start.isoformat()}",
            type="weekly_summary",
            title="Weekly Summary",
            message=(
                f"This week you spent {currency}{total_spent(week_txns):,.2f} "
                f"across {len(week_txns)} transactions."
            ),
            timestamp=hours(1),
            priority="low",
        ))

    if monthly_income > 0 and month_spent > monthly_income * OVERSPENDING_SHARE:
        feed.append(Notification(
            id="overspending_alert",
            type="overspending",
            title="Overspending Alert",
            message=(
                f"You've spent {currency}{month_spent:,.2f} this month, which is "
                f"{month_spent / monthly_income * 100:.1f}% of your income."
            ),
            timestamp=hours(1),
            priority="high",
            actionable=True,
        ))

    streak = tracking_streak(transactions, today)
    if streak in STREAK_MILESTONES:
        feed.append(Notification(
            id=f"streak_{streak}",
            type="streak_achievement",
            title="Streak Achievement!",
            message=f"Amazing! You've been tracking expenses for {streak} consecutive days.",
            timestamp=hours(30),
            priority="medium",
        ))

    if today.day == 1:
        last_start = p.add_months(month_start, -1)
        last_end = month_start - dt.timedelta(days=1)
        last_txns = transactions_in_range(transactions, last_start, last_end)
        feed.append(Notification(
            id=f"monthly_report_{last_start.isoformat()}",
            type="monthly_report",
            title="Monthly Report",
            message=(
                f"Last month you spent {currency}{total_spent(last_txns):,.2f} "
                f"across {len(last_txns)} transactions."
            ),
            timestamp=hours(2),
            priority="low",
        ))

    top = top_spending_category(month_txns, categories)
    if top is not None and len(month_txns) > TIP_MIN_TRANSACTIONS:
        feed.append(Notification(
            id=f"tip_top_category_{top.id}",
            type="tip",
            title="Spending Insight",
            message=(
                f"Your highest spending category this month is {top.name}. "
                "Consider setting a stricter budget for better control."
            ),
            timestamp=hours(8),
            priority="low",
        ))

    if len(feed) < 2:
        feed.append(Notification(
            id="welcome",
            type="transaction_milestone",
            title="Welcome to Budget Pay!",
            message="Start tracking your expenses and achieve your financial goals.",
            timestamp=hours(24),
            priority="medium",
        ))
        feed.append(Notification(
            id="tip_categories",
            type="tip",
            title="Pro Tip",
            message="Create specific categories for better expense tracking and budget management.",
            timestamp=hours(48),
            priority="low",
        ))

    feed.sort(key=lambda n: n.timestamp, reverse=True)
    return feed


def apply_states(
    feed: Sequence[Notification],
    states: Mapping[str, Tuple[bool, bool]],
) -> List[Notification]:
    """Mark read items and drop dismissed ones. ``states`` maps id -> (is_read, is_dismissed)."""
    visible: List[Notification] = []
    for notification in feed:
        is_read, is_dismissed = states.get(notification.id, (False, False))
        if is_dismissed:
            continue
        notification.is_read = is_read
        visible.append(notification)
    return visible


def unread_count(feed: Sequence[Notification]) -> int:
    return sum(1 for n in feed if not n.is_read)


def summarize(feed: Sequence[Notification]) -> Dict[str, object]:
    return {
        "notifications": [n.to_dict() for n in feed],
        "unread_count": unread_count(feed),
    }
