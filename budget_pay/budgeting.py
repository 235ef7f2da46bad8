"""Period-based budget and savings calculations.

This is the one place where allocations, spend, savings progress and the
yearly savings plan are derived. The dashboard, the category budget page,
the goals page, notifications, reports and the assistant all call into
this module, so a figure shown on one screen always matches the others.

Inputs are plain objects exposing the attributes used below (ORM rows or
the lightweight records built in tests):

* category: ``id``, ``name``, ``description``, ``default_percentage``,
  ``custom_percentage``
* transaction: ``amount``, ``category_id``, ``transaction_date``
* expense: ``amount``, ``frequency_type``, ``interval_days``,
  ``next_due_date``, ``is_active``

Transaction amounts are money spent and are always positive.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from . import periods as p
from .errors import AllocationError

UNCATEGORIZED = "uncategorized"

WARNING_USAGE = 80.0
DANGER_USAGE = 100.0


def effective_percentage(category) -> float:
    """Custom allocation when one is set (non-zero), otherwise the default."""
    return float(category.custom_percentage or category.default_percentage or 0.0)


def total_allocation(categories: Iterable, exclude_id=None) -> float:
    return sum(effective_percentage(c) for c in categories if c.id != exclude_id)


def check_allocation(categories: Sequence, new_percentage: float, exclude_id=None) -> float:
    """Return the total allocation after the change, raising when it exceeds 100%."""
    total = total_allocation(categories, exclude_id) + new_percentage
    if round(total, 2) > 100:
        raise AllocationError(total)
    return total


def rebalance_percentages(categories: Sequence, new_percentage: float, exclude_id=None) -> Dict[int, float]:
    """Scale every other category so the whole budget adds back up to 100%.

    The ``100 - new_percentage`` left over is shared among the remaining
    categories in proportion to their current allocation. Nothing changes
    when the others currently hold 0%.
    """

    remaining = 100.0 - new_percentage
    others = [c for c in categories if c.id != exclude_id]
    current_total = sum(effective_percentage(c) for c in others)
    if current_total == 0:
        return {}
    ratio = remaining / current_total
    return {c.id: round(effective_percentage(c) * ratio, 2) for c in others}


def _txn_date(txn) -> dt.date:
    value = txn.transaction_date
    return value.date() if isinstance(value, dt.datetime) else value


def transactions_in_range(transactions: Iterable, start: dt.date, end: dt.date) -> List:
    return [t for t in transactions if start <= _txn_date(t) <= end]


def period_transactions(transactions: Iterable, period: str, today: Optional[dt.date] = None) -> List:
    start, end = p.period_range(period, today)
    return transactions_in_range(transactions, start, end)


def total_spent(transactions: Iterable) -> float:
    return sum(t.amount for t in transactions)


def _spending_by_category(transactions: Iterable) -> Dict[object, Dict[str, float]]:
    spending: Dict[object, Dict[str, float]] = defaultdict(lambda: {"amount": 0.0, "count": 0})
    for t in transactions:
        key = t.category_id or UNCATEGORIZED
        spending[key]["amount"] += t.amount
        spending[key]["count"] += 1
    return spending


@dataclass
class CategoryHealth:
    allocated: float
    spent: float
    remaining: float
    status: str  # green | yellow | red


@dataclass
class DashboardSummary:
    period: str
    monthly_income: float
    period_income: float
    period_savings_goal: float
    available_budget: float
    recurring_total: float
    total_spent: float
    daily_budget: float
    allocation_per_category: Dict[int, float] = field(default_factory=dict)
    category_health: Dict[str, CategoryHealth] = field(default_factory=dict)

    @property
    def remaining(self) -> float:
        return max(0.0, self.period_income - self.total_spent)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["allocation_per_category"] = {str(k): v for k, v in self.allocation_per_category.items()}
        data["remaining"] = self.remaining
        return data


def _health_status(allocated: float, spent: float) -> str:
    if allocated - spent < 0:
        return "red"
    if allocated > 0 and spent / allocated * 100 >= WARNING_USAGE:
        return "yellow"
    return "green"


def dashboard_summary(
    monthly_income: float,
    savings_goal: float,
    categories: Sequence,
    transactions: Sequence,
    period: str = p.MONTHLY,
    today: Optional[dt.date] = None,
    recurring_monthly: float = 0.0,
) -> DashboardSummary:
    """Scale the monthly plan to ``period`` and compare it with actual spend."""
    multiplier = p.period_multiplier(period)
    if not monthly_income:
        return DashboardSummary(
            period=period,
            monthly_income=0.0,
            period_income=0.0,
            period_savings_goal=0.0,
            available_budget=0.0,
            recurring_total=0.0,
            total_spent=0.0,
            daily_budget=0.0,
        )

    period_income = monthly_income * multiplier
    period_savings_goal = (savings_goal or 0.0) * multiplier
    available = period_income - period_savings_goal
    daily_budget = available / p.days_in_budget_divisor(period)

    in_period = period_transactions(transactions, period, today)
    spending = _spending_by_category(in_period)

    allocation: Dict[int, float] = {}
    health: Dict[str, CategoryHealth] = {}
    for category in categories:
        allocated = available * effective_percentage(category) / 100
        spent = spending[category.id]["amount"] if category.id in spending else 0.0
        allocation[category.id] = allocated
        health[category.name] = CategoryHealth(
            allocated=allocated,
            spent=spent,
            remaining=allocated - spent,
            status=_health_status(allocated, spent),
        )

    return DashboardSummary(
        period=period,
        monthly_income=monthly_income,
        period_income=period_income,
        period_savings_goal=period_savings_goal,
        available_budget=available,
        recurring_total=recurring_monthly * multiplier,
        total_spent=total_spent(in_period),
        daily_budget=daily_budget,
        allocation_per_category=allocation,
        category_health=health,
    )


@dataclass
class CategoryBudget:
    id: object
    name: str
    description: str
    allocated_amount: float
    spent_amount: float
    remaining_amount: float
    usage_percentage: float
    percentage: float  # usage capped at 100 for progress bars
    status: str  # good | warning | danger
    transaction_count: int


@dataclass
class ExpenseOverview:
    period: str
    total_allocated: float
    total_spent: float
    total_remaining: float
    categories: List[CategoryBudget]

    def to_dict(self) -> dict:
        return asdict(self)


def _usage_status(usage: float) -> str:
    if usage >= DANGER_USAGE:
        return "danger"
    if usage >= WARNING_USAGE:
        return "warning"
    return "good"


def expense_overview(
    monthly_income: float,
    savings_goal: float,
    categories: Sequence,
    transactions: Sequence,
    period: str = p.MONTHLY,
    today: Optional[dt.date] = None,
) -> ExpenseOverview:
    """Per-category allocation versus spend for the category budgets page."""
    multiplier = p.period_multiplier(period)
    available = ((monthly_income or 0.0) - (savings_goal or 0.0)) * multiplier
    in_period = period_transactions(transactions, period, today)
    spending = _spending_by_category(in_period)

    rows: List[CategoryBudget] = []
    if monthly_income:
        for category in categories:
            allocated = available * effective_percentage(category) / 100
            spent = spending[category.id]["amount"] if category.id in spending else 0.0
            count = int(spending[category.id]["count"]) if category.id in spending else 0
            usage = spent / allocated * 100 if allocated > 0 else 0.0
            rows.append(
                CategoryBudget(
                    id=category.id,
                    name=category.name,
                    description=category.description or "",
                    allocated_amount=allocated,
                    spent_amount=spent,
                    remaining_amount=allocated - spent,
                    usage_percentage=usage,
                    percentage=min(usage, 100.0),
                    status=_usage_status(usage),
                    transaction_count=count,
                )
            )

    if UNCATEGORIZED in spending:
        loose = spending[UNCATEGORIZED]
        rows.append(
            CategoryBudget(
                id=UNCATEGORIZED,
                name="Uncategorized",
                description="Transactions without a category",
                allocated_amount=0.0,
                spent_amount=loose["amount"],
                remaining_amount=-loose["amount"],
                usage_percentage=100.0,
                percentage=100.0,
                status="warning",
                transaction_count=int(loose["count"]),
            )
        )

    rows.sort(key=lambda row: row.allocated_amount, reverse=True)
    spent = total_spent(in_period)
    return ExpenseOverview(
        period=period,
        total_allocated=available,
        total_spent=spent,
        total_remaining=available - spent,
        categories=rows,
    )


@dataclass
class YearlySavingsPlan:
    journey_start: dt.date
    year_end: dt.date
    months_completed: int
    months_remaining: int
    total_months: int
    total_actual_savings: float
    total_deficit: float
    adjusted_monthly_goal: float
    current_month_savings: float
    yearly_target: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["journey_start"] = self.journey_start.isoformat()
        data["year_end"] = self.year_end.isoformat()
        return data


def savings_journey_start(transactions: Sequence, today: Optional[dt.date] = None) -> dt.date:
    """First day of the month holding the earliest transaction."""
    today = today or dt.date.today()
    if not transactions:
        return p.month_floor(today)
    return p.month_floor(min(_txn_date(t) for t in transactions))


def _month_savings(monthly_income: float, transactions: Sequence, month_start: dt.date) -> float:
    start, end = p.month_bounds(month_start.year, month_start.month)
    spent = total_spent(transactions_in_range(transactions, start, end))
    return max(0.0, monthly_income - spent)


def yearly_savings_plan(
    monthly_income: float,
    savings_goal: float,
    transactions: Sequence,
    today: Optional[dt.date] = None,
    total_months: int = 12,
) -> YearlySavingsPlan:
    """Track a 12-month savings year and spread past shortfalls over the months left.

    Each fully elapsed month before the current one is "completed": its
    savings (income minus spend, floored at zero) count toward the year and
    any shortfall against the monthly goal becomes deficit. The deficit is
    divided evenly across the remaining months, current month included.
    """

    today = today or dt.date.today()
    monthly_income = monthly_income or 0.0
    savings_goal = savings_goal or 0.0
    start = savings_journey_start(transactions, today)
    current = p.month_floor(today)

    elapsed = (current.year - start.year) * 12 + (current.month - start.month)
    months_completed = max(0, min(elapsed, total_months))
    months_remaining = max(0, total_months - months_completed)

    total_actual = 0.0
    total_deficit = 0.0
    for i in range(months_completed):
        saved = _month_savings(monthly_income, transactions, p.add_months(start, i))
        total_actual += saved
        total_deficit += max(0.0, savings_goal - saved)

    if months_remaining > 0:
        adjusted = savings_goal + total_deficit / months_remaining
    else:
        adjusted = savings_goal

    current_savings = _month_savings(monthly_income, transactions, current) if months_remaining else 0.0
    year_end = p.add_months(start, total_months) - dt.timedelta(days=1)

    return YearlySavingsPlan(
        journey_start=start,
        year_end=year_end,
        months_completed=months_completed,
        months_remaining=months_remaining,
        total_months=total_months,
        total_actual_savings=total_actual,
        total_deficit=total_deficit,
        adjusted_monthly_goal=adjusted,
        current_month_savings=current_savings,
        yearly_target=savings_goal * total_months,
    )


@dataclass
class SavingsProgress:
    period: str
    saved_amount: float
    target_amount: float
    progress_percentage: float

    @property
    def remaining_amount(self) -> float:
        return max(0.0, self.target_amount - self.saved_amount)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["remaining_amount"] = self.remaining_amount
        return data


def _progress(saved: float, target: float) -> float:
    return saved / target * 100 if target > 0 else 0.0


def savings_progress(
    monthly_income: float,
    savings_goal: float,
    transactions: Sequence,
    period: str = p.MONTHLY,
    today: Optional[dt.date] = None,
) -> SavingsProgress:
    """How much of the period's savings target has been kept back so far.

    For daily, weekly and monthly views the income earned so far is
    prorated by the days of the period that have started; whatever was not
    spent counts as saved. The yearly view defers to
    :func:`yearly_savings_plan`.
    """

    today = today or dt.date.today()
    if not monthly_income or not savings_goal:
        return SavingsProgress(period=period, saved_amount=0.0, target_amount=0.0, progress_percentage=0.0)

    if period == p.YEARLY:
        plan = yearly_savings_plan(monthly_income, savings_goal, transactions, today)
        saved = plan.total_actual_savings + plan.current_month_savings
        target = plan.yearly_target
        return SavingsProgress(period=period, saved_amount=saved, target_amount=target,
                               progress_percentage=_progress(saved, target))

    multiplier = p.period_multiplier(period)
    period_income = monthly_income * multiplier
    target = savings_goal * multiplier
    elapsed = p.elapsed_budget_days(period, today)
    if period == p.DAILY:
        budget_so_far = period_income
    elif period == p.WEEKLY:
        budget_so_far = period_income / 7 * elapsed
    else:
        budget_so_far = period_income / 30 * elapsed

    spent = total_spent(period_transactions(transactions, period, today))
    saved = max(0.0, budget_so_far - spent)
    return SavingsProgress(period=period, saved_amount=saved, target_amount=target,
                           progress_percentage=_progress(saved, target))


@dataclass
class GoalStatus:
    key: str  # achieved | behind | on_track | in_progress
    label: str
    color: str  # green | red | yellow | gray


def goal_status(progress_percentage: float, period: str, today: Optional[dt.date] = None) -> GoalStatus:
    today = today or dt.date.today()
    if progress_percentage >= 100:
        return GoalStatus("achieved", "Goal Achieved!", "green")
    if period == p.MONTHLY and today.day > 20 and progress_percentage < 60:
        return GoalStatus("behind", "Behind Target", "red")
    if progress_percentage >= 75:
        return GoalStatus("on_track", "On Track", "green")
    if progress_percentage >= 50:
        return GoalStatus("in_progress", "In Progress", "yellow")
    return GoalStatus("in_progress", "In Progress", "gray")


@dataclass
class GoalOverview:
    period: str
    period_label: str
    period_end_label: str
    progress: SavingsProgress
    status: GoalStatus
    days_until_period_end: int
    yearly_plan: Optional[YearlySavingsPlan] = None

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "period_label": self.period_label,
            "period_end_label": self.period_end_label,
            "target_amount": self.progress.target_amount,
            "saved_amount": self.progress.saved_amount,
            "remaining_amount": self.progress.remaining_amount,
            "progress_percentage": self.progress.progress_percentage,
            "status": asdict(self.status),
            "days_until_period_end": self.days_until_period_end,
            "yearly_plan": self.yearly_plan.to_dict() if self.yearly_plan else None,
        }


def goal_overview(
    monthly_income: float,
    savings_goal: float,
    transactions: Sequence,
    period: str = p.MONTHLY,
    now: Optional[dt.datetime] = None,
) -> GoalOverview:
    now = now or dt.datetime.now()
    today = now.date()
    progress = savings_progress(monthly_income, savings_goal, transactions, period, today)
    plan = None
    if period == p.YEARLY:
        plan = yearly_savings_plan(monthly_income, savings_goal, transactions, today)
        days_left = p.days_until(plan.year_end, now)
    elif period == p.DAILY:
        days_left = 0
    else:
        days_left = p.days_until(p.period_range(period, today)[1], now)
    return GoalOverview(
        period=period,
        period_label=p.period_label(period),
        period_end_label=p.period_end_label(period),
        progress=progress,
        status=goal_status(progress.progress_percentage, period, today),
        days_until_period_end=days_left,
        yearly_plan=plan,
    )


FREQUENCIES = ("one_time", "monthly", "weekly", "custom")


def monthly_equivalent(expense) -> float:
    """Normalize a recurring expense to what it costs per month."""
    if not expense.is_active:
        return 0.0
    if expense.frequency_type == "monthly":
        return expense.amount
    if expense.frequency_type == "weekly":
        return expense.amount * 52 / 12
    if expense.frequency_type == "custom" and expense.interval_days:
        return expense.amount * 30 / expense.interval_days
    return 0.0


def recurring_total(expenses: Iterable) -> float:
    return sum(monthly_equivalent(e) for e in expenses)


def advance_due_date(expense) -> Optional[dt.date]:
    """Due date following a payment; ``None`` when the expense does not recur."""
    due = expense.next_due_date
    if expense.frequency_type == "weekly":
        return due + dt.timedelta(days=7)
    if expense.frequency_type == "monthly":
        return p.add_months(due, 1)
    if expense.frequency_type == "custom" and expense.interval_days:
        return due + dt.timedelta(days=expense.interval_days)
    return None


def goal_progress(goal, today: Optional[dt.date] = None) -> dict:
    """Progress of an explicit savings goal record."""
    today = today or dt.date.today()
    target = goal.target_amount or 0.0
    return {
        "progress_percentage": _progress(goal.saved_amount or 0.0, target),
        "remaining_amount": max(0.0, target - (goal.saved_amount or 0.0)),
        "days_left": max(0, (goal.deadline - today).days),
    }
