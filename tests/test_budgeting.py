from __future__ import annotations

import datetime as dt
from types import SimpleNamespace

import pytest

from budget_pay import budgeting as bg
from budget_pay import periods as p
from budget_pay.errors import AllocationError

from .helpers import category, txn

TODAY = dt.date(2024, 5, 15)


def _housing_and_food():
    return [category(1, "Housing", 50.0), category(2, "Food", 50.0)]


def test_effective_percentage_prefers_custom():
    assert bg.effective_percentage(category(1, default=10, custom=25)) == 25
    assert bg.effective_percentage(category(1, default=10, custom=0)) == 10
    assert bg.effective_percentage(category(1, default=10, custom=None)) == 10


def test_check_allocation_rejects_totals_over_100():
    cats = [category(1, "A", 60), category(2, "B", 30)]
    with pytest.raises(AllocationError) as info:
        bg.check_allocation(cats, 20)
    assert info.value.requested_total == pytest.approx(110)
    assert info.value.status_code == 409
    assert bg.check_allocation(cats, 20, exclude_id=2) == pytest.approx(80)


def test_rebalance_scales_others_proportionally():
    cats = [category(1, "A", 50), category(2, "B", 30), category(3, "C", 20)]
    changes = bg.rebalance_percentages(cats, 40, exclude_id=3)
    assert changes == {1: 37.5, 2: 22.5}
    assert sum(changes.values()) + 40 == pytest.approx(100)


def test_rebalance_leaves_zero_allocations_alone():
    cats = [category(1, "A", 0), category(2, "B", 0)]
    assert bg.rebalance_percentages(cats, 100, exclude_id=None) == {}


def test_dashboard_summary_monthly():
    txns = [
        txn(5000, dt.date(2024, 5, 10), 1),
        txn(11000, dt.date(2024, 5, 3), 2),
        txn(2000, dt.date(2024, 4, 30), 1),
    ]
    summary = bg.dashboard_summary(30000, 6000, _housing_and_food(), txns, p.MONTHLY, TODAY)
    assert summary.period_income == 30000
    assert summary.available_budget == 24000
    assert summary.daily_budget == pytest.approx(800)
    assert summary.total_spent == 16000
    assert summary.remaining == 14000
    assert summary.allocation_per_category == {1: 12000, 2: 12000}
    assert summary.category_health["Housing"].status == "green"
    assert summary.category_health["Food"].status == "yellow"
    assert summary.category_health["Food"].remaining == 1000


def test_dashboard_summary_flags_overspent_category_red():
    txns = [txn(13000, dt.date(2024, 5, 3), 2)]
    summary = bg.dashboard_summary(30000, 6000, _housing_and_food(), txns, p.MONTHLY, TODAY)
    assert summary.category_health["Food"].status == "red"


def test_dashboard_summary_weekly_scaling():
    summary = bg.dashboard_summary(30000, 6000, _housing_and_food(), [], p.WEEKLY, TODAY, recurring_monthly=3000)
    assert summary.period_income == pytest.approx(7000)
    assert summary.period_savings_goal == pytest.approx(1400)
    assert summary.daily_budget == pytest.approx(800)
    assert summary.recurring_total == pytest.approx(700)


def test_dashboard_summary_without_income_is_empty():
    summary = bg.dashboard_summary(0, 0, _housing_and_food(), [txn(10, TODAY, 1)], p.MONTHLY, TODAY)
    assert summary.total_spent == 0
    assert summary.category_health == {}
    assert summary.to_dict()["allocation_per_category"] == {}


def test_expense_overview_rows_and_uncategorized():
    txns = [
        txn(5000, dt.date(2024, 5, 10), 1),
        txn(12500, dt.date(2024, 5, 3), 2),
        txn(500, dt.date(2024, 5, 4), None),
    ]
    overview = bg.expense_overview(30000, 6000, _housing_and_food(), txns, p.MONTHLY, TODAY)
    names = [row.name for row in overview.categories]
    assert names == ["Housing", "Food", "Uncategorized"]
    food = overview.categories[1]
    assert food.status == "danger"
    assert food.percentage == 100.0
    assert food.transaction_count == 1
    loose = overview.categories[2]
    assert loose.allocated_amount == 0
    assert loose.status == "warning"
    assert loose.remaining_amount == -500
    assert overview.total_allocated == 24000
    assert overview.total_spent == 18000


def test_expense_overview_warning_threshold():
    txns = [txn(9600, dt.date(2024, 5, 3), 1)]
    overview = bg.expense_overview(30000, 6000, _housing_and_food(), txns, p.MONTHLY, TODAY)
    housing = next(row for row in overview.categories if row.id == 1)
    assert housing.usage_percentage == pytest.approx(80)
    assert housing.status == "warning"


def _yearly_history():
    return [
        txn(9000, dt.date(2024, 1, 10)),
        txn(7000, dt.date(2024, 2, 10)),
        txn(8500, dt.date(2024, 3, 10)),
        txn(4000, dt.date(2024, 4, 10)),
    ]


def test_yearly_savings_plan_redistributes_deficit():
    plan = bg.yearly_savings_plan(10000, 2000, _yearly_history(), dt.date(2024, 4, 15))
    assert plan.journey_start == dt.date(2024, 1, 1)
    assert plan.year_end == dt.date(2024, 12, 31)
    assert plan.months_completed == 3
    assert plan.months_remaining == 9
    assert plan.total_actual_savings == pytest.approx(5500)
    assert plan.total_deficit == pytest.approx(1500)
    assert plan.adjusted_monthly_goal == pytest.approx(2000 + 1500 / 9)
    assert plan.current_month_savings == pytest.approx(6000)
    assert plan.yearly_target == 24000


def test_yearly_savings_progress_counts_current_month_once():
    progress = bg.savings_progress(10000, 2000, _yearly_history(), p.YEARLY, dt.date(2024, 4, 15))
    assert progress.saved_amount == pytest.approx(11500)
    assert progress.target_amount == 24000
    assert progress.progress_percentage == pytest.approx(11500 / 24000 * 100)


def test_monthly_savings_progress_prorates_income():
    progress = bg.savings_progress(30000, 6000, [txn(5000, dt.date(2024, 5, 2))], p.MONTHLY, TODAY)
    assert progress.saved_amount == pytest.approx(10000)
    assert progress.target_amount == 6000
    assert progress.remaining_amount == 0


def test_goal_status_thresholds():
    assert bg.goal_status(100, p.MONTHLY, TODAY).key == "achieved"
    assert bg.goal_status(55, p.MONTHLY, dt.date(2024, 5, 25)).key == "behind"
    assert bg.goal_status(55, p.WEEKLY, dt.date(2024, 5, 25)).color == "yellow"
    assert bg.goal_status(80, p.MONTHLY, TODAY).key == "on_track"
    assert bg.goal_status(10, p.MONTHLY, TODAY).color == "gray"


def test_goal_overview_days_left():
    now = dt.datetime(2024, 5, 15, 12, 0)
    assert bg.goal_overview(30000, 6000, [], p.MONTHLY, now).days_until_period_end == 17
    assert bg.goal_overview(30000, 6000, [], p.DAILY, now).days_until_period_end == 0
    yearly = bg.goal_overview(30000, 6000, [], p.YEARLY, now)
    assert yearly.yearly_plan is not None
    assert yearly.to_dict()["yearly_plan"]["year_end"] == "2025-04-30"


def test_recurring_expense_normalisation():
    def expense(amount, frequency, interval=None, active=True):
        return SimpleNamespace(amount=amount, frequency_type=frequency, interval_days=interval,
                               is_active=active, next_due_date=dt.date(2024, 1, 31))

    assert bg.monthly_equivalent(expense(100, "weekly")) == pytest.approx(433.33, abs=0.01)
    assert bg.monthly_equivalent(expense(300, "custom", 15)) == pytest.approx(600)
    assert bg.monthly_equivalent(expense(300, "one_time")) == 0
    assert bg.monthly_equivalent(expense(300, "monthly", active=False)) == 0
    assert bg.recurring_total([expense(1000, "monthly"), expense(300, "custom", 15)]) == pytest.approx(1600)
    assert bg.advance_due_date(expense(1, "monthly")) == dt.date(2024, 2, 29)
    assert bg.advance_due_date(expense(1, "weekly")) == dt.date(2024, 2, 7)
    assert bg.advance_due_date(expense(1, "one_time")) is None


def test_goal_progress():
    goal = SimpleNamespace(target_amount=1000.0, saved_amount=250.0, deadline=dt.date(2024, 6, 14))
    progress = bg.goal_progress(goal, TODAY)
    assert progress == {"progress_percentage": 25.0, "remaining_amount": 750.0, "days_left": 30}


def test_yearly_savings_plan_caps_at_twelve_months():
    history = [txn(12000, dt.date(2023, 1, 10)), txn(300, dt.date(2024, 5, 3))]
    plan = bg.yearly_savings_plan(10000, 2000, history, TODAY)
    assert plan.journey_start == dt.date(2023, 1, 1)
    assert plan.year_end == dt.date(2023, 12, 31)
    assert plan.months_completed == 12
    assert plan.months_remaining == 0
    assert plan.total_actual_savings == pytest.approx(110000)
    assert plan.total_deficit == pytest.approx(2000)
    assert plan.adjusted_monthly_goal == 2000
    assert plan.current_month_savings == 0


def test_weekly_savings_progress_prorates_by_days_elapsed():
    # TODAY is a Wednesday, so Sunday through Wednesday have started.
    spending = [txn(1500, dt.date(2024, 5, 13)), txn(900, dt.date(2024, 5, 11))]
    progress = bg.savings_progress(30000, 6000, spending, p.WEEKLY, TODAY)
    assert progress.saved_amount == pytest.approx(30000 * 7 / 30 / 7 * 4 - 1500)
    assert progress.target_amount == pytest.approx(1400)


def test_daily_savings_progress_uses_full_day_income():
    spending = [txn(300, TODAY), txn(5000, dt.date(2024, 5, 14))]
    progress = bg.savings_progress(30000, 6000, spending, p.DAILY, TODAY)
    assert progress.saved_amount == pytest.approx(700)
    assert progress.target_amount == pytest.approx(200)


def test_savings_progress_never_negative():
    progress = bg.savings_progress(30000, 6000, [txn(2500, TODAY)], p.DAILY, TODAY)
    assert progress.saved_amount == 0
