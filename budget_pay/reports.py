"""Reporting utilities.

Formats a user's budget figures into human-readable text and
JSON-serializable dicts, and exports them as CSV or JSON.
"""

from __future__ import annotations

import csv
import datetime as dt
import json
from pathlib import Path
from typing import Dict, IO, List, Optional, Sequence

from . import analytics as an
from . import budgeting as bg
from . import periods as p


def build_summary(
    user,
    categories: Sequence,
    transactions: Sequence,
    expenses: Sequence = (),
    period: str = p.MONTHLY,
    now: Optional[dt.datetime] = None,
) -> Dict:
    now = now or dt.datetime.now()
    today = now.date()
    income = user.monthly_income or 0.0
    goal = user.savings_goal_amount or 0.0
    start, end = p.period_range(period, today)
    in_period = bg.period_transactions(transactions, period, today)

    dashboard = bg.dashboard_summary(income, goal, categories, transactions, period, today,
                                     bg.recurring_total(expenses))
    return {
        "user": {"email": user.email, "full_name": user.full_name},
        "period": period,
        "period_label": p.period_label(period),
        "date_range": {"start": start.isoformat(), "end": end.isoformat()},
        "dashboard": dashboard.to_dict(),
        "expense_overview": bg.expense_overview(income, goal, categories, transactions, period, today).to_dict(),
        "goal": bg.goal_overview(income, goal, transactions, period, now).to_dict(),
        "category_spend": an.spending_by_category(in_period, categories),
        "monthly": an.monthly_totals(transactions),
        "trends": an.spending_trends(transactions, period, today),
        "transaction_count": len(in_period),
    }


def format_text_report(summary: Dict, currency: str = "₹") -> str:
    def money(value: float) -> str:
        return f"{currency}{value:,.2f}"

    lines: List[str] = []
    d = summary["dashboard"]
    r = summary["date_range"]
    lines.append(f"=== Budget Pay {summary['period_label']} Summary ({r['start']} to {r['end']}) ===")
    lines.append(f"Income:            {money(d['period_income'])}")
    lines.append(f"Savings goal:      {money(d['period_savings_goal'])}")
    lines.append(f"Available budget:  {money(d['available_budget'])}")
    lines.append(f"Spent:             {money(d['total_spent'])}")
    lines.append(f"Daily budget:      {money(d['daily_budget'])}")
    if d.get("recurring_total"):
        lines.append(f"Recurring bills:   {money(d['recurring_total'])}")
    lines.append("")

    lines.append("-- Category Budgets --")
    for row in summary["expense_overview"]["categories"]:
        lines.append(
            f"{row['name'][:18]:18} Alloc {money(row['allocated_amount']):>12}  "
            f"Spent {money(row['spent_amount']):>12}  Left {money(row['remaining_amount']):>12}  "
            f"[{row['status']}]"
        )
    lines.append("")

    g = summary["goal"]
    lines.append("-- Savings Goal --")
    lines.append(
        f"Saved {money(g['saved_amount'])} of {money(g['target_amount'])} "
        f"({g['progress_percentage']:.1f}%) - {g['status']['label']}"
    )
    plan = g.get("yearly_plan")
    if plan and plan["total_deficit"] > 0:
        lines.append(
            f"Shortfall {money(plan['total_deficit'])}: monthly goal adjusted to "
            f"{money(plan['adjusted_monthly_goal'])} for the remaining {plan['months_remaining']} months"
        )
    lines.append("")

    lines.append("-- Spend by Category --")
    for cat, amt in summary["category_spend"].items():
        lines.append(f"{cat:18} {money(amt)}")
    lines.append("")

    lines.append("-- Monthly Totals --")
    for m, vals in summary["monthly"].items():
        lines.append(f"{m} | Spent {money(vals['spent'])}  ({vals['count']} transactions)")
    return "\n".join(lines)


def save_json(summary: Dict, path: str | Path) -> None:
    p_ = Path(path)
    p_.parent.mkdir(parents=True, exist_ok=True)
    with p_.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)


def _ensure_text_writer(target: str | Path | IO[str]):
    if hasattr(target, "write"):
        return target, None
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("w", newline="", encoding="utf-8")
    return handle, handle


def export_summary_csv(summary: Dict, path: str | Path | IO[str]) -> None:
    def fmt_amount(value) -> str:
        if value is None:
            return ""
        return f"{float(value):.2f}"

    rows: List[List[str]] = [["Section", "Item", "Metric", "Value"]]

    d = summary.get("dashboard") or {}
    for key, label in (
        ("period_income", "Income"),
        ("period_savings_goal", "Savings Goal"),
        ("available_budget", "Available Budget"),
        ("total_spent", "Spent"),
        ("daily_budget", "Daily Budget"),
        ("recurring_total", "Recurring Bills"),
    ):
        if key in d:
            rows.append(["Totals", "", label, fmt_amount(d.get(key))])

    for row in (summary.get("expense_overview") or {}).get("categories", []):
        for key, label in (
            ("allocated_amount", "Allocated"),
            ("spent_amount", "Spent"),
            ("remaining_amount", "Remaining"),
        ):
            rows.append(["Category Budget", row["name"], label, fmt_amount(row.get(key))])
        rows.append(["Category Budget", row["name"], "Status", row.get("status", "")])

    goal = summary.get("goal") or {}
    if goal:
        rows.append(["Savings Goal", "", "Target", fmt_amount(goal.get("target_amount"))])
        rows.append(["Savings Goal", "", "Saved", fmt_amount(goal.get("saved_amount"))])
        rows.append(["Savings Goal", "", "Progress %", fmt_amount(goal.get("progress_percentage"))])

    for cat, amt in (summary.get("category_spend") or {}).items():
        rows.append(["Category Spend", cat or "Uncategorized", "Amount", fmt_amount(amt)])

    for month, vals in (summary.get("monthly") or {}).items():
        if not isinstance(vals, dict):
            continue
        rows.append(["Monthly Totals", month, "Spent", fmt_amount(vals.get("spent"))])
        rows.append(["Monthly Totals", month, "Transactions", str(vals.get("count", 0))])

    date_range = summary.get("date_range") or {}
    if isinstance(date_range, dict) and any(date_range.values()):
        rows.append(["Metadata", "Period", "", summary.get("period_label", "")])
        rows.append(["Metadata", "Range Start", "", date_range.get("start", "")])
        rows.append(["Metadata", "Range End", "", date_range.get("end", "")])

    txn_count = summary.get("transaction_count")
    if txn_count is not None:
        rows.append(["Metadata", "Transaction Count", "", str(txn_count)])

    writer_target, to_close = _ensure_text_writer(path)
    try:
        writer = csv.writer(writer_target, lineterminator="\n")
        writer.writerows(rows)
    finally:
        if to_close is not None:
            to_close.close()


def export_summary_json(summary: Dict, path: str | Path | IO[str]) -> None:
    if hasattr(path, "write"):
        json.dump(summary, path, indent=2)
        path.write("\n")
        return
    save_json(summary, path)
