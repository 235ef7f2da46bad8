from __future__ import annotations

import csv
import datetime as dt
import io
import json
from types import SimpleNamespace

from budget_pay import reports

from .helpers import category, txn

NOW = dt.datetime(2024, 5, 15, 9, 0)


def _summary():
    user = SimpleNamespace(email="asha@example.com", full_name="Asha Rao",
                           monthly_income=30000.0, savings_goal_amount=6000.0)
    cats = [category(1, "Housing", 50.0), category(2, "Food", 50.0)]
    txns = [txn(5000, dt.date(2024, 5, 10), 1), txn(1500, dt.date(2024, 5, 11), None)]
    return reports.build_summary(user, cats, txns, period="monthly", now=NOW)


def test_build_summary_contents():
    summary = _summary()
    assert summary["date_range"] == {"start": "2024-05-01", "end": "2024-05-31"}
    assert summary["dashboard"]["total_spent"] == 6500
    assert summary["category_spend"] == {"Housing": 5000, "Uncategorized": 1500}
    assert summary["transaction_count"] == 2
    assert summary["goal"]["status"]["key"]
    json.dumps(summary)


def test_format_text_report():
    text = reports.format_text_report(_summary(), currency="₹")
    assert text.startswith("=== Budget Pay Monthly Summary (2024-05-01 to 2024-05-31) ===")
    assert "Available budget:  ₹24,000.00" in text
    assert "-- Category Budgets --" in text
    assert "Uncategorized" in text


def test_export_summary_csv_rows():
    buffer = io.StringIO()
    reports.export_summary_csv(_summary(), buffer)
    rows = list(csv.reader(io.StringIO(buffer.getvalue())))
    assert rows[0] == ["Section", "Item", "Metric", "Value"]
    assert ["Totals", "", "Spent", "6500.00"] in rows
    assert ["Category Budget", "Housing", "Allocated", "12000.00"] in rows
    assert ["Metadata", "Transaction Count", "", "2"] in rows


def test_export_summary_json_to_path(tmp_path):
    target = tmp_path / "out" / "summary.json"
    reports.export_summary_json(_summary(), target)
    assert json.loads(target.read_text(encoding="utf-8"))["period"] == "monthly"
