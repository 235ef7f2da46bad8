from __future__ import annotations

import datetime as dt

import pytest

from budget_pay import data_loader as dl


def test_to_float_handles_symbols_and_parentheses():
    assert dl.to_float("₹1,234.50") == 1234.5
    assert dl.to_float("(12.34)") == -12.34
    with pytest.raises(ValueError):
        dl.to_float("abc")


def test_parse_date_formats():
    assert dl.parse_date("2024-05-01") == dt.datetime(2024, 5, 1)
    assert dl.parse_date("05/31/2024") == dt.datetime(2024, 5, 31)
    assert dl.parse_date("2024-05-01 08:15:00") == dt.datetime(2024, 5, 1, 8, 15)
    with pytest.raises(ValueError):
        dl.parse_date("yesterday")


def test_load_csv_amounts_are_positive_and_zero_rows_skipped():
    text = (
        "Date,Description,Amount,Category\n"
        "2024-05-01,Groceries,-45.20,Food\n"
        "2024-05-02,Refund,0,\n"
        "2024-05-03,Rent,\"(1,200.00)\",\n"
    )
    rows = dl.load_csv_text(text)
    assert [(r.description, r.amount, r.category) for r in rows] == [
        ("Groceries", 45.2, "Food"),
        ("Rent", 1200.0, None),
    ]
    assert rows[0].transaction_date == dt.datetime(2024, 5, 1)


def test_load_csv_debit_column_only_imports_debits():
    text = (
        "Posted Date,Memo,Debit,Credit\n"
        "2024-05-01,Coffee,4.50,\n"
        "2024-05-02,Salary,,5000\n"
    )
    rows = dl.load_csv_text(text)
    assert [(r.description, r.amount) for r in rows] == [("Coffee", 4.5)]


def test_load_csv_reports_missing_columns_and_bad_lines():
    with pytest.raises(ValueError, match="Missing required columns"):
        dl.load_csv_text("Date,Amount\n2024-05-01,3\n", label="bank.csv")
    with pytest.raises(ValueError, match="line 3"):
        dl.load_csv_text("Date,Description,Amount\n2024-05-01,A,3\nnot-a-date,B,4\n")


@pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity"])
def test_to_float_rejects_non_finite(raw):
    with pytest.raises(ValueError, match="Invalid amount"):
        dl.to_float(raw)
