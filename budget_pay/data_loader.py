"""CSV import helpers.

Reads bank or spreadsheet exports and normalizes them into spending
records with fields:
    transaction_date (datetime), description (str), amount (float, > 0),
    category (str|None)

CSV columns are auto-detected case-insensitively among common variants.
Transactions in Budget Pay are money spent, so amounts are stored as
positive numbers: a signed ``amount`` column is taken by absolute value
and, for debit/credit exports, only debits are imported.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
import math
from dataclasses import dataclass
from typing import IO, Iterable, List, Optional


@dataclass
class ImportedTransaction:
    transaction_date: dt.datetime
    description: str
    amount: float
    category: Optional[str] = None


def parse_date(value: str) -> dt.datetime:
    value = (value or "").strip()
    # Try multiple common date formats
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"):
        try:
            return dt.datetime.strptime(value, fmt)
        except ValueError:
            continue
    # Fallback to fromisoformat if possible
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Unrecognized date format: {value}") from exc
    return parsed.replace(tzinfo=None)


def to_float(value: str) -> float:
    v = str(value).replace(",", "").strip()
    for symbol in ("₹", "$", "€", "£"):
        v = v.replace(symbol, "")
    # Some exports wrap negatives in parentheses, e.g., (12.34)
    if v.startswith("(") and v.endswith(")"):
        v = "-" + v[1:-1]
    try:
        amount = float(v)
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {value}") from exc
    if not math.isfinite(amount):
        raise ValueError(f"Invalid amount: {value}")
    return amount


def _find_column(row_keys: Iterable[str], candidates: Iterable[str]) -> Optional[str]:
    low = {k.lower().strip(): k for k in row_keys}
    for cand in candidates:
        if cand.lower() in low:
            return low[cand.lower()]
    return None


_DATE_COLS = ("transaction_date", "date", "posted date", "posting date", "transaction date")
_DESC_COLS = ("description", "details", "memo", "name")
_AMT_COLS = ("amount", "amt", "value")
_DEBIT_COLS = ("debit", "withdrawal")
_CATEGORY_COLS = ("category", "category name")


def load_csv_stream(stream: IO[str], label: str = "upload") -> List[ImportedTransaction]:
    reader = csv.DictReader(stream)
    fieldnames = reader.fieldnames or []
    date_col = _find_column(fieldnames, _DATE_COLS)
    desc_col = _find_column(fieldnames, _DESC_COLS)
    amt_col = _find_column(fieldnames, _AMT_COLS)
    debit_col = _find_column(fieldnames, _DEBIT_COLS)
    category_col = _find_column(fieldnames, _CATEGORY_COLS)

    if not date_col or not desc_col or (not amt_col and not debit_col):
        raise ValueError(
            f"{label}: Missing required columns. Need date+description and amount OR debit."
        )

    txns: List[ImportedTransaction] = []
    for line_no, row in enumerate(reader, start=2):
        try:
            when = parse_date(row[date_col])
            if amt_col:
                amount = abs(to_float(row[amt_col]))
            else:
                raw = row.get(debit_col)
                amount = abs(to_float(raw)) if raw not in (None, "") else 0.0
        except ValueError as exc:
            raise ValueError(f"{label}, line {line_no}: {exc}") from exc
        if amount == 0:
            continue
        description = (row[desc_col] or "").strip() or "Imported transaction"
        category = None
        if category_col:
            category = (row.get(category_col) or "").strip() or None
        txns.append(ImportedTransaction(
            transaction_date=when, description=description, amount=amount, category=category,
        ))
    return txns


def load_csv_text(text: str, label: str = "upload") -> List[ImportedTransaction]:
    return load_csv_stream(io.StringIO(text), label=label)
