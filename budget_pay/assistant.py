"""Financial assistant backed by an OpenAI-compatible chat completions API.

The assistant never computes figures itself: the prompt carries the same
numbers the dashboard, category budgets and goals pages show, built from
:mod:`budget_pay.budgeting`, and the model is asked to answer from them.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from . import analytics
from . import budgeting as bg
from . import periods as p
from .config import AssistantConfig
from .errors import AssistantError, AssistantUnavailableError

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hello! I'm your financial assistant. I can help you analyze your spending, track your budget, "
    "and answer questions about your financial data. What would you like to know?"
)
FALLBACK_REPLY = "I'm sorry, I couldn't process your request."
MAX_HISTORY = 20
RECENT_TRANSACTIONS = 20

SYSTEM_PROMPT = """You are a helpful financial assistant for a budget management application called Budget Pay.
You have access to the user's financial data including transactions, income, savings goals and budget categories.

You answer two kinds of questions:
1. General finance and budgeting questions.
2. Specific questions about the user's financial data.

For specific questions use only the provided data:
- "dashboard" holds income, spend, remaining budget and per-category health for each period
  (daily, weekly, monthly, yearly).
- "expense_overview" holds category-wise allocated budget, amount spent, remaining amount,
  usage percentage and a status (good, warning, danger) for the current month.
- "goal_progress" holds the savings target, amount saved, progress percentage, status and
  days left for each period, and the yearly plan with any shortfall redistribution.

All monetary values are in the user's currency ({currency}). Round percentages to two decimals.
Never make up information. If the data is not enough to answer accurately, say so.
Be concise and give actionable advice when appropriate."""


def _round(value: Any) -> Any:
    if isinstance(value, float):
        return round(value, 2)
    if isinstance(value, dict):
        return {k: _round(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_round(v) for v in value]
    return value


def build_context(user, categories: Sequence, transactions: Sequence, expenses: Sequence = (),
                  now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    """Snapshot of the user's finances used as the model's only source of facts."""
    now = now or dt.datetime.now()
    today = now.date()
    income = user.monthly_income or 0.0
    goal = user.savings_goal_amount or 0.0
    names = {c.id: c.name for c in categories}
    recurring = bg.recurring_total(expenses)

    dashboard = {}
    goals = {}
    for period, _label in p.PERIOD_OPTIONS:
        summary = bg.dashboard_summary(income, goal, categories, transactions, period, today, recurring)
        data = summary.to_dict()
        data.pop("allocation_per_category", None)
        dashboard[period] = data
        goals[period] = bg.goal_overview(income, goal, transactions, period, now).to_dict()

    recent = analytics.filter_transactions(transactions, "all", sort="newest")[:RECENT_TRANSACTIONS]
    return _round({
        "today": today.isoformat(),
        "profile": {
            "full_name": user.full_name,
            "monthly_income": income,
            "monthly_savings_goal": goal,
            "recurring_monthly_expenses": recurring,
        },
        "categories": [
            {"name": c.name, "allocation_percentage": bg.effective_percentage(c)} for c in categories
        ],
        "dashboard": dashboard,
        "expense_overview": bg.expense_overview(income, goal, categories, transactions, p.MONTHLY, today).to_dict(),
        "goal_progress": goals,
        "spending_by_category": analytics.spending_by_category(transactions, categories),
        "monthly_totals": analytics.monthly_totals(transactions),
        "recent_transactions": [
            {
                "date": t.transaction_date.isoformat(),
                "description": t.description,
                "amount": t.amount,
                "category": names.get(t.category_id, "Uncategorized"),
            }
            for t in recent
        ],
    })


def format_response(text: str, currency: str = "₹") -> str:
    """Show amounts in the configured currency and normalise blank-line runs."""
    text = (text or "").replace("$", currency)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


class Assistant:
    """Thin client over ``POST {base_url}/chat/completions`` with a fallback model."""

    def __init__(self, config: AssistantConfig, currency: str = "₹",
                 transport: Optional[httpx.BaseTransport] = None) -> None:
        self.config = config
        self.currency = currency
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": "Budget Pay Financial Assistant",
        }

    def _complete(self, client: httpx.Client, model: str, messages: List[Dict[str, str]]) -> str:
        response = client.post(
            f"{self.config.base_url.rstrip('/')}/chat/completions",
            headers=self._headers(),
            json={"model": model, "messages": messages, "temperature": 0.1, "max_tokens": 1024},
        )
        if response.status_code != 200:
            raise AssistantError(f"Model {model} returned {response.status_code}: {response.text[:200]}")
        try:
            return response.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise AssistantError(f"Model {model} returned an unexpected payload.") from exc

    def ask(self, query: str, context: Dict[str, Any]) -> str:
        if not self.config.enabled:
            raise AssistantUnavailableError()
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT.format(currency=self.currency)},
            {
                "role": "user",
                "content": (
                    f"User query: {query}\n\n"
                    f"User financial data: {json.dumps(context)}\n\n"
                    "Give a specific, data-backed answer and actionable advice when appropriate."
                ),
            },
        ]
        models = [self.config.primary_model]
        if self.config.fallback_model:
            models.append(self.config.fallback_model)

        last_error: Optional[Exception] = None
        with httpx.Client(timeout=self.config.timeout, transport=self._transport) as client:
            for model in models:
                try:
                    reply = self._complete(client, model, messages)
                except (AssistantError, httpx.HTTPError) as exc:
                    logger.warning("Assistant model %s failed: %s", model, exc)
                    last_error = exc
                    continue
                return format_response(reply or FALLBACK_REPLY, self.currency)
        raise AssistantError(f"All assistant models failed. Last error: {last_error}")


def append_history(history: List[Dict[str, Any]], content: str, is_user: bool,
                   now: Optional[dt.datetime] = None) -> List[Dict[str, Any]]:
    """Add a chat message, keeping the welcome message plus the newest entries."""
    now = now or dt.datetime.now()
    if not history:
        history = [new_message(WELCOME_MESSAGE, False, now, message_id="welcome")]
    history = history + [new_message(content, is_user, now)]
    if len(history) > MAX_HISTORY:
        history = history[:1] + history[-(MAX_HISTORY - 1):]
    return history


def new_message(content: str, is_user: bool, now: dt.datetime, message_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": message_id or f"{'user' if is_user else 'bot'}-{now.strftime('%Y%m%d%H%M%S%f')}",
        "content": content,
        "is_user": is_user,
        "timestamp": now.isoformat(),
    }
