"""Persistence operations shared by the JSON API, the web views and the CLI.

Each function validates its input the same way the web forms do (collect
every problem, then raise :class:`ValidationError` with all of them) and
commits on success.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from . import analytics
from . import budgeting as bg
from . import notifications as nt
from . import periods as p
from .colors import is_hex_color, next_available_color
from .config import CategoryTemplate
from .data_loader import ImportedTransaction, parse_date, to_float
from .db import get_owned
from .errors import AuthenticationError, ValidationError
from .models import Category, Expense, Goal, NotificationState, Transaction, User, db

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
_TRUE = {"1", "true", "yes", "on"}


def clean_text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return str(value).strip() if value is not None else ""


def as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE


def _number(data: Mapping[str, Any], key: str, label: str, errors: List[str],
            minimum: Optional[float] = None, maximum: Optional[float] = None,
            strictly_positive: bool = False) -> Optional[float]:
    raw = data.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        errors.append(f"{label} is required.")
        return None
    try:
        value = to_float(raw) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        errors.append(f"{label} must be a valid number.")
        return None
    if not math.isfinite(value):
        errors.append(f"{label} must be a valid number.")
        return None
    if strictly_positive and value <= 0:
        errors.append(f"{label} must be greater than zero.")
    elif minimum is not None and value < minimum:
        errors.append(f"{label} cannot be less than {minimum:g}.")
    if maximum is not None and value > maximum:
        errors.append(f"{label} cannot be more than {maximum:g}.")
    return value


def _datetime(data: Mapping[str, Any], key: str, label: str, errors: List[str],
              default: Optional[dt.datetime] = None) -> Optional[dt.datetime]:
    raw = clean_text(data, key)
    if not raw:
        if default is None:
            errors.append(f"{label} is required.")
        return default
    try:
        return parse_date(raw)
    except ValueError:
        errors.append(f"{label} must be a date in YYYY-MM-DD format.")
        return None


def _date(data: Mapping[str, Any], key: str, label: str, errors: List[str],
          default: Optional[dt.date] = None) -> Optional[dt.date]:
    value = _datetime(data, key, label, errors,
                      dt.datetime.combine(default, dt.time()) if default else None)
    return value.date() if value else None


# -- users -----------------------------------------------------------------

def validate_password(password: str, confirm: Optional[str] = None) -> List[str]:
    errors: List[str] = []
    if not password:
        errors.append("Password is required.")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if confirm is not None and password != confirm:
        errors.append("Passwords do not match.")
    return errors


def seed_default_categories(user: User, templates: Sequence[CategoryTemplate]) -> None:
    used: List[str] = []
    for template in templates:
        color = template.color if is_hex_color(template.color) else next_available_color(used)
        used.append(color)
        user.categories.append(Category(
            name=template.name,
            description=template.description,
            default_percentage=template.percentage,
            is_default=True,
            color=color,
        ))


def register_user(data: Mapping[str, Any], templates: Sequence[CategoryTemplate] = ()) -> User:
    email = clean_text(data, "email").lower()
    password = data.get("password") or ""
    confirm = data.get("confirm_password")
    errors: List[str] = []
    if not email:
        errors.append("Email is required.")
    elif "@" not in email:
        errors.append("Enter a valid email address.")
    errors.extend(validate_password(password, confirm))
    if errors:
        raise ValidationError(errors)

    user = User(
        email=email,
        full_name=clean_text(data, "full_name"),
        password_hash=generate_password_hash(password),
    )
    seed_default_categories(user, templates)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("A user with this email already exists.")
    logger.info("Registered user %s", user.id)
    return user


def authenticate(email: str, password: str) -> User:
    user = User.query.filter_by(email=(email or "").strip().lower()).first()
    if user is None or not check_password_hash(user.password_hash, password or ""):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials.")
    if not user.is_active:
        raise AuthenticationError("This account has been deactivated.")
    return user


def update_profile(user: User, data: Mapping[str, Any]) -> User:
    """Validate every submitted field first, then apply them together in one commit.

    A non-empty ``password`` is changed along with the profile.
    """
    errors: List[str] = []
    fields: Dict[str, Any] = {}
    if "full_name" in data:
        fields["full_name"] = clean_text(data, "full_name")
    if "monthly_income" in data:
        fields["monthly_income"] = _number(data, "monthly_income", "Monthly income", errors, minimum=0)
    if "savings_goal_amount" in data:
        fields["savings_goal_amount"] = _number(data, "savings_goal_amount", "Savings goal", errors, minimum=0)
    if "savings_goal_deadline" in data:
        deadline = None
        if clean_text(data, "savings_goal_deadline"):
            deadline = _datetime(data, "savings_goal_deadline", "Savings goal deadline", errors)
            if deadline and deadline.time() == dt.time():
                deadline = deadline.replace(hour=23, minute=59, second=59)
        fields["savings_goal_deadline"] = deadline
    password = data.get("password") or ""
    if password:
        errors.extend(validate_password(password, data.get("confirm_password")))
    if errors:
        raise ValidationError(errors)

    for key, value in fields.items():
        setattr(user, key, value)
    if password:
        user.password_hash = generate_password_hash(password)
    db.session.commit()
    return user


def set_password(user: User, password: str, confirm: Optional[str] = None) -> None:
    errors = validate_password(password, confirm)
    if errors:
        raise ValidationError(errors)
    user.password_hash = generate_password_hash(password)
    db.session.commit()


def mark_verified(user: User) -> None:
    user.is_verified = True
    db.session.commit()


def deactivate_user(user: User) -> None:
    user.is_active = False
    db.session.commit()
    logger.info("Deactivated user %s", user.id)


def delete_user(user: User) -> None:
    db.session.delete(user)
    db.session.commit()
    logger.info("Deleted user %s", user.id)


# -- categories ------------------------------------------------------------

def list_categories(user: User) -> List[Category]:
    return Category.query.filter_by(user_id=user.id).order_by(Category.id).all()


def _category_fields(data: Mapping[str, Any], errors: List[str], creating: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if creating or "name" in data:
        name = clean_text(data, "name")
        if not name:
            errors.append("Category name is required.")
        fields["name"] = name
    if "description" in data:
        fields["description"] = clean_text(data, "description")
    if creating:
        fields["default_percentage"] = _number(
            data, "default_percentage", "Default percentage", errors, minimum=0, maximum=100
        )
    for key, label in (("default_percentage", "Default percentage"), ("custom_percentage", "Custom percentage")):
        if key not in fields and data.get(key) not in (None, ""):
            fields[key] = _number(data, key, label, errors, minimum=0, maximum=100)
    if "is_default" in data:
        fields["is_default"] = as_flag(data.get("is_default"))
    color = clean_text(data, "color")
    if color:
        if not is_hex_color(color):
            errors.append("Color must be a hex value such as #3B82F6.")
        fields["color"] = color
    return fields


def _apply_allocation(user: User, category_id, new_percentage: Optional[float], adjust_others: bool) -> None:
    if new_percentage is None:
        return
    categories = list_categories(user)
    if adjust_others:
        total = bg.total_allocation(categories, category_id) + new_percentage
        if round(total, 2) <= 100:
            return
        changes = bg.rebalance_percentages(categories, new_percentage, category_id)
        for category in categories:
            if category.id in changes:
                category.custom_percentage = changes[category.id]
        logger.info("Rebalanced %d categories for user %s", len(changes), user.id)
    else:
        bg.check_allocation(categories, new_percentage, category_id)


def _check_unique_name(user: User, name: str, exclude_id: Optional[int] = None) -> None:
    query = Category.query.filter(Category.user_id == user.id, Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise ValidationError("A category with this name already exists.")


def create_category(user: User, data: Mapping[str, Any], adjust_others: bool = False) -> Category:
    errors: List[str] = []
    fields = _category_fields(data, errors, creating=True)
    if errors:
        raise ValidationError(errors)
    percentage = fields.get("custom_percentage") or fields["default_percentage"]
    _apply_allocation(user, None, percentage, adjust_others)
    if not fields.get("color"):
        fields["color"] = next_available_color(c.color for c in list_categories(user))
    fields.setdefault("custom_percentage", fields["default_percentage"])
    _check_unique_name(user, fields["name"])
    category = Category(user_id=user.id, **fields)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(user: User, category_id: int, data: Mapping[str, Any], adjust_others: bool = False) -> Category:
    category = get_owned(Category, category_id, user.id)
    errors: List[str] = []
    fields = _category_fields(data, errors, creating=False)
    if errors:
        raise ValidationError(errors)
    new_percentage = None
    if "custom_percentage" in fields or "default_percentage" in fields:
        new_percentage = (
            fields.get("custom_percentage", category.custom_percentage)
            or fields.get("default_percentage", category.default_percentage)
            or 0.0
        )
    _apply_allocation(user, category.id, new_percentage, adjust_others)
    if "name" in fields:
        _check_unique_name(user, fields["name"], exclude_id=category.id)
    for key, value in fields.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def delete_category(user: User, category_id: int) -> None:
    category = get_owned(Category, category_id, user.id)
    db.session.delete(category)
    db.session.commit()


# -- transactions ----------------------------------------------------------

def list_transactions(user: User) -> List[Transaction]:
    return (
        Transaction.query.filter_by(user_id=user.id)
        .order_by(Transaction.transaction_date, Transaction.id)
        .all()
    )


def _category_id(user: User, data: Mapping[str, Any], errors: List[str]) -> Optional[int]:
    raw = clean_text(data, "category_id")
    if raw in ("", "uncategorized", "None", "null"):
        return None
    if not raw.isdigit():
        errors.append("Unknown category.")
        return None
    category = db.session.get(Category, int(raw))
    if category is None or category.user_id != user.id:
        errors.append("Unknown category.")
        return None
    return category.id


def _transaction_fields(user: User, data: Mapping[str, Any], errors: List[str], creating: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if creating or "description" in data:
        description = clean_text(data, "description")
        if not description:
            errors.append("Description is required.")
        fields["description"] = description
    if creating or "amount" in data:
        fields["amount"] = _number(data, "amount", "Amount", errors, strictly_positive=True)
    if creating or "category_id" in data:
        fields["category_id"] = _category_id(user, data, errors)
    if creating or "transaction_date" in data:
        fields["transaction_date"] = _datetime(
            data, "transaction_date", "Transaction date", errors,
            default=dt.datetime.now().replace(microsecond=0) if creating else None,
        )
    return fields


def create_transaction(user: User, data: Mapping[str, Any], source: str = "manual") -> Transaction:
    errors: List[str] = []
    fields = _transaction_fields(user, data, errors, creating=True)
    if errors:
        raise ValidationError(errors)
    txn = Transaction(user_id=user.id, source=source, **fields)
    db.session.add(txn)
    db.session.commit()
    return txn


def update_transaction(user: User, txn_id: int, data: Mapping[str, Any]) -> Transaction:
    txn = get_owned(Transaction, txn_id, user.id)
    errors: List[str] = []
    fields = _transaction_fields(user, data, errors, creating=False)
    if errors:
        raise ValidationError(errors)
    for key, value in fields.items():
        setattr(txn, key, value)
    db.session.commit()
    return txn


def delete_transaction(user: User, txn_id: int) -> None:
    txn = get_owned(Transaction, txn_id, user.id)
    db.session.delete(txn)
    db.session.commit()


def import_transactions(user: User, records: Iterable[ImportedTransaction]) -> int:
    """Store imported rows, matching category names case-insensitively."""
    by_name = {c.name.lower(): c.id for c in list_categories(user)}
    count = 0
    for record in records:
        db.session.add(Transaction(
            user_id=user.id,
            description=record.description,
            amount=record.amount,
            transaction_date=record.transaction_date,
            category_id=by_name.get((record.category or "").lower()),
            source="upload",
        ))
        count += 1
    db.session.commit()
    logger.info("Imported %d transactions for user %s", count, user.id)
    return count


# -- recurring expenses ----------------------------------------------------

def list_expenses(user: User) -> List[Expense]:
    return Expense.query.filter_by(user_id=user.id).order_by(Expense.next_due_date, Expense.id).all()


def _expense_fields(user: User, data: Mapping[str, Any], errors: List[str], creating: bool,
                    current: Optional[Expense] = None) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if creating or "name" in data:
        name = clean_text(data, "name")
        if not name:
            errors.append("Expense name is required.")
        fields["name"] = name
    if creating or "amount" in data:
        fields["amount"] = _number(data, "amount", "Amount", errors, strictly_positive=True)
    if creating or "category_id" in data:
        fields["category_id"] = _category_id(user, data, errors)
    if creating or "frequency_type" in data:
        frequency = clean_text(data, "frequency_type") or "monthly"
        if frequency not in bg.FREQUENCIES:
            errors.append("Frequency must be one of: " + ", ".join(bg.FREQUENCIES) + ".")
        fields["frequency_type"] = frequency
    if "interval_days" in data and clean_text(data, "interval_days"):
        interval = _number(data, "interval_days", "Interval", errors, strictly_positive=True)
        fields["interval_days"] = int(interval) if interval else None
    frequency = fields.get("frequency_type", current.frequency_type if current else None)
    interval = fields.get("interval_days", current.interval_days if current else None)
    if frequency == "custom" and not interval:
        errors.append("Custom frequency requires an interval in days.")
    if creating or "next_due_date" in data:
        fields["next_due_date"] = _date(
            data, "next_due_date", "Next due date", errors,
            default=dt.date.today() if creating else None,
        )
    if "is_active" in data:
        fields["is_active"] = as_flag(data.get("is_active"))
    return fields


def create_expense(user: User, data: Mapping[str, Any]) -> Expense:
    errors: List[str] = []
    fields = _expense_fields(user, data, errors, creating=True)
    if errors:
        raise ValidationError(errors)
    expense = Expense(user_id=user.id, **fields)
    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(user: User, expense_id: int, data: Mapping[str, Any]) -> Expense:
    expense = get_owned(Expense, expense_id, user.id)
    errors: List[str] = []
    fields = _expense_fields(user, data, errors, creating=False, current=expense)
    if errors:
        raise ValidationError(errors)
    for key, value in fields.items():
        setattr(expense, key, value)
    db.session.commit()
    return expense


def delete_expense(user: User, expense_id: int) -> None:
    expense = get_owned(Expense, expense_id, user.id)
    db.session.delete(expense)
    db.session.commit()


def pay_expense(user: User, expense_id: int, paid_at: Optional[dt.datetime] = None) -> Transaction:
    """Log a payment of the expense as a transaction and move its due date forward."""
    expense = get_owned(Expense, expense_id, user.id)
    if not expense.is_active:
        raise ValidationError("This expense is no longer active.")
    txn = Transaction(
        user_id=user.id,
        category_id=expense.category_id,
        description=expense.name,
        amount=expense.amount,
        transaction_date=paid_at or dt.datetime.now().replace(microsecond=0),
        source="recurring",
    )
    db.session.add(txn)
    next_due = bg.advance_due_date(expense)
    if next_due is None:
        expense.is_active = False
    else:
        expense.next_due_date = next_due
    db.session.commit()
    return txn


# -- goals -----------------------------------------------------------------

def list_goals(user: User) -> List[Goal]:
    return Goal.query.filter_by(user_id=user.id).order_by(Goal.deadline, Goal.id).all()


def _goal_fields(data: Mapping[str, Any], errors: List[str], creating: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if "name" in data and clean_text(data, "name"):
        fields["name"] = clean_text(data, "name")
    if creating or "target_amount" in data:
        fields["target_amount"] = _number(data, "target_amount", "Target amount", errors, strictly_positive=True)
    if creating or "deadline" in data:
        fields["deadline"] = _date(data, "deadline", "Deadline", errors)
    if "saved_amount" in data and clean_text(data, "saved_amount"):
        fields["saved_amount"] = _number(data, "saved_amount", "Saved amount", errors, minimum=0)
    if "is_active" in data:
        fields["is_active"] = as_flag(data.get("is_active"))
    return fields


def create_goal(user: User, data: Mapping[str, Any]) -> Goal:
    errors: List[str] = []
    fields = _goal_fields(data, errors, creating=True)
    if errors:
        raise ValidationError(errors)
    goal = Goal(user_id=user.id, **fields)
    db.session.add(goal)
    db.session.commit()
    return goal


def update_goal(user: User, goal_id: int, data: Mapping[str, Any]) -> Goal:
    goal = get_owned(Goal, goal_id, user.id)
    errors: List[str] = []
    fields = _goal_fields(data, errors, creating=False)
    if errors:
        raise ValidationError(errors)
    for key, value in fields.items():
        setattr(goal, key, value)
    db.session.commit()
    return goal


def delete_goal(user: User, goal_id: int) -> None:
    goal = get_owned(Goal, goal_id, user.id)
    db.session.delete(goal)
    db.session.commit()


def goal_to_dict(goal: Goal, today: Optional[dt.date] = None) -> Dict[str, Any]:
    data = goal.to_dict()
    data.update(bg.goal_progress(goal, today))
    return data


# -- computed views --------------------------------------------------------

def dashboard_data(user: User, period: str, now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    """Everything the dashboard shows for ``period``, from one set of queries."""
    now = now or dt.datetime.now()
    today = now.date()
    categories = list_categories(user)
    transactions = list_transactions(user)
    summary = bg.dashboard_summary(
        user.monthly_income, user.savings_goal_amount, categories, transactions, period, today,
        recurring_monthly=bg.recurring_total(list_expenses(user)),
    )
    progress = bg.savings_progress(user.monthly_income, user.savings_goal_amount, transactions, period, today)
    overview = bg.expense_overview(user.monthly_income, user.savings_goal_amount, categories, transactions,
                                   period, today)
    return {
        "period": period,
        "period_label": p.period_label(period),
        "summary": summary,
        "savings": progress,
        "expense_overview": overview,
        "categories": categories,
        "transactions": transactions,
        "trends": analytics.spending_trends(transactions, period, today),
        "daily_spending": analytics.daily_spending(transactions, today),
        "recent_transactions": analytics.filter_transactions(transactions, "all", sort="newest")[:5],
    }


def goal_overview(user: User, period: str, now: Optional[dt.datetime] = None) -> bg.GoalOverview:
    return bg.goal_overview(user.monthly_income, user.savings_goal_amount, list_transactions(user), period, now)


def expense_overview(user: User, period: str, today: Optional[dt.date] = None) -> bg.ExpenseOverview:
    return bg.expense_overview(user.monthly_income, user.savings_goal_amount, list_categories(user),
                               list_transactions(user), period, today)


# -- notifications ---------------------------------------------------------

def _notification_states(user: User) -> Dict[str, tuple]:
    rows = NotificationState.query.filter_by(user_id=user.id).all()
    return {row.notification_id: (row.is_read, row.is_dismissed) for row in rows}


def notification_feed(user: User, now: Optional[dt.datetime] = None, currency: str = "₹") -> List[nt.Notification]:
    feed = nt.build_notifications(
        user.monthly_income, user.savings_goal_amount, list_categories(user), list_transactions(user),
        now=now, currency=currency,
    )
    return nt.apply_states(feed, _notification_states(user))


def set_notification_state(user: User, notification_ids: Iterable[str], read: Optional[bool] = None,
                           dismissed: Optional[bool] = None) -> None:
    existing = {
        row.notification_id: row
        for row in NotificationState.query.filter_by(user_id=user.id).all()
    }
    for notification_id in notification_ids:
        row = existing.get(notification_id)
        if row is None:
            row = NotificationState(user_id=user.id, notification_id=notification_id)
            db.session.add(row)
            existing[notification_id] = row
        if read is not None:
            row.is_read = read
        if dismissed is not None:
            row.is_dismissed = dismissed
            if dismissed:
                row.is_read = True
    db.session.commit()
