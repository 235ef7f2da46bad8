"""JSON REST API mounted under ``/api/v1``.

Authentication is a bearer token from ``POST /auth/jwt/login``; the same
session cookie the HTML pages use is accepted as well. Errors are reported
as ``{"detail": ...}`` with the status code of the raised
:class:`~budget_pay.errors.BudgetPayError`.
"""

from __future__ import annotations

import datetime as dt
import io
import logging
from typing import Any, Dict, Mapping

from flask import Blueprint, Response, current_app, g, jsonify, request, session

from . import auth
from . import periods as p
from . import services
from .analytics import filter_transactions
from .assistant import Assistant, build_context
from .colors import color_for
from .data_loader import load_csv_text
from .db import get_owned
from .errors import BudgetPayError, ValidationError
from .models import Category, Transaction, User
from .notifications import summarize
from .reports import build_summary, export_summary_csv

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api/v1")


@bp.errorhandler(BudgetPayError)
def _handle_error(exc: BudgetPayError):
    if exc.status_code >= 500:
        logger.error("API error %s: %s", exc.code, exc.message)
    return jsonify(detail=exc.to_detail()), exc.status_code


def _payload() -> Mapping[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


def _adjust_others(data: Mapping[str, Any]) -> bool:
    raw = request.args.get("adjust_others", data.get("adjust_others"))
    return services.as_flag(raw)


def _currency() -> str:
    return current_app.config["CURRENCY_SYMBOL"]


# -- auth ------------------------------------------------------------------

@bp.route("/auth/register", methods=["POST"])
def register():
    user = services.register_user(_payload(), current_app.config["DEFAULT_CATEGORIES"])
    auth.send_verification(user)
    return jsonify(user.to_dict()), 201


@bp.route("/auth/jwt/login", methods=["POST"])
def login():
    data = _payload()
    user = services.authenticate(data.get("username") or data.get("email"), data.get("password"))
    return jsonify(access_token=auth.issue_access_token(user), token_type="bearer")


@bp.route("/auth/jwt/logout", methods=["POST"])
@auth.api_login_required
def logout():
    session.clear()
    return "", 204


@bp.route("/auth/request-verify-token", methods=["POST"])
def request_verify_token():
    email = services.clean_text(_payload(), "email").lower()
    user = User.query.filter_by(email=email).first() if email else None
    if user is not None and user.is_active and not user.is_verified:
        auth.send_verification(user)
    return "", 202


@bp.route("/auth/verify", methods=["POST"])
def verify():
    user = auth.user_from_verify_token(services.clean_text(_payload(), "token"))
    if user.is_verified:
        raise ValidationError("This account is already verified.")
    services.mark_verified(user)
    return jsonify(user.to_dict())


@bp.route("/auth/forgot-password", methods=["POST"])
def forgot_password():
    email = services.clean_text(_payload(), "email").lower()
    user = User.query.filter_by(email=email).first() if email else None
    if user is not None and user.is_active:
        auth.send_password_reset(user)
    return "", 202


@bp.route("/auth/reset-password", methods=["POST"])
def reset_password():
    data = _payload()
    user = auth.user_from_reset_token(services.clean_text(data, "token"))
    services.set_password(user, data.get("password") or "")
    logger.info("Password reset for user %s", user.id)
    return jsonify(detail="Password updated.")


# -- users -----------------------------------------------------------------

@bp.route("/users/me", methods=["GET"])
@auth.api_login_required
def get_me():
    return jsonify(g.user.to_dict())


@bp.route("/users/me", methods=["PATCH"])
@auth.api_login_required
def update_me():
    services.update_profile(g.user, _payload())
    return jsonify(g.user.to_dict())


@bp.route("/users/me", methods=["DELETE"])
@auth.api_login_required
def delete_me():
    services.delete_user(g.user)
    session.clear()
    return "", 204


@bp.route("/users/deactivate", methods=["POST"])
@auth.api_login_required
def deactivate_me():
    services.deactivate_user(g.user)
    session.clear()
    return jsonify(g.user.to_dict())


# -- categories ------------------------------------------------------------

@bp.route("/categories/", methods=["GET"])
@auth.api_login_required
def list_categories():
    return jsonify([c.to_dict() for c in services.list_categories(g.user)])


@bp.route("/categories/", methods=["POST"])
@auth.api_login_required
def create_category():
    data = _payload()
    category = services.create_category(g.user, data, adjust_others=_adjust_others(data))
    return jsonify(category.to_dict()), 201


@bp.route("/categories/<int:category_id>", methods=["GET"])
@auth.api_login_required
def get_category(category_id: int):
    return jsonify(get_owned(Category, category_id, g.user.id).to_dict())


@bp.route("/categories/<int:category_id>", methods=["PUT", "PATCH"])
@auth.api_login_required
def update_category(category_id: int):
    data = _payload()
    category = services.update_category(g.user, category_id, data, adjust_others=_adjust_others(data))
    return jsonify(category.to_dict())


@bp.route("/categories/<int:category_id>", methods=["DELETE"])
@auth.api_login_required
def delete_category(category_id: int):
    services.delete_category(g.user, category_id)
    return "", 204


# -- transactions ----------------------------------------------------------

@bp.route("/transactions/", methods=["GET"])
@auth.api_login_required
def list_transactions():
    args = request.args
    rows = filter_transactions(
        services.list_transactions(g.user),
        date_filter=args.get("date_filter", "all"),
        category=args.get("category", "all"),
        search=args.get("search", ""),
        sort=args.get("sort", "newest"),
    )
    skip = args.get("skip", 0, type=int)
    limit = args.get("limit", 100, type=int)
    return jsonify([t.to_dict() for t in rows[skip:skip + limit]])


@bp.route("/transactions/", methods=["POST"])
@auth.api_login_required
def create_transaction():
    txn = services.create_transaction(g.user, _payload())
    return jsonify(txn.to_dict()), 201


@bp.route("/transactions/import", methods=["POST"])
@auth.api_login_required
def import_transactions():
    file = request.files.get("file")
    if not file or not file.filename:
        raise ValidationError("Please choose a CSV file to upload.")
    try:
        text = file.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("Unable to decode the uploaded file. Ensure it is UTF-8 encoded.")
    try:
        records = load_csv_text(text, label=file.filename)
    except ValueError as exc:
        raise ValidationError(str(exc))
    return jsonify(imported=services.import_transactions(g.user, records)), 201


@bp.route("/transactions/<int:txn_id>", methods=["GET"])
@auth.api_login_required
def get_transaction(txn_id: int):
    return jsonify(get_owned(Transaction, txn_id, g.user.id).to_dict())


@bp.route("/transactions/<int:txn_id>", methods=["PUT", "PATCH"])
@auth.api_login_required
def update_transaction(txn_id: int):
    return jsonify(services.update_transaction(g.user, txn_id, _payload()).to_dict())


@bp.route("/transactions/<int:txn_id>", methods=["DELETE"])
@auth.api_login_required
def delete_transaction(txn_id: int):
    services.delete_transaction(g.user, txn_id)
    return "", 204


# -- recurring expenses ----------------------------------------------------

@bp.route("/expenses/", methods=["GET"])
@auth.api_login_required
def list_expenses():
    return jsonify([e.to_dict() for e in services.list_expenses(g.user)])


@bp.route("/expenses/", methods=["POST"])
@auth.api_login_required
def create_expense():
    return jsonify(services.create_expense(g.user, _payload()).to_dict()), 201


@bp.route("/expenses/<int:expense_id>", methods=["PUT", "PATCH"])
@auth.api_login_required
def update_expense(expense_id: int):
    return jsonify(services.update_expense(g.user, expense_id, _payload()).to_dict())


@bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@auth.api_login_required
def delete_expense(expense_id: int):
    services.delete_expense(g.user, expense_id)
    return "", 204


@bp.route("/expenses/<int:expense_id>/pay", methods=["POST"])
@auth.api_login_required
def pay_expense(expense_id: int):
    txn = services.pay_expense(g.user, expense_id)
    return jsonify(txn.to_dict()), 201


# -- goals -----------------------------------------------------------------

@bp.route("/goals/", methods=["GET"])
@auth.api_login_required
def list_goals():
    return jsonify([services.goal_to_dict(goal) for goal in services.list_goals(g.user)])


@bp.route("/goals/", methods=["POST"])
@auth.api_login_required
def create_goal():
    return jsonify(services.goal_to_dict(services.create_goal(g.user, _payload()))), 201


@bp.route("/goals/progress", methods=["GET"])
@auth.api_login_required
def goals_progress():
    period = p.normalize_period(request.args.get("period"))
    return jsonify(services.goal_overview(g.user, period).to_dict())


@bp.route("/goals/<int:goal_id>", methods=["PUT", "PATCH"])
@auth.api_login_required
def update_goal(goal_id: int):
    return jsonify(services.goal_to_dict(services.update_goal(g.user, goal_id, _payload())))


@bp.route("/goals/<int:goal_id>", methods=["DELETE"])
@auth.api_login_required
def delete_goal(goal_id: int):
    services.delete_goal(g.user, goal_id)
    return "", 204


# -- dashboard -------------------------------------------------------------

def _series(points) -> list:
    return [{"label": label, "amount": round(amount, 2)} for label, amount in points]


@bp.route("/dashboard/summary", methods=["GET"])
@auth.api_login_required
def dashboard_summary():
    period = p.normalize_period(request.args.get("period"))
    data = services.dashboard_data(g.user, period)
    summary = data["summary"]
    allocation = [
        {
            "category_id": c.id,
            "name": c.name,
            "color": c.color or color_for(c.id, c.name),
            "amount": round(summary.allocation_per_category.get(c.id, 0.0), 2),
        }
        for c in data["categories"]
    ]
    return jsonify(
        period=period,
        period_label=data["period_label"],
        summary=summary.to_dict(),
        savings=data["savings"].to_dict(),
        expense_overview=data["expense_overview"].to_dict(),
        charts={
            "allocation": allocation,
            "daily_spending": _series(data["daily_spending"]),
            "trends": _series(data["trends"]),
        },
        recent_transactions=[t.to_dict() for t in data["recent_transactions"]],
    )


@bp.route("/expenses/overview", methods=["GET"])
@auth.api_login_required
def expenses_overview():
    period = p.normalize_period(request.args.get("period"))
    return jsonify(services.expense_overview(g.user, period).to_dict())


@bp.route("/reports/export", methods=["GET"])
@auth.api_login_required
def export_report():
    fmt = (request.args.get("format") or "json").lower()
    period = p.normalize_period(request.args.get("period"))
    summary = build_summary(
        g.user,
        services.list_categories(g.user),
        services.list_transactions(g.user),
        services.list_expenses(g.user),
        period,
    )
    if fmt == "json":
        return jsonify(summary)
    if fmt != "csv":
        raise ValidationError("Format must be csv or json.")
    buffer = io.StringIO()
    export_summary_csv(summary, buffer)
    filename = f"budget-pay-{period}-{dt.date.today().isoformat()}.csv"
    return Response(
        buffer.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# -- notifications ---------------------------------------------------------

@bp.route("/notifications/", methods=["GET"])
@auth.api_login_required
def list_notifications():
    feed = services.notification_feed(g.user, currency=_currency())
    if services.as_flag(request.args.get("unread_only")):
        feed = [n for n in feed if not n.is_read]
    return jsonify(summarize(feed))


@bp.route("/notifications/<notification_id>/read", methods=["POST"])
@auth.api_login_required
def read_notification(notification_id: str):
    services.set_notification_state(g.user, [notification_id], read=True)
    return "", 204


@bp.route("/notifications/read-all", methods=["POST"])
@auth.api_login_required
def read_all_notifications():
    feed = services.notification_feed(g.user, currency=_currency())
    services.set_notification_state(g.user, [n.id for n in feed], read=True)
    return "", 204


@bp.route("/notifications/<notification_id>", methods=["DELETE"])
@auth.api_login_required
def dismiss_notification(notification_id: str):
    services.set_notification_state(g.user, [notification_id], dismissed=True)
    return "", 204


# -- assistant -------------------------------------------------------------

def get_assistant() -> Assistant:
    return Assistant(
        current_app.config["ASSISTANT"],
        currency=_currency(),
        transport=current_app.config.get("ASSISTANT_TRANSPORT"),
    )


def assistant_context(user: User) -> Dict[str, Any]:
    return build_context(
        user,
        services.list_categories(user),
        services.list_transactions(user),
        services.list_expenses(user),
    )


@bp.route("/chatbot/ask", methods=["POST"])
@auth.api_login_required
def ask_assistant():
    query = services.clean_text(_payload(), "query")
    if not query:
        raise ValidationError("Query is required.")
    response = get_assistant().ask(query, assistant_context(g.user))
    return jsonify(response=response)
