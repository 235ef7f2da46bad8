"""Flask web interface for Budget Pay."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from flask import (
    Flask,
    flash,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from werkzeug.security import check_password_hash

from . import api
from . import auth
from . import charts
from . import periods as p
from . import services
from .analytics import SORT_OPTIONS, filter_transactions, spending_by_category
from .assistant import WELCOME_MESSAGE, append_history, new_message
from .budgeting import FREQUENCIES, UNCATEGORIZED, effective_percentage, monthly_equivalent, period_transactions
from .colors import STATUS_COLORS, color_for
from .config import AppConfig
from .data_loader import load_csv_text
from .db import get_owned, init_db
from .errors import AllocationError, AssistantError, AuthenticationError, BudgetPayError, ValidationError
from .models import Expense, Transaction, User
from .notifications import unread_count

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

logger = logging.getLogger(__name__)


def _messages(exc: BudgetPayError) -> List[str]:
    if isinstance(exc, ValidationError):
        return list(exc.messages)
    return [exc.message]


def _selected_period() -> str:
    """Period from the query string, remembered in the session between pages."""
    raw = request.args.get("period") or session.get("period")
    period = p.normalize_period(raw)
    session["period"] = period
    return period


def _form_dict(form: Mapping[str, Any], keys) -> Dict[str, str]:
    return {key: (form.get(key) or "").strip() for key in keys}


def _chat_history() -> List[Dict[str, Any]]:
    history = session.get("chat_history")
    if not history:
        history = [new_message(WELCOME_MESSAGE, False, dt.datetime.now(), message_id="welcome")]
    return history


def create_app(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(
        __name__,
        template_folder=str(PACKAGE_ROOT / "templates"),
    )
    cfg = AppConfig.load(_resolve_config_path(config_path))
    app.config.update(cfg.flask_settings())
    if overrides:
        app.config.update(overrides)
    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db(app)
    app.before_request(auth.load_logged_in_user)
    app.register_blueprint(api.bp)

    @app.template_filter("money")
    def money(value) -> str:
        return f"{app.config['CURRENCY_SYMBOL']}{float(value or 0):,.2f}"

    @app.context_processor
    def inject_globals() -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "currency": app.config["CURRENCY_SYMBOL"],
            "period_options": p.PERIOD_OPTIONS,
            "status_colors": STATUS_COLORS,
            "unread_notifications": 0,
        }
        if g.get("user") is not None:
            feed = services.notification_feed(g.user, currency=app.config["CURRENCY_SYMBOL"])
            data["unread_notifications"] = unread_count(feed)
        return data

    # -- authentication -----------------------------------------------------

    @app.route("/register", methods=["GET", "POST"])
    def register():
        if g.user is not None:
            return redirect(url_for("index"))
        errors: List[str] = []
        form = {"email": "", "full_name": ""}
        if request.method == "POST":
            form = _form_dict(request.form, ("email", "full_name"))
            try:
                user = services.register_user(request.form, app.config["DEFAULT_CATEGORIES"])
            except ValidationError as exc:
                errors.extend(exc.messages)
            else:
                auth.send_verification(user)
                auth.login_user(user)
                flash("Welcome! Check your email for a verification link.")
                return redirect(url_for("settings"))
        return render_template("auth.html", mode="register", errors=errors, form=form)

    @app.route("/login", methods=["GET", "POST"])
    def login():
        if g.user is not None:
            return redirect(url_for("index"))
        errors: List[str] = []
        form = {"username": ""}
        if request.method == "POST":
            username = (request.form.get("username") or "").strip()
            form["username"] = username
            try:
                user = services.authenticate(username, request.form.get("password") or "")
            except AuthenticationError as exc:
                errors.append(exc.message)
            else:
                auth.login_user(user)
                target = request.args.get("next") or ""
                if not target.startswith("/") or target.startswith("//"):
                    target = url_for("index")
                return redirect(target)
        return render_template("auth.html", mode="login", errors=errors, form=form)

    @app.route("/logout", methods=["POST"])
    @auth.login_required
    def logout():
        session.clear()
        return redirect(url_for("login"))

    @app.route("/verify/<token>")
    def verify(token: str):
        try:
            user = auth.user_from_verify_token(token)
        except AuthenticationError as exc:
            flash(exc.message)
        else:
            services.mark_verified(user)
            flash("Your email address has been verified.")
        return redirect(url_for("index" if g.user is not None else "login"))

    @app.route("/forgot-password", methods=["GET", "POST"])
    def forgot_password():
        errors: List[str] = []
        form = {"email": ""}
        if request.method == "POST":
            form = _form_dict(request.form, ("email",))
            user = User.query.filter_by(email=form["email"].lower()).first() if form["email"] else None
            if user is not None and user.is_active:
                auth.send_password_reset(user)
            flash("If that address is registered, a reset link is on its way.")
            return redirect(url_for("login"))
        return render_template("auth.html", mode="forgot", errors=errors, form=form)

    @app.route("/reset-password/<token>", methods=["GET", "POST"])
    def reset_password(token: str):
        errors: List[str] = []
        try:
            user = auth.user_from_reset_token(token)
        except AuthenticationError as exc:
            flash(exc.message)
            return redirect(url_for("forgot_password"))
        if request.method == "POST":
            try:
                services.set_password(user, request.form.get("password") or "",
                                      request.form.get("confirm_password") or "")
            except ValidationError as exc:
                errors.extend(exc.messages)
            else:
                flash("Your password has been updated. Please log in.")
                return redirect(url_for("login"))
        return render_template("auth.html", mode="reset", errors=errors, form={}, token=token)

    # -- dashboard ----------------------------------------------------------

    @app.route("/")
    @auth.login_required
    def index():
        period = _selected_period()
        currency = app.config["CURRENCY_SYMBOL"]
        data = services.dashboard_data(g.user, period)
        summary = data["summary"]
        goal = services.goal_overview(g.user, period)
        figures = {
            "allocation": charts.allocation_chart(data["categories"], summary.allocation_per_category, currency),
            "daily": charts.spending_chart(data["daily_spending"], currency),
            "trends": charts.trends_chart(data["trends"], data["period_label"], currency),
            "health": charts.category_health_chart(summary.category_health, currency),
        }
        names = {c.id: c.name for c in data["categories"]}
        return render_template(
            "dashboard.html",
            period=period,
            period_label=data["period_label"],
            summary=summary,
            savings=data["savings"],
            goal=goal,
            charts={key: charts.to_html(fig) for key, fig in figures.items()},
            recent_transactions=data["recent_transactions"],
            category_names=names,
            needs_setup=not g.user.monthly_income,
        )

    # -- categories ---------------------------------------------------------

    @app.route("/categories", methods=["GET", "POST"])
    @auth.login_required
    def categories():
        errors: List[str] = []
        form: Dict[str, str] = {"name": "", "description": "", "default_percentage": "", "color": ""}
        pending_adjust = False
        if request.method == "POST":
            action = request.form.get("action", "")
            adjust = services.as_flag(request.form.get("adjust_others"))
            try:
                if action == "add_category":
                    form = _form_dict(request.form, ("name", "description", "default_percentage", "color"))
                    services.create_category(g.user, request.form, adjust_others=adjust)
                    return redirect(url_for("categories"))
                if action == "update_category":
                    services.update_category(g.user, request.form.get("category_id", type=int) or 0,
                                             request.form, adjust_others=adjust)
                    return redirect(url_for("categories"))
                if action == "delete_category":
                    services.delete_category(g.user, request.form.get("category_id", type=int) or 0)
                    return redirect(url_for("categories"))
                errors.append("Unknown action.")
            except AllocationError as exc:
                errors.append(exc.message)
                pending_adjust = True
            except BudgetPayError as exc:
                errors.extend(_messages(exc))

        rows = services.list_categories(g.user)
        total = sum(effective_percentage(c) for c in rows)
        return render_template(
            "categories.html",
            categories=rows,
            total_percentage=total,
            effective_percentage=effective_percentage,
            color_for=color_for,
            errors=errors,
            form=form,
            pending_adjust=pending_adjust,
        )

    # -- transactions -------------------------------------------------------

    @app.route("/transactions", methods=["GET", "POST"])
    @auth.login_required
    def transactions():
        errors: List[str] = []
        filters = {
            "date_filter": request.args.get("date_filter", p.DEFAULT_DATE_FILTER),
            "category": request.args.get("category", "all"),
            "search": request.args.get("search", ""),
            "sort": request.args.get("sort", "newest"),
        }
        manual_form = {"description": "", "amount": "", "category_id": "", "transaction_date": ""}
        form_mode = "add"
        edit_id = request.args.get("edit") if request.method == "GET" else None

        if request.method == "POST":
            action = request.form.get("action", "")
            fields = ("description", "amount", "category_id", "transaction_date")
            try:
                if action == "add_manual":
                    manual_form = _form_dict(request.form, fields)
                    services.create_transaction(g.user, request.form)
                    return redirect(url_for("transactions", **filters))
                if action == "save_edit":
                    manual_form = _form_dict(request.form, fields)
                    form_mode = "edit"
                    edit_id = request.form.get("transaction_id")
                    services.update_transaction(g.user, request.form.get("transaction_id", type=int) or 0,
                                                request.form)
                    return redirect(url_for("transactions", **filters))
                if action == "delete_transaction":
                    services.delete_transaction(g.user, request.form.get("transaction_id", type=int) or 0)
                    return redirect(url_for("transactions", **filters))
                if action == "upload_csv":
                    errors.extend(_upload_csv(g.user))
                    if not errors:
                        return redirect(url_for("transactions", **filters))
                else:
                    errors.append("Unknown action.")
            except BudgetPayError as exc:
                errors.extend(_messages(exc))
        elif edit_id and edit_id.isdigit():
            try:
                txn = get_owned(Transaction, int(edit_id), g.user.id)
            except BudgetPayError:
                edit_id = None
            else:
                manual_form = {
                    "description": txn.description,
                    "amount": f"{txn.amount:.2f}",
                    "category_id": str(txn.category_id or ""),
                    "transaction_date": txn.transaction_date.date().isoformat(),
                }
                form_mode = "edit"

        category_rows = services.list_categories(g.user)
        all_rows = services.list_transactions(g.user)
        rows = filter_transactions(all_rows, **filters)
        return render_template(
            "transactions.html",
            transactions=rows,
            total_amount=sum(t.amount for t in rows),
            categories=category_rows,
            category_names={c.id: c.name for c in category_rows},
            category_colors={c.id: color_for(c.id, c.name, {c.id: c.color}) for c in category_rows},
            uncategorized=UNCATEGORIZED,
            filters=filters,
            date_filter_options=p.DATE_FILTER_OPTIONS,
            sort_options=SORT_OPTIONS,
            manual_form=manual_form,
            form_mode=form_mode,
            edit_id=edit_id,
            errors=errors,
        )

    # -- category budgets ---------------------------------------------------

    @app.route("/expenses")
    @auth.login_required
    def expenses():
        period = _selected_period()
        data = services.dashboard_data(g.user, period)
        health_chart = charts.category_health_chart(
            data["summary"].category_health, app.config["CURRENCY_SYMBOL"], "Category Budgets"
        )
        spend = spending_by_category(period_transactions(data["transactions"], period), data["categories"])
        return render_template(
            "expenses.html",
            period=period,
            period_label=p.period_label(period),
            overview=data["expense_overview"],
            health_chart=charts.to_html(health_chart),
            spend=spend,
            needs_setup=not g.user.monthly_income,
        )

    # -- recurring bills ----------------------------------------------------

    @app.route("/bills", methods=["GET", "POST"])
    @auth.login_required
    def bills():
        errors: List[str] = []
        fields = ("name", "amount", "category_id", "frequency_type", "interval_days", "next_due_date")
        form = {key: "" for key in fields}
        form["frequency_type"] = "monthly"
        if request.method == "POST":
            action = request.form.get("action", "")
            expense_id = request.form.get("expense_id", type=int) or 0
            try:
                if action == "add_expense":
                    form = _form_dict(request.form, fields)
                    services.create_expense(g.user, request.form)
                elif action == "pay_expense":
                    txn = services.pay_expense(g.user, expense_id)
                    flash(f"Logged payment of {money(txn.amount)} for {txn.description}.")
                elif action == "toggle_expense":
                    expense = get_owned(Expense, expense_id, g.user.id)
                    services.update_expense(g.user, expense_id, {"is_active": not expense.is_active})
                elif action == "delete_expense":
                    services.delete_expense(g.user, expense_id)
                else:
                    errors.append("Unknown action.")
            except BudgetPayError as exc:
                errors.extend(_messages(exc))
            if not errors:
                return redirect(url_for("bills"))

        rows = services.list_expenses(g.user)
        category_rows = services.list_categories(g.user)
        return render_template(
            "bills.html",
            expenses=rows,
            monthly_equivalent=monthly_equivalent,
            recurring_total=sum(monthly_equivalent(e) for e in rows),
            categories=category_rows,
            category_names={c.id: c.name for c in category_rows},
            frequencies=FREQUENCIES,
            today=dt.date.today(),
            form=form,
            errors=errors,
        )

    # -- goals --------------------------------------------------------------

    @app.route("/goals", methods=["GET", "POST"])
    @auth.login_required
    def goals():
        errors: List[str] = []
        fields = ("name", "target_amount", "deadline", "saved_amount")
        form = {key: "" for key in fields}
        period = _selected_period()
        if request.method == "POST":
            action = request.form.get("action", "")
            goal_id = request.form.get("goal_id", type=int) or 0
            try:
                if action == "add_goal":
                    form = _form_dict(request.form, fields)
                    services.create_goal(g.user, request.form)
                elif action == "update_saved":
                    services.update_goal(g.user, goal_id, {"saved_amount": request.form.get("saved_amount")})
                elif action == "delete_goal":
                    services.delete_goal(g.user, goal_id)
                else:
                    errors.append("Unknown action.")
            except BudgetPayError as exc:
                errors.extend(_messages(exc))
            if not errors:
                return redirect(url_for("goals"))

        return render_template(
            "goals.html",
            period=period,
            overview=services.goal_overview(g.user, period),
            goals=[services.goal_to_dict(goal) for goal in services.list_goals(g.user)],
            form=form,
            errors=errors,
        )

    # -- notifications ------------------------------------------------------

    @app.route("/notifications", methods=["GET", "POST"])
    @auth.login_required
    def notifications():
        currency = app.config["CURRENCY_SYMBOL"]
        if request.method == "POST":
            action = request.form.get("action", "")
            notification_id = request.form.get("notification_id") or ""
            if action == "read" and notification_id:
                services.set_notification_state(g.user, [notification_id], read=True)
            elif action == "dismiss" and notification_id:
                services.set_notification_state(g.user, [notification_id], dismissed=True)
            elif action == "read_all":
                feed = services.notification_feed(g.user, currency=currency)
                services.set_notification_state(g.user, [n.id for n in feed], read=True)
            return redirect(url_for("notifications"))
        return render_template("notifications.html", feed=services.notification_feed(g.user, currency=currency))

    # -- assistant ----------------------------------------------------------

    @app.route("/assistant", methods=["GET", "POST"])
    @auth.login_required
    def assistant():
        errors: List[str] = []
        history = _chat_history()
        if request.method == "POST":
            action = request.form.get("action", "ask")
            if action == "clear":
                session.pop("chat_history", None)
                return redirect(url_for("assistant"))
            query = (request.form.get("query") or "").strip()
            if not query:
                errors.append("Please enter a question.")
            else:
                history = append_history(history, query, True)
                try:
                    reply = api.get_assistant().ask(query, api.assistant_context(g.user))
                except AssistantError as exc:
                    errors.append(exc.message)
                    reply = "Sorry, I'm having trouble connecting right now. Please try again later."
                history = append_history(history, reply, False)
                session["chat_history"] = history
                if not errors:
                    return redirect(url_for("assistant"))
        return render_template(
            "assistant.html",
            history=history,
            enabled=app.config["ASSISTANT"].enabled,
            errors=errors,
        )

    # -- settings -----------------------------------------------------------

    @app.route("/settings", methods=["GET", "POST"])
    @auth.login_required
    def settings():
        errors: List[str] = []
        user = g.user
        if request.method == "POST":
            action = request.form.get("action", "")
            try:
                if action == "update_profile":
                    services.update_profile(user, request.form)
                    flash("Profile updated.")
                elif action == "change_password":
                    if not check_password_hash(user.password_hash, request.form.get("current_password") or ""):
                        raise AuthenticationError("Current password is incorrect.")
                    services.set_password(user, request.form.get("password") or "",
                                          request.form.get("confirm_password") or "")
                    flash("Password changed.")
                elif action == "resend_verification":
                    auth.send_verification(user)
                    flash("Verification link sent.")
                elif action == "deactivate":
                    services.deactivate_user(user)
                    session.clear()
                    flash("Your account has been deactivated.")
                    return redirect(url_for("login"))
                elif action == "delete_account":
                    services.delete_user(user)
                    session.clear()
                    flash("Your account has been deleted.")
                    return redirect(url_for("login"))
                else:
                    errors.append("Unknown action.")
            except BudgetPayError as exc:
                errors.extend(_messages(exc))
            if not errors:
                return redirect(url_for("settings"))
        return render_template("settings.html", user=user, errors=errors)

    def _upload_csv(user: User) -> List[str]:
        file = request.files.get("csv_file")
        if not file or not file.filename:
            return ["Please choose a CSV file to upload."]
        try:
            text = file.read().decode("utf-8-sig")
        except UnicodeDecodeError:
            return ["Unable to decode the uploaded file. Ensure it is UTF-8 encoded."]
        try:
            records = load_csv_text(text, label=file.filename)
        except ValueError as exc:
            return [str(exc)]
        count = services.import_transactions(user, records)
        flash(f"Imported {count} transactions from {file.filename}.")
        return []

    return app


def _resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    if not config_path:
        return None
    path = Path(config_path)
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path


if __name__ == "__main__":
    create_app().run(debug=True)
