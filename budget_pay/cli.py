"""Command-line interface for Budget Pay.

Usage:
  budget-pay init-db
  budget-pay serve --port 5000
  budget-pay report --email you@example.com --period monthly --json out/summary.json

Every command accepts ``--config`` pointing at a JSON config file; the
``BUDGET_PAY_*`` environment variables override it.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from . import periods as p
from .db import get_database_path
from .models import User
from .reports import build_summary, export_summary_csv, export_summary_json, format_text_report
from .services import list_categories, list_expenses, list_transactions
from .webapp import create_app

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="budget-pay", description="Budget Pay personal budgeting")
    parser.add_argument("--config", "-c", help="Path to JSON config")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    serve = sub.add_parser("serve", help="Run the web application")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--debug", action="store_true")

    report = sub.add_parser("report", help="Print a budget summary for a user")
    report.add_argument("--email", required=True, help="Email of the user to report on")
    report.add_argument("--period", default=p.DEFAULT_PERIOD, choices=[key for key, _ in p.PERIOD_OPTIONS])
    report.add_argument("--json", dest="json_out", help="Write summary JSON to path")
    report.add_argument("--csv", dest="csv_out", help="Write summary CSV to path")
    return parser.parse_args(argv)


def _report(app, args: argparse.Namespace) -> int:
    with app.app_context():
        user = User.query.filter_by(email=args.email.strip().lower()).first()
        if user is None:
            print(f"No user with email {args.email}")
            return 1
        summary = build_summary(
            user, list_categories(user), list_transactions(user), list_expenses(user), args.period
        )
    print(format_text_report(summary, app.config["CURRENCY_SYMBOL"]))

    if args.json_out:
        export_summary_json(summary, args.json_out)
        print(f"\nSaved JSON summary to: {args.json_out}")
    if args.csv_out:
        export_summary_csv(summary, args.csv_out)
        print(f"Saved CSV summary to: {args.csv_out}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    app = create_app(config_path=args.config)

    if args.command == "init-db":
        # create_app already created the tables.
        print(f"Initialized database at {get_database_path(app) or app.config['SQLALCHEMY_DATABASE_URI']}")
        return 0
    if args.command == "serve":
        logger.info("Serving Budget Pay on %s:%s", args.host, args.port)
        app.run(host=args.host, port=args.port, debug=args.debug)
        return 0
    return _report(app, args)


if __name__ == "__main__":
    raise SystemExit(main())
