from __future__ import annotations

import json

import pytest

from budget_pay import cli, services
from budget_pay.webapp import create_app


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in ("BUDGET_PAY_DATABASE", "BUDGET_PAY_CURRENCY", "OPENROUTER_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"database": str(tmp_path / "cli.db"), "currency_symbol": "$"}), encoding="utf-8")
    return path


def test_parse_args_report_defaults():
    args = cli.parse_args(["report", "--email", "a@example.com"])
    assert args.command == "report"
    assert args.period == "monthly"
    assert args.json_out is None


def test_parse_args_rejects_unknown_period():
    with pytest.raises(SystemExit):
        cli.parse_args(["report", "--email", "a@example.com", "--period", "hourly"])


def test_init_db_and_report(config_file, tmp_path, capsys):
    assert cli.main(["--config", str(config_file), "init-db"]) == 0
    assert "Initialized database" in capsys.readouterr().out

    app = create_app(config_path=str(config_file))
    with app.app_context():
        user = services.register_user({"email": "cli@example.com", "password": "long-enough"},
                                      app.config["DEFAULT_CATEGORIES"])
        services.update_profile(user, {"monthly_income": 5000, "savings_goal_amount": 1000})
        services.create_transaction(user, {"description": "Rent", "amount": 1200})

    out_json = tmp_path / "summary.json"
    out_csv = tmp_path / "summary.csv"
    code = cli.main(["--config", str(config_file), "report", "--email", "CLI@example.com",
                     "--json", str(out_json), "--csv", str(out_csv)])
    assert code == 0
    output = capsys.readouterr().out
    assert "=== Budget Pay Monthly Summary" in output
    assert "Available budget:  $4,000.00" in output
    assert json.loads(out_json.read_text(encoding="utf-8"))["dashboard"]["total_spent"] == 1200
    assert out_csv.read_text(encoding="utf-8").startswith("Section,Item,Metric,Value")


def test_report_unknown_user(config_file, capsys):
    assert cli.main(["--config", str(config_file), "report", "--email", "ghost@example.com"]) == 1
    assert "No user with email ghost@example.com" in capsys.readouterr().out
