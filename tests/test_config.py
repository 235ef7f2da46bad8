from __future__ import annotations

import json

from budget_pay.config import DEFAULT_CATEGORIES, AppConfig


def test_defaults_without_file():
    cfg = AppConfig.load(None, env={})
    assert cfg.currency_symbol == "₹"
    assert cfg.assistant.enabled is False
    assert sum(c.percentage for c in cfg.default_categories) == 100
    assert len(cfg.default_categories) == len(DEFAULT_CATEGORIES)


def test_json_then_env_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "database": str(tmp_path / "app.db"),
        "currency_symbol": "$",
        "log_level": "DEBUG",
        "assistant": {"primary_model": "some/model", "timeout": 5},
        "default_categories": [
            {"name": "Rent", "percentage": 60},
            {"name": "Everything else", "percentage": 40, "color": "#123456"},
            {"percentage": 10},
        ],
    }), encoding="utf-8")

    cfg = AppConfig.load(path, env={"BUDGET_PAY_CURRENCY": "€", "OPENROUTER_API_KEY": "secret"})
    assert cfg.currency_symbol == "€"
    assert cfg.log_level == "DEBUG"
    assert cfg.assistant.primary_model == "some/model"
    assert cfg.assistant.timeout == 5.0
    assert cfg.assistant.enabled is True
    assert [c.name for c in cfg.default_categories] == ["Rent", "Everything else"]

    settings = cfg.flask_settings()
    assert settings["SQLALCHEMY_DATABASE_URI"] == f"sqlite:///{(tmp_path / 'app.db').resolve()}"
    assert settings["CURRENCY_SYMBOL"] == "€"


def test_memory_database_url():
    cfg = AppConfig.load(None, env={"BUDGET_PAY_DATABASE": ":memory:"})
    assert cfg.flask_settings()["SQLALCHEMY_DATABASE_URI"] == "sqlite://"
