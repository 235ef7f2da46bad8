"""Configuration utilities for Budget Pay.

Provides the default spending categories every new user starts with and
helpers to load deployment configuration (database path, secrets, the
assistant endpoint, custom default categories) from a JSON file with
environment variable overrides.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

ENV_PREFIX = "BUDGET_PAY_"


@dataclass
class CategoryTemplate:
    name: str
    description: str
    percentage: float
    color: str


# Seeded for every new user. Percentages add up to 100.
DEFAULT_CATEGORIES: List[CategoryTemplate] = [
    CategoryTemplate("Housing", "Rent, mortgage and home maintenance", 30, "#3B82F6"),
    CategoryTemplate("Food", "Groceries and dining out", 15, "#F59E0B"),
    CategoryTemplate("Transportation", "Fuel, transit and vehicle costs", 10, "#8B5CF6"),
    CategoryTemplate("Utilities", "Electricity, water, internet and phone", 10, "#10B981"),
    CategoryTemplate("Healthcare", "Insurance, medicine and doctor visits", 5, "#EF4444"),
    CategoryTemplate("Entertainment", "Movies, events and subscriptions", 5, "#F97316"),
    CategoryTemplate("Shopping", "Clothing and household items", 5, "#06B6D4"),
    CategoryTemplate("Education", "Courses, books and tuition", 5, "#84CC16"),
    CategoryTemplate("Personal Care", "Grooming and wellness", 5, "#F472B6"),
    CategoryTemplate("Miscellaneous", "Everything else", 10, "#6366F1"),
]


@dataclass
class AssistantConfig:
    api_key: Optional[str] = None
    base_url: str = "https://openrouter.ai/api/v1"
    primary_model: str = "meta-llama/llama-3.2-3b-instruct"
    fallback_model: Optional[str] = "deepseek/deepseek-chat-v3-0324:free"
    timeout: float = 60.0
    referer: str = "http://localhost:5000"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass
class AppConfig:
    secret_key: str = "dev-budget-pay"
    database: str = str(PROJECT_ROOT / "budget_pay.db")
    log_level: str = "INFO"
    currency_symbol: str = "₹"
    token_max_age: int = 7 * 24 * 60 * 60
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    default_categories: List[CategoryTemplate] = field(
        default_factory=lambda: list(DEFAULT_CATEGORIES)
    )

    @staticmethod
    def load(config_path: Optional[str | Path] = None, env: Optional[Dict[str, str]] = None) -> "AppConfig":
        """Load config from JSON if provided, then apply environment overrides.

        JSON format:
        {
          "secret_key": "...",
          "database": "data/budget_pay.db",
          "log_level": "DEBUG",
          "currency_symbol": "$",
          "assistant": {"api_key": "...", "primary_model": "..."},
          "default_categories": [
            {"name": "Rent", "description": "", "percentage": 40, "color": "#3B82F6"}
          ]
        }
        """

        cfg = AppConfig()
        env = os.environ if env is None else env

        if config_path:
            p = Path(config_path)
            if not p.is_absolute():
                p = PROJECT_ROOT / p
            if p.exists():
                with p.open("r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    cfg._apply(raw)

        cfg._apply_env(env)
        return cfg

    def _apply(self, raw: Dict[str, Any]) -> None:
        for key in ("secret_key", "database", "log_level", "currency_symbol"):
            if isinstance(raw.get(key), str) and raw[key]:
                setattr(self, key, raw[key])
        if raw.get("token_max_age") is not None:
            self.token_max_age = int(raw["token_max_age"])
        if isinstance(raw.get("assistant"), dict):
            a = raw["assistant"]
            for key in ("api_key", "base_url", "primary_model", "fallback_model", "referer"):
                if key in a:
                    setattr(self.assistant, key, a[key])
            if a.get("timeout") is not None:
                self.assistant.timeout = float(a["timeout"])
        if isinstance(raw.get("default_categories"), list):
            self.default_categories = [
                CategoryTemplate(
                    name=str(c["name"]),
                    description=str(c.get("description") or ""),
                    percentage=float(c["percentage"]),
                    color=str(c.get("color") or ""),
                )
                for c in raw["default_categories"]
                if "name" in c and "percentage" in c
            ]

    def _apply_env(self, env: Dict[str, str]) -> None:
        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name) or None

        self.secret_key = get("SECRET_KEY") or self.secret_key
        self.database = get("DATABASE") or self.database
        self.log_level = get("LOG_LEVEL") or self.log_level
        self.currency_symbol = get("CURRENCY") or self.currency_symbol
        if get("TOKEN_MAX_AGE"):
            self.token_max_age = int(get("TOKEN_MAX_AGE"))
        # The assistant key keeps the provider's conventional variable name.
        self.assistant.api_key = env.get("OPENROUTER_API_KEY") or get("ASSISTANT_API_KEY") or self.assistant.api_key
        self.assistant.base_url = get("ASSISTANT_BASE_URL") or self.assistant.base_url
        self.assistant.primary_model = get("ASSISTANT_MODEL") or self.assistant.primary_model

    def flask_settings(self) -> Dict[str, Any]:
        """Settings copied into ``app.config`` by :func:`budget_pay.webapp.create_app`."""
        database = self.database
        if database != ":memory:" and not database.startswith("sqlite:"):
            database = f"sqlite:///{Path(database).resolve()}"
        elif database == ":memory:":
            database = "sqlite://"
        return {
            "SECRET_KEY": self.secret_key,
            "SQLALCHEMY_DATABASE_URI": database,
            "LOG_LEVEL": self.log_level,
            "CURRENCY_SYMBOL": self.currency_symbol,
            "TOKEN_MAX_AGE": self.token_max_age,
            "ASSISTANT": self.assistant,
            "DEFAULT_CATEGORIES": self.default_categories,
        }
