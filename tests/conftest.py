from __future__ import annotations

import pytest

from budget_pay.config import AssistantConfig
from budget_pay.webapp import create_app

from .helpers import login_headers, register


@pytest.fixture
def app(tmp_path):
    app = create_app(overrides={
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'budget_pay.db'}",
        "ASSISTANT": AssistantConfig(),
        "CURRENCY_SYMBOL": "₹",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    assert register(client).status_code == 201
    return login_headers(client)
