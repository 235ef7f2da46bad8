from __future__ import annotations

import datetime as dt
from types import SimpleNamespace

PASSWORD = "s3cret-pass"


def register(client, email: str = "asha@example.com", password: str = PASSWORD, **extra):
    payload = {"email": email, "password": password, "full_name": "Asha Rao"}
    payload.update(extra)
    return client.post("/api/v1/auth/register", json=payload)


def login_headers(client, email: str = "asha@example.com", password: str = PASSWORD) -> dict:
    resp = client.post("/api/v1/auth/jwt/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return {"Authorization": f"Bearer {resp.get_json()['access_token']}"}


def category(id, name="Food", default=10.0, custom=None, description=""):
    return SimpleNamespace(id=id, name=name, default_percentage=default, custom_percentage=custom,
                           description=description, color=None)


def txn(amount, when, category_id=None, description="Purchase"):
    if isinstance(when, dt.date) and not isinstance(when, dt.datetime):
        when = dt.datetime.combine(when, dt.time(12, 0))
    return SimpleNamespace(amount=amount, transaction_date=when, category_id=category_id,
                           description=description)
