"""Utility helpers for SQLite persistence."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Type, TypeVar

from flask import Flask
from sqlalchemy import event
from sqlalchemy.engine import Engine

from .errors import NotFoundError
from .models import db

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent
_DEFAULT_DB_PATH = PROJECT_ROOT / "budget_pay.db"

ModelT = TypeVar("ModelT", bound=db.Model)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_database_path(app: Flask) -> Optional[Path]:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not uri.startswith("sqlite:///"):
        return None
    return Path(uri[len("sqlite:///"):])


def init_db(app: Flask) -> None:
    app.config.setdefault("SQLALCHEMY_DATABASE_URI", f"sqlite:///{_DEFAULT_DB_PATH}")
    path = get_database_path(app)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
    db.init_app(app)
    with app.app_context():
        db.create_all()


def get_owned(model: Type[ModelT], object_id: int, user_id: int) -> ModelT:
    """Fetch a row by id, raising :class:`NotFoundError` unless it belongs to the user."""
    obj = db.session.get(model, object_id)
    if obj is None or obj.user_id != user_id:
        raise NotFoundError(model.__name__, object_id)
    return obj
