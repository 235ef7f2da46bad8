"""Authentication: sessions for the web pages, signed bearer tokens for the API.

Access, email-verification and password-reset tokens are all signed with
the application's secret key through :mod:`itsdangerous`, each under its
own salt so one kind can never be replayed as another. Reset tokens embed
a fingerprint of the current password hash, which makes them single use.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

from flask import current_app, g, redirect, request, session, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import AuthenticationError
from .models import User, db

logger = logging.getLogger(__name__)

ACCESS_SALT = "budget-pay-access"
VERIFY_SALT = "budget-pay-verify"
RESET_SALT = "budget-pay-reset"

VERIFY_MAX_AGE = 24 * 60 * 60
RESET_MAX_AGE = 60 * 60


def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=salt)


def _fingerprint(user: User) -> str:
    return user.password_hash[-16:]


def issue_access_token(user: User) -> str:
    return _serializer(ACCESS_SALT).dumps({"uid": user.id})


def issue_verify_token(user: User) -> str:
    return _serializer(VERIFY_SALT).dumps({"uid": user.id, "email": user.email})


def issue_reset_token(user: User) -> str:
    return _serializer(RESET_SALT).dumps({"uid": user.id, "pw": _fingerprint(user)})


def _load(token: str, salt: str, max_age: int) -> dict:
    try:
        payload = _serializer(salt).loads(token or "", max_age=max_age)
    except SignatureExpired as exc:
        raise AuthenticationError("This link has expired.") from exc
    except BadSignature as exc:
        raise AuthenticationError("Invalid or missing token.") from exc
    if not isinstance(payload, dict) or "uid" not in payload:
        raise AuthenticationError("Invalid or missing token.")
    return payload


def _active_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid or missing token.")
    return user


def user_from_access_token(token: str) -> User:
    payload = _load(token, ACCESS_SALT, current_app.config["TOKEN_MAX_AGE"])
    return _active_user(payload["uid"])


def user_from_verify_token(token: str) -> User:
    payload = _load(token, VERIFY_SALT, VERIFY_MAX_AGE)
    user = _active_user(payload["uid"])
    if payload.get("email") != user.email:
        raise AuthenticationError("Invalid or missing token.")
    return user


def user_from_reset_token(token: str) -> User:
    payload = _load(token, RESET_SALT, RESET_MAX_AGE)
    user = _active_user(payload["uid"])
    if payload.get("pw") != _fingerprint(user):
        raise AuthenticationError("This reset link has already been used.")
    return user


def send_verification(user: User) -> str:
    token = issue_verify_token(user)
    # No mail transport is configured; the link goes to the log.
    logger.info("Verification link for %s: %s", user.email, url_for("verify", token=token, _external=True))
    return token


def send_password_reset(user: User) -> str:
    token = issue_reset_token(user)
    logger.info("Password reset link for %s: %s", user.email, url_for("reset_password", token=token, _external=True))
    return token


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


def load_logged_in_user() -> None:
    g.user = None
    token = _bearer_token()
    if token:
        try:
            g.user = user_from_access_token(token)
        except AuthenticationError:
            g.user = None
        return
    user_id = session.get("user_id")
    if user_id is None:
        return
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        session.clear()
        return
    g.user = user


def login_user(user: User) -> None:
    session.clear()
    session["user_id"] = user.id
    logger.info("User %s logged in", user.id)


def login_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        if g.user is None:
            return redirect(url_for("login", next=request.path))
        return view(**kwargs)

    return wrapped_view


def api_login_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        if g.user is None:
            raise AuthenticationError()
        return view(**kwargs)

    return wrapped_view
