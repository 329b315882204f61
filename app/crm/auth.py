"""
HTTP Basic authentication against two static accounts.

Accounts come from configuration (API_USER_* / API_ADMIN_*); passwords are
kept only as Werkzeug hashes in ``app.extensions["static_users"]``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from flask import Flask, current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

HEALTH_PATHS = ("/health", "/healthz")
CORRELATION_ID_HEADER = "X-Correlation-ID"


@dataclass(frozen=True)
class ApiUser:
    username: str
    roles: frozenset[str]


@dataclass(frozen=True)
class StaticAccount:
    user: ApiUser
    password_hash: str


# Unknown usernames are checked against this so every failed login pays for one hash.
_UNKNOWN_USER_HASH = generate_password_hash("unknown-user")


def init_static_users(app: Flask) -> None:
    from app.crm.rbac import ROLE_ADMIN, ROLE_USER

    accounts = [
        (app.config["API_USER_USERNAME"], app.config["API_USER_PASSWORD"], frozenset({ROLE_USER})),
        (app.config["API_ADMIN_USERNAME"], app.config["API_ADMIN_PASSWORD"], frozenset({ROLE_USER, ROLE_ADMIN})),
    ]
    users: dict[str, StaticAccount] = {}
    for username, password, roles in accounts:
        if username in users:
            raise RuntimeError(f"Duplicate API account username: {username!r}")
        users[username] = StaticAccount(
            user=ApiUser(username=username, roles=roles),
            password_hash=generate_password_hash(password),
        )
    app.extensions["static_users"] = users


def authenticate(username: str | None, password: str | None) -> ApiUser | None:
    if not username or password is None:
        return None
    account: StaticAccount | None = current_app.extensions["static_users"].get(username)
    if account is None:
        check_password_hash(_UNKNOWN_USER_HASH, password)
        return None
    if not check_password_hash(account.password_hash, password):
        return None
    return account.user


def assign_request_id() -> None:
    """Take the caller's correlation id or mint one (for log correlation)."""
    rid = (request.headers.get(CORRELATION_ID_HEADER) or "").strip()
    g.request_id = rid or str(uuid.uuid4())


def load_current_user() -> None:
    """
    Loads g.current_user from the Basic Authorization header.
    Missing or wrong credentials leave it as None; rbac decides 401 vs 403.
    """
    if not getattr(g, "request_id", None):
        assign_request_id()
    g.current_user = None
    if request.path.startswith(HEALTH_PATHS):
        return

    auth = request.authorization
    if auth is None or (auth.type or "").lower() != "basic":
        return

    user = authenticate(auth.username, auth.password)
    if user is None:
        current_app.logger.warning("Failed Basic authentication for username=%s", auth.username)
        return
    g.current_user = user
