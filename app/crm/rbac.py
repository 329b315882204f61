from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.crm.auth import ApiUser

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

PERM_CUSTOMERS_VIEW = "customers.view"
PERM_CUSTOMERS_CREATE = "customers.create"
PERM_CUSTOMERS_EDIT = "customers.edit"
PERM_CUSTOMERS_DELETE = "customers.delete"

# Static role model: USER reads, ADMIN does everything.
ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_USER: frozenset({PERM_CUSTOMERS_VIEW}),
    ROLE_ADMIN: frozenset(
        {
            PERM_CUSTOMERS_VIEW,
            PERM_CUSTOMERS_CREATE,
            PERM_CUSTOMERS_EDIT,
            PERM_CUSTOMERS_DELETE,
        }
    ),
}


def role_has_permission(role: str, permission_key: str) -> bool:
    return permission_key in ROLE_PERMISSIONS.get(role, frozenset())


def user_has_permission(user: ApiUser | None, permission_key: str) -> bool:
    if not user:
        return False
    return any(role_has_permission(role, permission_key) for role in user.roles)


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: ApiUser | None = getattr(g, "current_user", None)
            # Unauthenticated -> 401 (client should retry with credentials)
            if not user:
                abort(401)
            # Authenticated but unauthorized -> 403
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
