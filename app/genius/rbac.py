from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.genius.models import User

# Every permission the dashboard checks, with its display name (seeded by scripts/init_db.py).
PERMISSIONS: dict[str, str] = {
    "admin.view": "Admin: view shell",
    "clients.view": "Clients: view",
    "clients.create": "Clients: create",
    "clients.edit": "Clients: edit",
    "clients.delete": "Clients: delete",
    "journeys.edit": "Journeys: edit page content",
    "outcomes.record": "Outcomes: record and edit",
    "analytics.view": "Analytics: view",
}

# Seeded roles: key -> (display name, permission keys)
ROLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "admin": ("Administrator", tuple(PERMISSIONS)),
    "editor": (
        "Journey editor",
        ("clients.view", "clients.create", "clients.edit", "journeys.edit", "outcomes.record", "analytics.view"),
    ),
    "viewer": ("Read-only", ("clients.view", "analytics.view")),
}


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> login, then come back.
            if not user or not user.is_active:
                nxt = request.full_path or request.path
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
