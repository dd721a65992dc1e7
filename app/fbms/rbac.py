from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

ROLES = ("admin", "member")


def user_has_role(user, role: str) -> bool:
    if not user:
        return False
    # Admins can do everything members can.
    return user.role == role or user.role == "admin"


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if not getattr(g, "current_user", None):
            return _login_redirect()
        return fn(*args, **kwargs)

    return wrapped


def require_role(role: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = getattr(g, "current_user", None)
            # Unauthenticated → redirect to login; authenticated but wrong role → 403.
            if not user:
                return _login_redirect()
            if not user_has_role(user, role):
                g.missing_role = role
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
