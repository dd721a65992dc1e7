from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import Blueprint, Flask, current_app, flash, g, redirect, render_template, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from app.fbms.rbac import ROLES

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


@dataclass(frozen=True)
class Account:
    email: str
    role: str
    password_hash: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def parse_accounts(raw: str) -> dict[str, Account]:
    """
    Parse ``APP_USERS``: comma-separated ``email:role:password_hash`` entries.

    The hash itself contains colons (``scrypt:32768:8:1$...``), so only the
    first two separators split.
    """
    accounts: dict[str, Account] = {}
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":", 2)
        if len(parts) != 3 or not all(p.strip() for p in parts):
            raise ValueError(f"Invalid APP_USERS entry (expected email:role:password_hash): {entry.split(':', 1)[0]!r}")
        email, role, pw_hash = (p.strip() for p in parts)
        if role not in ROLES:
            raise ValueError(f"Invalid role {role!r} for {email}. Must be one of: {', '.join(ROLES)}")
        accounts[email.lower()] = Account(email=email.lower(), role=role, password_hash=pw_hash)
    return accounts


def init_accounts(app: Flask) -> dict[str, Account]:
    accounts = parse_accounts(app.config.get("APP_USERS") or "")
    admin_email = (app.config.get("ADMIN_EMAIL") or "").strip().lower()
    admin_password = app.config.get("ADMIN_PASSWORD") or ""
    if admin_email and admin_password:
        accounts[admin_email] = Account(admin_email, "admin", generate_password_hash(admin_password))
    if not accounts:
        app.logger.warning("No accounts configured (set APP_USERS or ADMIN_EMAIL/ADMIN_PASSWORD); nobody can log in.")
    app.extensions["fbms_accounts"] = accounts
    return accounts


def _check_rate_limit(ip: str) -> bool:
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.now(timezone.utc))


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/api/health", "/healthz")):
        g.current_user = None
        return

    email = session.get("user_email")
    if not email:
        g.current_user = None
        return

    account = current_app.extensions.get("fbms_accounts", {}).get(email)
    if account is None:
        # Account removed from configuration since login.
        session.pop("user_email", None)
    g.current_user = account


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    account = current_app.extensions.get("fbms_accounts", {}).get(email)
    if not account or not check_password_hash(account.password_hash, password):
        current_app.logger.warning("Login failed (email=%s ip=%s)", email, ip)
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))

    session["user_email"] = account.email
    _login_attempts[ip].clear()
    current_app.logger.info("Login ok (email=%s)", account.email)
    # Optional "next" redirect (only allow local paths to avoid open redirects).
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("dashboard.index"))


@bp.get("/logout")
def logout():
    session.pop("user_email", None)
    return redirect(url_for("auth.login_get"))
