import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, g, jsonify, redirect, url_for

from app.fbms.crud import ServiceError
from app.fbms.modules.family.service import members

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    if getattr(g, "current_user", None):
        return redirect(url_for("dashboard.index"))
    return redirect(url_for("auth.login_get"))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@bp.get("/api/health")
def api_health():
    """
    Health check with a sample read against the data store. Returns JSON.
    200 when the store answers, 500 otherwise.
    """
    start = time.monotonic()
    try:
        members.select("fetch family members", limit=1)
    except ServiceError as e:
        current_app.logger.error("Health check failed: %s", e)
        return (
            jsonify(
                {
                    "status": "unhealthy",
                    "timestamp": _now_iso(),
                    "database": "disconnected",
                    "error": str(e),
                    "services": {"dataStore": "error", "apiService": "error"},
                }
            ),
            500,
        )
    elapsed_ms = int((time.monotonic() - start) * 1000)
    return jsonify(
        {
            "status": "healthy",
            "timestamp": _now_iso(),
            "database": "connected",
            "responseTime": f"{elapsed_ms}ms",
            "services": {"dataStore": "operational", "apiService": "operational"},
        }
    )


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for container health checks. No store access.
    """
    return "ok", 200
