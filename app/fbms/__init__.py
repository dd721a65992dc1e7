import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, render_template, request, session

from app.fbms.auth import bp as auth_bp, init_accounts, load_current_user
from app.fbms.config import load_config
from app.fbms.crud import ServiceError
from app.fbms.db import init_store
from app.fbms.modules.dashboard.admin import bp as dashboard_bp
from app.fbms.modules.documents.admin import bp as documents_bp
from app.fbms.modules.family.admin import bp as family_bp
from app.fbms.modules.insurance.admin import bp as insurance_bp
from app.fbms.modules.properties.admin import bp as properties_bp
from app.fbms.modules.rent.admin import bp as rent_bp
from app.fbms.modules.tenants.admin import bp as tenants_bp
from app.fbms.routes import bp as routes_bp
from app.fbms.security import CSRF_EXEMPT_PREFIXES, ensure_csrf_token, validate_csrf
from app.fbms.views import format_cell


def _check_production(app: Flask) -> None:
    """Fail fast with clear logs when a production deploy is misconfigured."""
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if app.config.get("DATA_BACKEND") == "sql":
        if str(app.config.get("DATABASE_URL") or "").startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    else:
        if not app.config.get("SUPABASE_URL") or not app.config.get("SUPABASE_KEY"):
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY (or SUPABASE_SERVICE_ROLE_KEY) are required in production.")


def create_app(config: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    if config:
        app.config.update(config)
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(minutes=30)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_user() -> dict:
        user = getattr(g, "current_user", None)
        return {"current_user": user, "is_admin": bool(user and user.is_admin)}

    app.add_template_filter(format_cell, "cell")

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "—"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    _check_production(app)

    init_store(app)
    init_accounts(app)

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(family_bp)
    app.register_blueprint(properties_bp)
    app.register_blueprint(tenants_bp)
    app.register_blueprint(rent_bp)
    app.register_blueprint(insurance_bp)
    app.register_blueprint(documents_bp)

    app.before_request(load_current_user)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(CSRF_EXEMPT_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    @app.errorhandler(ServiceError)
    def _err_service(e: ServiceError):
        app.logger.warning("Unhandled service error (request_id=%s): %s", getattr(g, "request_id", None), e)
        if e.is_validation:
            return render_template("errors/400.html", message=str(e)), 400
        return render_template("errors/502.html", message=str(e)), 502

    @app.errorhandler(500)
    def _err_500(e):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(403)
    def _err_403(e):
        missing = getattr(g, "missing_role", None)
        if missing:
            app.logger.warning("Forbidden: missing_role=%s request_id=%s", missing, getattr(g, "request_id", None))
        return render_template("errors/403.html", missing_role=missing), 403

    @app.errorhandler(404)
    def _err_404(e):
        return render_template("errors/404.html"), 404

    @app.errorhandler(413)
    def _err_413(e):
        from flask import flash, redirect, url_for

        limit_mb = int(app.config.get("MAX_DOCUMENT_BYTES") or 0) // (1024 * 1024)
        flash(f"File too large. Maximum size is {limit_mb}MB.", "danger")
        referrer = request.referrer
        if referrer and referrer.startswith(request.host_url):
            return redirect(referrer), 302
        return redirect(url_for("documents.documents_list")), 302

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
