from __future__ import annotations

from datetime import date

from flask import Blueprint, render_template

from app.fbms.modules.dashboard.service import dashboard_summary
from app.fbms.modules.documents.service import expiring_documents
from app.fbms.modules.insurance.service import expiring_policies
from app.fbms.modules.rent.service import list_payments
from app.fbms.rbac import require_login
from app.fbms.views import ViewState

bp = Blueprint("dashboard", __name__)


@bp.get("/dashboard")
@require_login
def index():
    summary = ViewState.load(dashboard_summary)
    overdue = ViewState.load(lambda: list_payments(status="overdue"))
    policies = ViewState.load(expiring_policies)
    documents = ViewState.load(expiring_documents)
    return (
        render_template(
            "dashboard/index.html",
            summary=summary,
            overdue=overdue,
            policies=policies,
            documents=documents,
            today=date.today(),
        ),
        summary.http_status,
    )
