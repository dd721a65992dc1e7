from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, request, url_for

from app.fbms.crud import ServiceError
from app.fbms.forms import Field, parse_form
from app.fbms.modules.documents.service import documents_for_policy
from app.fbms.modules.family.service import member_choices
from app.fbms.modules.insurance.models import POLICY_STATUSES, POLICY_TYPES
from app.fbms.modules.insurance.service import expired_policies, expiring_policies, policies, premiums, premiums_for_policy
from app.fbms.modules.rent.models import RENT_PAYMENT_METHODS
from app.fbms.rbac import require_login, require_role
from app.fbms.store import Filter
from app.fbms.views import Column, CrudScreen, ViewState, register_crud

bp = Blueprint("insurance", __name__)

POLICY_FIELDS = [
    Field("policy_number", required=True),
    Field("type", "Policy type", kind="select", required=True, choices=POLICY_TYPES),
    Field("provider", required=True),
    Field("family_member_id", "Family member", kind="select"),
    Field("premium_amount", kind="decimal", required=True),
    Field("coverage_amount", kind="decimal", required=True),
    Field("start_date", kind="date", required=True),
    Field("end_date", kind="date", required=True),
    Field("renewal_date", kind="date", required=True),
    Field("status", kind="select", choices=POLICY_STATUSES, default="active"),
]

PREMIUM_FIELDS = [
    Field("amount", kind="decimal", required=True),
    Field("due_date", kind="date", required=True),
    Field("paid_date", kind="date", required=True),
    Field("payment_method", kind="select", choices=RENT_PAYMENT_METHODS),
]


def _list_filters(args) -> list[Filter]:
    filters = []
    policy_type = (args.get("type") or "").strip()
    if policy_type in POLICY_TYPES:
        filters.append(Filter("type", "eq", policy_type))
    member_id = (args.get("family_member_id") or "").strip()
    if member_id:
        filters.append(Filter("family_member_id", "eq", member_id))
    return filters


def _list_extra() -> dict:
    members = ViewState.load(member_choices)
    return {
        "expiring": ViewState.load(expiring_policies),
        "expired": ViewState.load(expired_policies),
        "policy_types": POLICY_TYPES,
        "member_options": members.data or [],
        "member_names": dict(members.data or []),
    }


def _policy_detail(policy) -> dict:
    return {
        "premiums": ViewState.load(lambda: premiums_for_policy(policy.id)),
        "documents": ViewState.load(lambda: documents_for_policy(policy.id)),
        "premium_fields": PREMIUM_FIELDS,
    }


screen = register_crud(
    bp,
    CrudScreen(
        name="policies",
        title="Insurance Policies",
        url="/insurance",
        service=policies,
        fields=POLICY_FIELDS,
        columns=[
            Column("policy_number", "Policy No", link=True),
            Column("type"),
            Column("provider"),
            Column("premium_amount", "Premium", kind="money"),
            Column("coverage_amount", "Coverage", kind="money"),
            Column("renewal_date", "Renews"),
            Column("status", kind="enum"),
        ],
        choices=lambda: {"family_member_id": member_choices()},
        list_filters=_list_filters,
        list_extra=_list_extra,
        detail_extra=_policy_detail,
        list_template="insurance/list.html",
        detail_template="insurance/detail.html",
    ),
)


# ---------- Premium payments ----------
@bp.post("/insurance/<record_id>/premiums")
@require_login
def policy_premium_add(record_id: str):
    values, errors = parse_form(PREMIUM_FIELDS, request.form)
    if errors:
        for msg in errors.values():
            flash(msg, "danger")
        return redirect(url_for("insurance.policies_detail", record_id=record_id))
    try:
        premiums.create({**values, "policy_id": record_id})
    except ServiceError as e:
        current_app.logger.warning("Add premium for policy %s failed: %s", record_id, e)
        flash(str(e), "danger")
    else:
        flash("Premium payment recorded.", "success")
    return redirect(url_for("insurance.policies_detail", record_id=record_id))


@bp.post("/insurance/<record_id>/premiums/<premium_id>/delete")
@require_role("admin")
def policy_premium_delete(record_id: str, premium_id: str):
    try:
        premiums.delete(premium_id)
    except ServiceError as e:
        current_app.logger.warning("Delete premium %s failed: %s", premium_id, e)
        flash(str(e), "danger")
    else:
        flash("Premium payment deleted.", "success")
    return redirect(url_for("insurance.policies_detail", record_id=record_id))
