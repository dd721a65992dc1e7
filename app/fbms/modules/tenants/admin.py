from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, request, url_for

from app.fbms.crud import ServiceError
from app.fbms.forms import Field, parse_form
from app.fbms.modules.properties.service import property_label
from app.fbms.modules.rent.service import payments_for_tenant
from app.fbms.modules.tenants.models import MARITAL_STATUSES, PAYMENT_METHODS, TENANT_PROPERTY_TYPES
from app.fbms.modules.tenants.service import linked_property_choices, references, references_for_tenant, tenants
from app.fbms.rbac import require_login, require_role
from app.fbms.views import Column, CrudScreen, ViewState, register_crud

bp = Blueprint("tenants", __name__)

TENANT_FIELDS = [
    # Personal
    Field("first_name", required=True),
    Field("last_name", required=True),
    Field("date_of_birth", kind="date"),
    Field("occupation"),
    Field("employer"),
    Field("monthly_income", kind="decimal"),
    Field("marital_status", kind="select", choices=MARITAL_STATUSES),
    Field("family_size", kind="int", default=1),
    Field("nationality", default="Indian"),
    Field("religion"),
    # Contact
    Field("phone", kind="tel"),
    Field("email", kind="email"),
    Field("address", kind="textarea"),
    Field("emergency_contact_name"),
    Field("emergency_contact_relationship"),
    Field("emergency_contact_phone", kind="tel"),
    Field("emergency_contact_email", kind="email"),
    Field("emergency_contact_address", kind="textarea"),
    # Identification
    Field("aadhar_number", "Aadhar number"),
    Field("pan_number", "PAN number"),
    Field("driving_license"),
    Field("passport"),
    Field("voter_id_number", "Voter ID number"),
    # Agreement
    Field("agreement_number"),
    Field("start_date", kind="date", required=True),
    Field("end_date", kind="date", required=True),
    Field("rent_amount", kind="decimal", required=True),
    Field("security_deposit", kind="decimal", required=True),
    Field("maintenance_charges", kind="decimal"),
    Field("rent_due_date", "Rent due day (1-31)", kind="int", required=True, default=1),
    Field("payment_method", kind="select", choices=PAYMENT_METHODS, default="bank_transfer"),
    Field("late_fee_amount", kind="decimal"),
    Field("notice_period", "Notice period (days)", kind="int", default=30),
    Field("renewal_terms", kind="textarea"),
    Field("special_conditions", kind="list", help="Comma separated."),
    # Property
    Field("property_type", kind="select", choices=TENANT_PROPERTY_TYPES),
    Field("property_id", "Property", kind="select"),
    Field("move_in_date", kind="date", required=True),
    Field("move_out_date", kind="date"),
    Field("is_active", "Active", kind="bool", default=True),
]

REFERENCE_FIELDS = [
    Field("name", required=True),
    Field("relationship", required=True),
    Field("phone", kind="tel", required=True),
    Field("email", kind="email"),
    Field("address", kind="textarea"),
    Field("verified", kind="bool"),
]


def _tenant_detail(tenant) -> dict:
    return {
        "property": ViewState.load(lambda: property_label(tenant.property_type, tenant.property_id)),
        "references": ViewState.load(lambda: references_for_tenant(tenant.id)),
        "payments": ViewState.load(lambda: payments_for_tenant(tenant.id)),
        "reference_fields": REFERENCE_FIELDS,
    }


screen = register_crud(
    bp,
    CrudScreen(
        name="tenants",
        title="Tenants",
        url="/tenants",
        service=tenants,
        fields=TENANT_FIELDS,
        columns=[
            Column("full_name", "Name", link=True),
            Column("phone"),
            Column("property_type", "Property", kind="enum"),
            Column("rent_amount", "Rent", kind="money"),
            Column("end_date", "Lease ends"),
            Column("is_active", "Active", kind="bool"),
        ],
        choices=lambda: {"property_id": linked_property_choices()},
        detail_extra=_tenant_detail,
        detail_template="tenants/detail.html",
    ),
)


# ---------- References ----------
@bp.post("/tenants/<record_id>/references")
@require_login
def tenant_reference_add(record_id: str):
    values, errors = parse_form(REFERENCE_FIELDS, request.form)
    if errors:
        for msg in errors.values():
            flash(msg, "danger")
        return redirect(url_for("tenants.tenants_detail", record_id=record_id))
    try:
        references.create({**values, "tenant_id": record_id})
    except ServiceError as e:
        current_app.logger.warning("Add reference for tenant %s failed: %s", record_id, e)
        flash(str(e), "danger")
        return redirect(url_for("tenants.tenants_detail", record_id=record_id))
    flash("Reference added.", "success")
    return redirect(url_for("tenants.tenants_detail", record_id=record_id))


@bp.post("/tenants/<record_id>/references/<reference_id>/delete")
@require_role("admin")
def tenant_reference_delete(record_id: str, reference_id: str):
    try:
        references.delete(reference_id)
    except ServiceError as e:
        current_app.logger.warning("Delete reference %s failed: %s", reference_id, e)
        flash(str(e), "danger")
    else:
        flash("Reference deleted.", "success")
    return redirect(url_for("tenants.tenants_detail", record_id=record_id))
