from __future__ import annotations

import io
from datetime import MAXYEAR, MINYEAR, date

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, send_file, url_for

from app.fbms.crud import ServiceError
from app.fbms.forms import Field
from app.fbms.modules.properties.models import PROPERTY_TYPES
from app.fbms.modules.properties.service import building_choices, buildings, flats, lands, property_choices
from app.fbms.modules.rent.models import RENT_PAYMENT_METHODS, RENT_STATUSES
from app.fbms.modules.rent.report import render_rent_report
from app.fbms.modules.rent.service import (
    DATE_RANGES,
    build_receipt,
    build_rent_report,
    filtered_payments,
    generate_monthly_payments,
    mark_overdue,
    payments,
    rent_analytics,
    rent_filters_from_args,
)
from app.fbms.modules.tenants.service import tenant_choices
from app.fbms.rbac import require_login
from app.fbms.views import Column, CrudScreen, ViewState, register_crud

bp = Blueprint("rent", __name__)

PAYMENT_FIELDS = [
    Field("tenant_id", "Tenant", kind="select", required=True),
    Field("property_type", kind="select", choices=PROPERTY_TYPES, help="Leave blank to use the tenant's property."),
    Field("property_id", "Property", kind="select"),
    Field("unit_id", "Apartment", kind="select", help="For buildings only."),
    Field("amount", kind="decimal", required=True),
    Field("due_date", kind="date", required=True),
    Field("status", kind="select", choices=RENT_STATUSES, default="pending"),
    Field("paid_date", kind="date"),
    Field("payment_method", kind="select", choices=RENT_PAYMENT_METHODS),
    Field("transaction_id", "Transaction ID"),
    Field("actual_amount_paid", kind="decimal"),
    Field("late_fee", kind="decimal"),
    Field("discount", kind="decimal"),
    Field("receipt_number", help="Assigned automatically when left blank."),
    Field("notes", kind="textarea"),
]


def _payment_choices() -> dict:
    properties = [(b.id, f"Building: {b.name}") for b in buildings.list()]
    properties += [(f.id, f"Flat: {f.name}") for f in flats.list()]
    properties += [(land.id, f"Land: {land.name}") for land in lands.list()]
    return {
        "tenant_id": tenant_choices(),
        "property_id": properties,
        "unit_id": property_choices("apartment"),
    }


def _list_query(args) -> list:
    return filtered_payments(rent_filters_from_args(args))


def _list_extra() -> dict:
    criteria = rent_filters_from_args(request.args)
    analytics = ViewState.load(lambda: rent_analytics(payments.list(), start=criteria.start, end=criteria.end))
    tenant_options = ViewState.load(tenant_choices)
    return {
        "criteria": criteria,
        "date_ranges": DATE_RANGES,
        "building_options": ViewState.load(building_choices).data or [],
        "flat_options": ViewState.load(lambda: property_choices("flat")).data or [],
        "analytics": analytics,
        "tenant_options": tenant_options.data or [],
        "tenant_names": dict(tenant_options.data or []),
        "statuses": RENT_STATUSES,
        "today": date.today(),
    }


screen = register_crud(
    bp,
    CrudScreen(
        name="payments",
        title="Rent Payments",
        url="/rent",
        service=payments,
        fields=PAYMENT_FIELDS,
        columns=[
            Column("due_date", link=True),
            Column("tenant_id", "Tenant"),
            Column("property_type", "Property", kind="enum"),
            Column("amount", kind="money"),
            Column("status", kind="enum"),
            Column("paid_date"),
            Column("payment_method", "Method", kind="enum"),
        ],
        choices=_payment_choices,
        list_query=_list_query,
        list_extra=_list_extra,
        list_template="rent/list.html",
    ),
)


@bp.post("/rent/mark-overdue")
@require_login
def rent_mark_overdue():
    try:
        updated = mark_overdue()
    except ServiceError as e:
        current_app.logger.warning("Mark overdue failed: %s", e)
        flash(str(e), "danger")
    else:
        flash(f"{len(updated)} payment(s) marked overdue.", "success")
    return redirect(url_for("rent.payments_list"))


@bp.post("/rent/generate")
@require_login
def rent_generate():
    today = date.today()
    try:
        year = int(request.form.get("year") or today.year)
        month = int(request.form.get("month") or today.month)
        if not 1 <= month <= 12 or not MINYEAR <= year <= MAXYEAR:
            raise ValueError(year, month)
    except ValueError:
        flash("Invalid month.", "danger")
        return redirect(url_for("rent.payments_list"))
    try:
        created = generate_monthly_payments(year, month)
    except ServiceError as e:
        current_app.logger.warning("Generate rent payments failed: %s", e)
        flash(str(e), "danger")
    else:
        flash(f"Generated {len(created)} payment(s) for {year:04d}-{month:02d}.", "success")
    return redirect(url_for("rent.payments_list"))


@bp.get("/rent/<record_id>/receipt")
@require_login
def rent_receipt(record_id: str):
    try:
        receipt = build_receipt(record_id)
    except ServiceError as e:
        if not e.is_validation:
            raise
        flash(str(e), "danger")
        return redirect(url_for("rent.payments_detail", record_id=record_id))
    if receipt is None:
        abort(404)
    return render_template("rent/receipt.html", receipt=receipt)


@bp.get("/rent/export")
@require_login
def rent_export():
    criteria = rent_filters_from_args(request.args)
    try:
        report = build_rent_report(criteria)
    except ServiceError as e:
        current_app.logger.warning("Rent report export failed: %s", e)
        flash(str(e), "danger")
        return redirect(url_for("rent.payments_list", **request.args.to_dict()))
    pdf = render_rent_report(report)
    current_app.logger.info("Exported rent report with %s payment(s)", len(report.rows))
    return send_file(
        io.BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"rent-payments-report-{report.generated_at:%Y-%m-%dT%H-%M-%S}.pdf",
    )
