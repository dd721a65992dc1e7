from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, send_file, url_for

from app.fbms.crud import ServiceError
from app.fbms.forms import Field, form_values, initial_values, parse_form
from app.fbms.modules.documents.models import DOCUMENT_CATEGORIES
from app.fbms.modules.documents.service import (
    document_stats,
    documents,
    expired_documents,
    expiring_documents,
    open_document,
    search_documents,
    upload_document,
)
from app.fbms.modules.family.service import member_choices
from app.fbms.modules.insurance.service import policy_choices
from app.fbms.modules.properties.models import PROPERTY_TYPES
from app.fbms.modules.properties.service import building_choices
from app.fbms.modules.tenants.service import linked_property_choices
from app.fbms.rbac import require_login
from app.fbms.views import Column, CrudScreen, ViewState, register_crud

bp = Blueprint("documents", __name__)

DOCUMENT_FIELDS = [
    Field("title", required=True),
    Field("category", kind="select", required=True, choices=DOCUMENT_CATEGORIES),
    Field("family_member_id", "Family member", kind="select"),
    Field("property_type", kind="select", choices=PROPERTY_TYPES),
    Field("property_id", "Property", kind="select"),
    Field("insurance_policy_id", "Insurance policy", kind="select"),
    Field("document_number"),
    Field("issuer"),
    Field("issued_date", kind="date"),
    Field("expiry_date", kind="date"),
    Field("tags", kind="list", help="Comma separated."),
]


def _document_choices() -> dict:
    properties = [(pid, f"Building: {label}") for pid, label in building_choices()]
    return {
        "family_member_id": member_choices(),
        "property_id": properties + linked_property_choices(),
        "insurance_policy_id": policy_choices(),
    }


def _search(args) -> list:
    category = (args.get("category") or "").strip()
    return search_documents(
        query=args.get("q"),
        category=category if category in DOCUMENT_CATEGORIES else None,
        family_member_id=(args.get("family_member_id") or "").strip() or None,
    )


def _list_extra() -> dict:
    members = ViewState.load(member_choices)
    return {
        "stats": ViewState.load(lambda: document_stats(documents.list())),
        "expiring": ViewState.load(expiring_documents),
        "expired": ViewState.load(expired_documents),
        "categories": DOCUMENT_CATEGORIES,
        "member_options": members.data or [],
        "member_names": dict(members.data or []),
    }


screen = CrudScreen(
    name="documents",
    title="Documents",
    url="/documents",
    service=documents,
    fields=DOCUMENT_FIELDS,
    columns=[
        Column("title", link=True),
        Column("category", kind="enum"),
        Column("file_name", "File"),
        Column("document_number", "Number"),
        Column("expiry_date", "Expires"),
    ],
    detail_columns=[
        Column("title"),
        Column("category", kind="enum"),
        Column("file_name", "File"),
        Column("file_size", "Size (bytes)"),
        Column("mime_type", "Type"),
        Column("document_number"),
        Column("issuer"),
        Column("issued_date"),
        Column("expiry_date"),
        Column("property_type", kind="enum"),
        Column("tags"),
        Column("created_at", "Uploaded"),
    ],
    choices=_document_choices,
    list_query=_search,
    list_extra=_list_extra,
    list_template="documents/list.html",
    detail_template="documents/detail.html",
    custom_new=True,
)


register_crud(bp, screen)


# ---------- Upload ----------
def _render_upload(values: dict, errors: dict | None = None, status: int = 200):
    return (
        render_template(
            "documents/upload.html",
            screen=screen,
            fields=screen.form_fields(),
            values=values,
            errors=errors or {},
            record=None,
            next="",
            multipart=True,
        ),
        status,
    )


@bp.get("/documents/new")
@require_login
def documents_new_get():
    return _render_upload(initial_values(DOCUMENT_FIELDS, **request.args.to_dict()))


@bp.post("/documents/new")
@require_login
def documents_new_post():
    fields = screen.form_fields()
    values, errors = parse_form(fields, request.form)
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        errors["file"] = "File is required."
    if errors:
        for msg in errors.values():
            flash(msg, "danger")
        return _render_upload(form_values(fields, request.form), errors, 400)

    data = upload.read()
    content_type = upload.mimetype or "application/octet-stream"
    try:
        doc = upload_document(values, data, upload.filename, content_type)
    except ServiceError as e:
        current_app.logger.warning("Upload of %s failed: %s", upload.filename, e)
        flash(str(e), "danger")
        return _render_upload(form_values(fields, request.form), status=400 if e.is_validation else 502)
    flash("Document uploaded.", "success")
    return redirect(url_for("documents.documents_detail", record_id=doc.id))


# ---------- Download ----------
@bp.get("/documents/<record_id>/download")
@require_login
def documents_download(record_id: str):
    doc = documents.get(record_id)
    if doc is None:
        abort(404)
    try:
        fh = open_document(doc)
    except ServiceError as e:
        current_app.logger.warning("Download of document %s failed: %s", record_id, e)
        flash(str(e), "danger")
        return redirect(url_for("documents.documents_detail", record_id=record_id))
    return send_file(
        fh,
        mimetype=doc.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=doc.file_name or "document.bin",
    )
