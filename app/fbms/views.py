"""
Page composition shared by the management screens.

``ViewState`` is the tri-state (loading / error / loaded) every page renders
from. ``CrudScreen`` + ``register_crud`` wire the standard list, new, detail,
edit and delete pages for one ``TableService`` onto a blueprint; feature
modules pass hooks for their extra context and add bespoke routes next to it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.fbms.crud import ServiceError, TableService
from app.fbms.forms import Field, form_values, humanize, initial_values, parse_form, with_choices
from app.fbms.rbac import require_login, require_role
from app.fbms.store import Filter

T = TypeVar("T")

LOADING = "loading"
ERROR = "error"
LOADED = "loaded"


@dataclass
class ViewState(Generic[T]):
    status: str = LOADING
    data: T | None = None
    error: str | None = None

    @classmethod
    def load(cls, fetch: Callable[[], T]) -> "ViewState[T]":
        state: ViewState[T] = cls()
        try:
            state.data = fetch()
            state.status = LOADED
        except ServiceError as e:
            current_app.logger.warning("View load failed (request_id=%s): %s", getattr(g, "request_id", None), e)
            state.status = ERROR
            state.error = str(e)
        return state

    @property
    def loading(self) -> bool:
        return self.status == LOADING

    @property
    def failed(self) -> bool:
        return self.status == ERROR

    @property
    def loaded(self) -> bool:
        return self.status == LOADED

    @property
    def http_status(self) -> int:
        return 502 if self.failed else 200


@dataclass(frozen=True)
class Column:
    name: str
    label: str = ""
    kind: str = "text"  # text, date, money, bool, enum, link
    link: bool = False

    @property
    def title(self) -> str:
        return self.label or humanize(self.name)


def format_cell(value: Any, kind: str = "text") -> str:
    """Jinja filter: render a record value for tables and detail pages."""
    if value is None or value == "" or value == []:
        return "—"
    if kind == "bool" or isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if kind == "money":
        try:
            return f"₹{Decimal(str(value)):,.2f}"
        except ArithmeticError:
            return str(value)
    if kind == "enum":
        return humanize(str(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value == value.to_integral() else str(value)
    return str(value)


def _safe_next(raw: str | None) -> str | None:
    nxt = (raw or "").strip()
    # Only allow local paths to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


@dataclass
class CrudScreen:
    name: str
    title: str
    url: str
    service: TableService
    fields: Sequence[Field]
    columns: Sequence[Column]
    detail_columns: Sequence[Column] = ()
    # Hooks
    choices: Callable[[], dict[str, Sequence[Any]]] | None = None
    list_filters: Callable[[Mapping[str, str]], list[Filter]] | None = None
    # Replaces list_filters when the list needs more than column filters (e.g. text search).
    list_query: Callable[[Mapping[str, str]], list[Any]] | None = None
    list_extra: Callable[[], dict[str, Any]] | None = None
    detail_extra: Callable[[Any], dict[str, Any]] | None = None
    list_template: str = "crud/list.html"
    detail_template: str = "crud/detail.html"
    # The module registers its own new_get/new_post endpoints (e.g. file uploads).
    custom_new: bool = False
    blueprint: str = field(default="", init=False)

    @property
    def singular(self) -> str:
        return self.service.singular

    def endpoint(self, action: str) -> str:
        return f"{self.blueprint}.{self.name}_{action}"

    def form_fields(self) -> list[Field]:
        if self.choices is None:
            return list(self.fields)
        try:
            choices = self.choices()
        except ServiceError as e:
            current_app.logger.warning("Could not load choices for %s form: %s", self.singular, e)
            flash(str(e), "warning")
            return list(self.fields)
        return with_choices(self.fields, **choices)

    def shown_detail_columns(self) -> Sequence[Column]:
        if self.detail_columns:
            return self.detail_columns
        return [Column(f.name, f.label, kind=_column_kind(f)) for f in self.fields if f.kind != "hidden"]


def _column_kind(f: Field) -> str:
    if f.kind == "bool":
        return "bool"
    if f.kind == "select":
        return "enum"
    return "text"


def render_form(screen: CrudScreen, *, values: dict[str, Any], errors: dict[str, str] | None = None,
                record: Any = None, fields: Sequence[Field] | None = None, status: int = 200):
    return (
        render_template(
            "crud/form.html",
            screen=screen,
            fields=fields if fields is not None else screen.form_fields(),
            values=values,
            errors=errors or {},
            record=record,
            next=_safe_next(request.values.get("next")) or "",
        ),
        status,
    )


def save_form(screen: CrudScreen, save: Callable[[dict[str, Any]], Any], *, record: Any = None):
    """
    Parse the submitted form and hand the values to ``save``.

    Invalid input re-renders the form (400). A store rejection re-renders with
    the store's message (400 for validation, 502 for remote failures). On
    success flash and redirect to ``next`` or the refreshed list.
    """
    fields = screen.form_fields()
    values, errors = parse_form(fields, request.form)
    if errors:
        for msg in errors.values():
            flash(msg, "danger")
        return render_form(screen, values=form_values(fields, request.form), errors=errors, record=record,
                           fields=fields, status=400)
    try:
        saved = save(values)
    except ServiceError as e:
        current_app.logger.warning("Save %s failed (request_id=%s): %s", screen.singular, getattr(g, "request_id", None), e)
        flash(str(e), "danger")
        return render_form(screen, values=form_values(fields, request.form), record=record, fields=fields,
                           status=400 if e.is_validation else 502)
    if saved is None:
        abort(404)
    verb = "updated" if record is not None else "created"
    flash(f"{humanize(screen.singular).capitalize()} {verb}.", "success")
    nxt = _safe_next(request.form.get("next"))
    if nxt:
        return redirect(nxt)
    return redirect(url_for(screen.endpoint("list")))


def load_record(screen: CrudScreen, record_id: str) -> ViewState:
    state = ViewState.load(lambda: screen.service.get(record_id))
    if state.loaded and state.data is None:
        abort(404)
    return state


def register_crud(bp: Blueprint, screen: CrudScreen) -> CrudScreen:
    """Add list/new/detail/edit/delete routes for ``screen`` to ``bp``."""
    screen.blueprint = bp.name
    name = screen.name

    @require_login
    def list_view():
        if screen.list_query is not None:
            state = ViewState.load(lambda: screen.list_query(request.args))
        else:
            filters = screen.list_filters(request.args) if screen.list_filters else []
            state = ViewState.load(lambda: screen.service.list(*filters))
        extra = screen.list_extra() if screen.list_extra else {}
        return (
            render_template(screen.list_template, screen=screen, state=state, args=request.args, **extra),
            state.http_status,
        )

    @require_login
    def new_get():
        fields = screen.form_fields()
        return render_form(screen, values=initial_values(fields, **request.args.to_dict()), fields=fields)

    @require_login
    def new_post():
        return save_form(screen, screen.service.create)

    @require_login
    def detail(record_id: str):
        state = load_record(screen, record_id)
        extra = screen.detail_extra(state.data) if (screen.detail_extra and state.loaded) else {}
        return (
            render_template(screen.detail_template, screen=screen, state=state, record=state.data, **extra),
            state.http_status,
        )

    @require_login
    def edit_get(record_id: str):
        state = load_record(screen, record_id)
        if state.failed:
            flash(state.error or "Failed to load record.", "danger")
            return redirect(url_for(screen.endpoint("list")))
        fields = screen.form_fields()
        return render_form(screen, values=form_values(fields, state.data), record=state.data, fields=fields)

    @require_login
    def edit_post(record_id: str):
        state = load_record(screen, record_id)
        if state.failed:
            flash(state.error or "Failed to load record.", "danger")
            return redirect(url_for(screen.endpoint("list")))
        return save_form(screen, lambda values: screen.service.update(record_id, values), record=state.data)

    @require_role("admin")
    def delete_get(record_id: str):
        state = load_record(screen, record_id)
        return (
            render_template("crud/confirm_delete.html", screen=screen, state=state, record=state.data,
                            next=_safe_next(request.args.get("next")) or ""),
            state.http_status,
        )

    @require_role("admin")
    def delete_post(record_id: str):
        try:
            screen.service.delete(record_id)
        except ServiceError as e:
            current_app.logger.warning("Delete %s %s failed: %s", screen.singular, record_id, e)
            flash(str(e), "danger")
            return redirect(url_for(screen.endpoint("detail"), record_id=record_id))
        flash(f"{humanize(screen.singular).capitalize()} deleted.", "success")
        return redirect(_safe_next(request.form.get("next")) or url_for(screen.endpoint("list")))

    bp.add_url_rule(screen.url, f"{name}_list", list_view, methods=["GET"])
    if not screen.custom_new:
        bp.add_url_rule(f"{screen.url}/new", f"{name}_new_get", new_get, methods=["GET"])
        bp.add_url_rule(f"{screen.url}/new", f"{name}_new_post", new_post, methods=["POST"])
    bp.add_url_rule(f"{screen.url}/<record_id>", f"{name}_detail", detail, methods=["GET"])
    bp.add_url_rule(f"{screen.url}/<record_id>/edit", f"{name}_edit_get", edit_get, methods=["GET"])
    bp.add_url_rule(f"{screen.url}/<record_id>/edit", f"{name}_edit_post", edit_post, methods=["POST"])
    bp.add_url_rule(f"{screen.url}/<record_id>/delete", f"{name}_delete_get", delete_get, methods=["GET"])
    bp.add_url_rule(f"{screen.url}/<record_id>/delete", f"{name}_delete_post", delete_post, methods=["POST"])
    return screen
