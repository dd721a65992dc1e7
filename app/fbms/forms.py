"""
Declarative form fields shared by every management screen.

A screen lists its ``Field`` specs once; the same list drives the rendered
form (``templates/crud/form.html``), parsing of the submitted values and
re-filling the form from a stored record. Validation is deliberately thin:
required-field presence, type coercion (dates, numbers) and membership for
fixed choice lists. Everything else is left to the data store.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Sequence

from app.fbms.utils import parse_bool, parse_date, parse_decimal, parse_int, parse_list

KINDS = ("text", "textarea", "email", "tel", "date", "int", "decimal", "bool", "select", "list", "hidden")


def humanize(value: str) -> str:
    return value.replace("_", " ").strip().title() if value and not value.isupper() else value


@dataclass(frozen=True)
class Field:
    name: str
    label: str = ""
    kind: str = "text"
    required: bool = False
    choices: Sequence[Any] = ()
    default: Any = None
    help: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in KINDS:
            raise ValueError(f"Unknown field kind {self.kind!r}")
        if not self.label:
            object.__setattr__(self, "label", humanize(self.name))

    @property
    def options(self) -> list[tuple[str, str]]:
        """(value, label) pairs; plain strings are labelled by humanizing them."""
        out: list[tuple[str, str]] = []
        for c in self.choices:
            if isinstance(c, (tuple, list)):
                out.append((str(c[0]), str(c[1])))
            else:
                out.append((str(c), humanize(str(c))))
        return out


def with_choices(fields: Sequence[Field], **choices: Sequence[Any]) -> list[Field]:
    """Copy of ``fields`` with runtime choice lists (e.g. tenants loaded from the store)."""
    return [replace(f, choices=choices[f.name]) if f.name in choices else f for f in fields]


def _coerce(field: Field, raw: str) -> Any:
    if field.kind == "date":
        return parse_date(raw)
    if field.kind == "int":
        return parse_int(raw)
    if field.kind == "decimal":
        return parse_decimal(raw)
    if field.kind == "list":
        return parse_list(raw)
    return raw or None


def parse_form(fields: Sequence[Field], form: Mapping[str, str]) -> tuple[dict[str, Any], dict[str, str]]:
    """
    Parse submitted form data.

    Returns ``(values, errors)``; ``errors`` maps field name -> message and is
    empty when the submission is valid. Empty inputs become ``None``.
    """
    values: dict[str, Any] = {}
    errors: dict[str, str] = {}
    for f in fields:
        if f.kind == "bool":
            values[f.name] = parse_bool(form.get(f.name))
            continue
        raw = (form.get(f.name) or "").strip()
        if not raw:
            values[f.name] = None
            if f.required:
                errors[f.name] = f"{f.label} is required."
            continue
        try:
            value = _coerce(f, raw)
        except ValueError:
            values[f.name] = None
            if f.kind == "date":
                errors[f.name] = f"{f.label} must be a date (YYYY-MM-DD)."
            elif f.kind == "int":
                errors[f.name] = f"{f.label} must be a whole number."
            else:
                errors[f.name] = f"{f.label} must be a number."
            continue
        if f.kind == "select" and f.choices and str(value) not in {v for v, _ in f.options}:
            errors[f.name] = f"Invalid {f.label.lower()}. Must be one of: {', '.join(v for v, _ in f.options)}"
        values[f.name] = value
    return values, errors


def _display(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value == value.to_integral() else str(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def form_values(fields: Sequence[Field], source: Any) -> dict[str, Any]:
    """Form-ready values from a record, a dict of parsed values or the raw request form."""
    out: dict[str, Any] = {}
    for f in fields:
        if isinstance(source, Mapping):
            value = source.get(f.name)
        else:
            value = getattr(source, f.name, None)
        if f.kind == "bool":
            out[f.name] = parse_bool(value) if isinstance(value, str) else bool(value)
        else:
            out[f.name] = _display(value)
    return out


def initial_values(fields: Sequence[Field], **overrides: Any) -> dict[str, Any]:
    values = {f.name: f.default for f in fields}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return form_values(fields, values)
