from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.fbms.forms import Field, form_values, humanize, initial_values, parse_form, with_choices
from app.fbms.utils import add_months

FIELDS = [
    Field("full_name", required=True),
    Field("date_of_birth", kind="date"),
    Field("family_size", kind="int"),
    Field("rent_amount", kind="decimal", required=True),
    Field("status", kind="select", choices=("pending", "paid")),
    Field("is_active", kind="bool"),
    Field("tags", kind="list"),
]


def test_parse_valid_form():
    values, errors = parse_form(
        FIELDS,
        {
            "full_name": "  Ravi Kumar ",
            "date_of_birth": "1990-04-01",
            "family_size": "4",
            "rent_amount": "18,000.50",
            "status": "paid",
            "is_active": "on",
            "tags": "original, notarized\nscanned",
        },
    )
    assert errors == {}
    assert values == {
        "full_name": "Ravi Kumar",
        "date_of_birth": date(1990, 4, 1),
        "family_size": 4,
        "rent_amount": Decimal("18000.50"),
        "status": "paid",
        "is_active": True,
        "tags": ["original", "notarized", "scanned"],
    }


def test_parse_errors():
    values, errors = parse_form(
        FIELDS,
        {"date_of_birth": "01/04/1990", "family_size": "four", "rent_amount": "abc", "status": "late"},
    )
    assert errors == {
        "full_name": "Full Name is required.",
        "date_of_birth": "Date Of Birth must be a date (YYYY-MM-DD).",
        "family_size": "Family Size must be a whole number.",
        "rent_amount": "Rent Amount must be a number.",
        "status": "Invalid status. Must be one of: pending, paid",
    }
    assert values["full_name"] is None
    assert values["is_active"] is False
    assert values["tags"] is None


def test_unknown_kind():
    with pytest.raises(ValueError):
        Field("x", kind="colour")


def test_options_and_runtime_choices():
    f = Field("category", kind="select", choices=("pan", "property_deed", ("other", "Something else")))
    assert f.options == [("pan", "Pan"), ("property_deed", "Property Deed"), ("other", "Something else")]
    fields = with_choices(FIELDS, status=[("t1", "Ravi")])
    assert fields[4].options == [("t1", "Ravi")]
    assert FIELDS[4].options == [("pending", "Pending"), ("paid", "Paid")]


@pytest.mark.parametrize("raw,expected", [("family_member_id", "Family Member Id"), ("PAN", "PAN"), ("", "")])
def test_humanize(raw, expected):
    assert humanize(raw) == expected


def test_form_values_from_record():
    record = SimpleNamespace(
        full_name="Ravi",
        date_of_birth=date(1990, 4, 1),
        family_size=None,
        rent_amount=Decimal("18000.00"),
        status="paid",
        is_active=True,
        tags=["a", "b"],
    )
    assert form_values(FIELDS, record) == {
        "full_name": "Ravi",
        "date_of_birth": "1990-04-01",
        "family_size": "",
        "rent_amount": "18000",
        "status": "paid",
        "is_active": True,
        "tags": "a, b",
    }


def test_initial_values_use_defaults_and_overrides():
    fields = [Field("status", kind="select", choices=("pending", "paid"), default="pending"), Field("tenant_id")]
    assert initial_values(fields) == {"status": "pending", "tenant_id": ""}
    assert initial_values(fields, tenant_id="t1", other=None) == {"status": "pending", "tenant_id": "t1"}


@pytest.mark.parametrize(
    "start,months,expected",
    [
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2023, 1, 31), 1, date(2023, 2, 28)),
        (date(2024, 11, 15), 3, date(2025, 2, 15)),
        (date(2024, 3, 31), -1, date(2024, 2, 29)),
    ],
)
def test_add_months_clamps_day(start, months, expected):
    assert add_months(start, months) == expected
