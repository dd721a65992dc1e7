import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.fbms.modules.properties.service import apartments, buildings, flats
from app.fbms.modules.rent.models import RentPayment
from app.fbms.modules.rent.report import render_rent_report
from app.fbms.modules.rent.service import (
    RentFilters,
    RentReport,
    RentReportStats,
    build_receipt,
    build_rent_report,
    filtered_payments,
    generate_monthly_payments,
    generate_receipt_number,
    payments,
    rent_analytics,
    rent_filters_from_args,
    rent_period,
    report_statistics,
)
from app.fbms.modules.tenants.service import tenants


def test_receipt_number_format():
    now = datetime(2024, 5, 5, 10, 30, 15, 123000, tzinfo=timezone.utc)
    number = generate_receipt_number(now)
    assert re.fullmatch(r"RCP-20240505-\d{6}", number)
    assert number.endswith(str(int(now.timestamp() * 1000))[-6:])


@pytest.mark.parametrize(
    "due, start",
    [
        (date(2024, 5, 5), date(2024, 4, 6)),
        (date(2024, 3, 31), date(2024, 3, 1)),
        (date(2024, 1, 10), date(2023, 12, 11)),
    ],
)
def test_rent_period(due, start):
    assert rent_period(due) == (start, due)


def _payment(**kw):
    return RentPayment(
        tenant_id=kw.pop("tenant_id", "t1"),
        property_type="flat",
        property_id=kw.pop("property_id", "p1"),
        due_date=kw.pop("due_date", date(2024, 5, 5)),
        **kw,
    )


def test_rent_analytics():
    today = date(2024, 6, 1)
    rows = [
        _payment(amount=Decimal("10000"), status="paid", payment_method="upi"),
        _payment(amount=Decimal("15000"), actual_amount_paid=Decimal("14500"), status="paid",
                 tenant_id="t2", property_id="p2"),
        _payment(amount=Decimal("5000"), status="overdue", tenant_id="t3", property_id="p3"),
        _payment(amount=Decimal("10000"), status="pending", due_date=today + timedelta(days=3)),
    ]
    a = rent_analytics(rows, today=today)
    assert a.total_expected == Decimal("40000")
    assert a.total_collected == Decimal("24500")
    assert a.total_outstanding == Decimal("15500")
    assert a.collection_rate == Decimal("61.25")
    assert a.total_properties == 3
    assert a.total_tenants == 3
    assert a.average_rent_per_property == Decimal("13333.33")
    assert a.overdue_count == 1
    assert a.upcoming_count == 1
    methods = {m.method: m for m in a.methods}
    assert methods["upi"].count == 1
    assert methods["upi"].percentage == Decimal("40.82")
    assert methods["unspecified"].total_amount == Decimal("14500")
    assert methods["unspecified"].percentage == Decimal("59.18")


def test_rent_analytics_empty_and_date_range():
    assert rent_analytics([], today=date(2024, 6, 1)).collection_rate == Decimal(0)
    rows = [
        _payment(amount=Decimal("100"), status="paid", due_date=date(2024, 4, 5)),
        _payment(amount=Decimal("300"), status="pending", due_date=date(2024, 5, 5)),
    ]
    a = rent_analytics(rows, today=date(2024, 6, 1), start=date(2024, 5, 1), end=date(2024, 5, 31))
    assert a.total_expected == Decimal("300")
    assert a.total_collected == Decimal(0)


# ---------- Through the app ----------


def _tenant(**overrides):
    values = {
        "first_name": "Anita",
        "last_name": "Sharma",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 12, 31),
        "rent_amount": Decimal("18000"),
        "security_deposit": Decimal("50000"),
        "rent_due_date": 5,
        "move_in_date": date(2024, 1, 1),
        "payment_method": "upi",
        "is_active": True,
    }
    values.update(overrides)
    return tenants.create(values)


def _flat():
    return flats.create(
        {"name": "Lake View 3B", "door_number": "3B", "address": "Lake Road", "floor": 3, "total_floors": 8,
         "bedroom_count": 3, "bathroom_count": 2, "area": 1450, "rent_amount": 25000, "security_deposit": 75000}
    )


def test_payment_takes_property_from_tenant(app, admin_client, csrf):
    with app.app_context():
        flat = _flat()
        t = _tenant(property_type="flat", property_id=flat.id)

    r = admin_client.post("/rent/new", data=csrf(tenant_id=t.id, amount="25000", due_date="2024-05-05", status="pending"))
    assert r.status_code == 302

    with app.app_context():
        p = payments.list()[0]
    assert p.property_type == "flat"
    assert p.property_id == flat.id
    assert p.unit_id is None
    assert p.receipt_number.startswith("RCP-")

    r = admin_client.get("/rent")
    assert r.status_code == 200
    assert b"Anita Sharma" in r.data


def test_apartment_rent_is_booked_against_building(app):
    with app.app_context():
        b = buildings.create(
            {"name": "Sunrise Towers", "building_code": "A", "address": "12 MG Road", "total_floors": 5,
             "total_apartments": 10}
        )
        apt = apartments.create(
            {"building_id": b.id, "door_number": "501", "floor": 5, "bedroom_count": 2, "bathroom_count": 2,
             "area": 1100, "rent_amount": 18000, "security_deposit": 50000}
        )
        t = _tenant(property_type="apartment", property_id=apt.id)
        p = payments.create({"tenant_id": t.id, "amount": Decimal("18000"), "due_date": date(2024, 5, 5)})
    assert (p.property_type, p.property_id, p.unit_id) == ("building", b.id, apt.id)


def test_payment_validation(app, admin_client, csrf):
    with app.app_context():
        unlinked = _tenant()
        flat = _flat()
        linked = _tenant(first_name="Vikram", property_type="flat", property_id=flat.id)

    r = admin_client.post("/rent/new", data=csrf(tenant_id=unlinked.id, amount="1000", due_date="2024-05-05"))
    assert r.status_code == 400
    assert b"not linked to a property" in r.data

    r = admin_client.post("/rent/new", data=csrf(tenant_id=linked.id, amount="0", due_date="2024-05-05"))
    assert r.status_code == 400
    assert b"must be positive" in r.data

    with app.app_context():
        assert payments.list() == []


def test_paid_without_date_gets_today(app):
    with app.app_context():
        flat = _flat()
        t = _tenant(property_type="flat", property_id=flat.id)
        p = payments.create({"tenant_id": t.id, "amount": Decimal("100"), "due_date": date(2024, 5, 5), "status": "paid"})
    assert p.paid_date == date.today()


def test_mark_overdue(app, admin_client, csrf):
    with app.app_context():
        flat = _flat()
        t = _tenant(property_type="flat", property_id=flat.id)
        past = payments.create({"tenant_id": t.id, "amount": Decimal("100"), "due_date": date.today() - timedelta(days=2)})
        future = payments.create({"tenant_id": t.id, "amount": Decimal("100"), "due_date": date.today() + timedelta(days=2)})

    r = admin_client.post("/rent/mark-overdue", data=csrf(), follow_redirects=True)
    assert r.status_code == 200
    assert b"1 payment(s) marked overdue." in r.data
    with app.app_context():
        assert payments.get(past.id).status == "overdue"
        assert payments.get(future.id).status == "pending"


def test_generate_monthly_payments_is_idempotent(app, admin_client, csrf):
    with app.app_context():
        flat = _flat()
        _tenant(property_type="flat", property_id=flat.id, rent_due_date=31)
        _tenant(first_name="Gone", is_active=False, property_type="flat", property_id=flat.id)
        _tenant(first_name="Unlinked")

    r = admin_client.post("/rent/generate", data=csrf(year="2024", month="2"), follow_redirects=True)
    assert b"Generated 1 payment(s) for 2024-02." in r.data
    r = admin_client.post("/rent/generate", data=csrf(year="2024", month="2"), follow_redirects=True)
    assert b"Generated 0 payment(s) for 2024-02." in r.data

    with app.app_context():
        rows = payments.list()
        assert len(rows) == 1
        assert rows[0].due_date == date(2024, 2, 29)
        assert rows[0].amount == Decimal("18000")
        assert generate_monthly_payments(2024, 2) == []


@pytest.mark.parametrize("year, month", [("2024", "13"), ("2024", "0"), ("0", "2"), ("10000", "2"), ("twenty", "2")])
def test_generate_rejects_bad_month(app, admin_client, csrf, year, month):
    r = admin_client.post("/rent/generate", data=csrf(year=year, month=month), follow_redirects=True)
    assert r.status_code == 200
    assert b"Invalid month." in r.data
    with app.app_context():
        assert payments.list() == []


def test_receipt(app, admin_client):
    with app.app_context():
        flat = _flat()
        t = _tenant(property_type="flat", property_id=flat.id)
        paid = payments.create(
            {"tenant_id": t.id, "amount": Decimal("25000"), "due_date": date(2024, 5, 5), "status": "paid",
             "paid_date": date(2024, 5, 3), "late_fee": Decimal("0"), "discount": Decimal("0")}
        )
        pending = payments.create({"tenant_id": t.id, "amount": Decimal("25000"), "due_date": date(2024, 6, 5)})

        receipt = build_receipt(paid.id)
        assert receipt.tenant_name == "Anita Sharma"
        assert receipt.property_name == "Lake View 3B"
        assert (receipt.period_start, receipt.period_end) == (date(2024, 4, 6), date(2024, 5, 5))
        assert receipt.total_amount == Decimal("25000")

    r = admin_client.get(f"/rent/{paid.id}/receipt")
    assert r.status_code == 200
    assert paid.receipt_number.encode() in r.data
    assert b"Lake View 3B" in r.data

    r = admin_client.get(f"/rent/{pending.id}/receipt", follow_redirects=True)
    assert b"Cannot generate receipt for unpaid payment." in r.data

    assert admin_client.get("/rent/9a4c3f50-1d2e-4f5a-8b6c-7d8e9f0a1b2c/receipt").status_code == 404


def test_rent_list_filters(app, admin_client):
    with app.app_context():
        flat = _flat()
        t = _tenant(property_type="flat", property_id=flat.id)
        payments.create({"tenant_id": t.id, "amount": Decimal("111"), "due_date": date(2024, 5, 5), "status": "paid"})
        payments.create({"tenant_id": t.id, "amount": Decimal("222"), "due_date": date(2024, 6, 5)})

    r = admin_client.get("/rent?status=paid")
    assert r.status_code == 200
    assert b"2024-05-05" in r.data
    assert b"2024-06-05" not in r.data


# ---------- Filters and report export ----------


@pytest.mark.parametrize(
    "args, date_range, start, end",
    [
        ({}, "all", None, None),
        ({"date_range": "this_month"}, "this_month", date(2024, 3, 1), date(2024, 3, 31)),
        ({"date_range": "last_month"}, "last_month", date(2024, 2, 1), date(2024, 2, 29)),
        ({"date_range": "this_year"}, "this_year", date(2024, 1, 1), date(2024, 12, 31)),
        ({"date_range": "custom", "start": "2024-05-01", "end": "2024-05-31"}, "custom", date(2024, 5, 1),
         date(2024, 5, 31)),
        ({"start": "2024-05-01"}, "custom", date(2024, 5, 1), None),
        ({"date_range": "custom", "start": "05/01/2024"}, "custom", None, None),
        ({"date_range": "fortnight"}, "all", None, None),
    ],
)
def test_rent_filters_from_args(args, date_range, start, end):
    criteria = rent_filters_from_args(args, today=date(2024, 3, 15))
    assert (criteria.date_range, criteria.start, criteria.end) == (date_range, start, end)


def test_rent_filters_ignore_unknown_values():
    criteria = rent_filters_from_args({"status": "late", "q": "  Anita ", "flat_id": ""})
    assert criteria.status is None
    assert criteria.search == "Anita"
    assert criteria.flat_id is None
    assert criteria.summary() == ['Search: "Anita"']


def _report_data(app):
    with app.app_context():
        b = buildings.create(
            {"name": "Sunrise Towers", "building_code": "A", "address": "12 MG Road", "total_floors": 5,
             "total_apartments": 10}
        )
        apt = apartments.create(
            {"building_id": b.id, "door_number": "501", "floor": 5, "bedroom_count": 2, "bathroom_count": 2,
             "area": 1100, "rent_amount": 18000, "security_deposit": 50000}
        )
        flat = _flat()
        anita = _tenant(property_type="flat", property_id=flat.id)
        vikram = _tenant(first_name="Vikram", last_name="Rao", property_type="apartment", property_id=apt.id)
        payments.create(
            {"tenant_id": anita.id, "amount": Decimal("25000"), "due_date": date(2024, 5, 5), "status": "paid",
             "paid_date": date(2024, 5, 3), "payment_method": "bank_transfer", "notes": "paid early"}
        )
        payments.create({"tenant_id": anita.id, "amount": Decimal("25000"), "due_date": date(2024, 6, 5)})
        payments.create(
            {"tenant_id": vikram.id, "amount": Decimal("18000"), "due_date": date(2024, 5, 5), "status": "overdue"}
        )
    return b, flat


def test_filtered_payments(app):
    building, flat = _report_data(app)
    with app.app_context():
        names = {t.id: t.first_name for t in tenants.list()}

        def who(**criteria):
            return sorted((names[p.tenant_id], p.due_date.isoformat()) for p in filtered_payments(RentFilters(**criteria)))

        assert len(who()) == 3
        assert who(flat_id=flat.id) == [("Anita", "2024-05-05"), ("Anita", "2024-06-05")]
        assert who(building_id=building.id) == [("Vikram", "2024-05-05")]
        assert who(building_id=building.id, flat_id=flat.id) == []
        assert who(start=date(2024, 5, 1), end=date(2024, 5, 31)) == [("Anita", "2024-05-05"), ("Vikram", "2024-05-05")]
        assert who(status="overdue") == [("Vikram", "2024-05-05")]
        assert who(search="vikram") == [("Vikram", "2024-05-05")]
        assert who(search="lake view") == [("Anita", "2024-05-05"), ("Anita", "2024-06-05")]
        assert who(search="sunrise") == [("Vikram", "2024-05-05")]
        assert who(search="early") == [("Anita", "2024-05-05")]
        assert who(search="nobody") == []


def test_build_rent_report(app):
    _report_data(app)
    with app.app_context():
        report = build_rent_report(RentFilters(date_range="custom", start=date(2024, 5, 1), end=date(2024, 5, 31)))
    assert report.filters == ["Date range (Custom): 2024-05-01 to 2024-05-31"]
    assert report.stats == RentReportStats(
        total_payments=2, paid_payments=1, pending_payments=0, overdue_payments=1, total_collected=Decimal("25000")
    )
    anita, vikram = sorted(report.rows, key=lambda row: row[1])
    assert anita[0].startswith("RCP-")
    assert anita[1:] == ("Anita Sharma", "Lake View 3B", "Rs. 25,000.00", "Paid", "2024-05-05", "2024-05-03",
                         "Bank Transfer")
    assert vikram[1:5] == ("Vikram Rao", "Sunrise Towers - 501", "Rs. 18,000.00", "Overdue")
    assert vikram[6:] == ("Not Paid", "N/A")


def test_render_rent_report_handles_many_rows_and_non_latin_text():
    row = ("RCP-20240505-000001", "Priyā ₹ Tenant with a very long name indeed", "Lake View 3B", "Rs. 25,000.00",
           "Paid", "2024-05-05", "2024-05-03", "Upi")
    report = RentReport(
        filters=[],
        stats=report_statistics([]),
        rows=[row] * 80,
        generated_at=datetime(2024, 5, 5, 9, 30, tzinfo=timezone.utc),
    )
    assert render_rent_report(report).startswith(b"%PDF")
    empty = RentReport(filters=["Status: Paid"], stats=report_statistics([]), rows=[], generated_at=report.generated_at)
    assert render_rent_report(empty).startswith(b"%PDF")


def test_rent_export_pdf(app, admin_client):
    _report_data(app)
    r = admin_client.get("/rent/export?date_range=custom&start=2024-05-01&end=2024-05-31&q=anita")
    assert r.status_code == 200
    assert r.mimetype == "application/pdf"
    assert r.data.startswith(b"%PDF")
    disposition = r.headers["Content-Disposition"]
    assert disposition.startswith("attachment")
    assert "rent-payments-report-" in disposition


def test_rent_list_property_and_search_filters(app, admin_client):
    building, flat = _report_data(app)
    r = admin_client.get(f"/rent?flat_id={flat.id}")
    assert r.status_code == 200
    assert b"2024-06-05" in r.data

    r = admin_client.get(f"/rent?building_id={building.id}")
    assert r.status_code == 200
    assert b"2024-05-05" in r.data
    assert b"2024-06-05" not in r.data

    r = admin_client.get("/rent?q=sunrise&date_range=this_year")
    assert r.status_code == 200
    assert b"Export PDF" in r.data
