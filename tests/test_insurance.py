from datetime import date, timedelta
from decimal import Decimal

from app.fbms.modules.family.service import members
from app.fbms.modules.insurance.service import (
    expired_policies,
    expiring_policies,
    policies,
    policies_by_type,
    premiums_for_policy,
)


def _policy_form(**overrides):
    data = {
        "policy_number": "LIC-1001",
        "type": "LIC",
        "provider": "LIC of India",
        "premium_amount": "12000",
        "coverage_amount": "1000000",
        "start_date": "2024-01-01",
        "end_date": "2044-01-01",
        "renewal_date": "2025-01-01",
        "status": "active",
    }
    data.update(overrides)
    return data


def _policy(**overrides):
    values = {
        "policy_number": "H-1",
        "type": "health",
        "provider": "Star Health",
        "premium_amount": Decimal("8000"),
        "coverage_amount": Decimal("500000"),
        "start_date": date(2024, 1, 1),
        "end_date": date(2025, 1, 1),
        "renewal_date": date(2025, 1, 1),
        "status": "active",
    }
    values.update(overrides)
    return policies.create(values)


def test_policy_create_then_list(app, admin_client, csrf):
    with app.app_context():
        m = members.create({"full_name": "Ravi Kumar", "nickname": "Ravi", "relationship": "self"})

    r = admin_client.post("/insurance/new", data=csrf(**_policy_form(family_member_id=m.id)))
    assert r.status_code == 302

    r = admin_client.get("/insurance")
    assert r.status_code == 200
    assert b"LIC-1001" in r.data
    assert b"Ravi Kumar" in r.data

    r = admin_client.get(f"/family/{m.id}")
    assert b"LIC-1001" in r.data


def test_duplicate_policy_number_is_a_validation_error(admin_client, csrf):
    admin_client.post("/insurance/new", data=csrf(**_policy_form()))
    r = admin_client.post("/insurance/new", data=csrf(**_policy_form()))
    assert r.status_code == 400
    assert b"Failed to create insurance policy" in r.data


def test_policy_type_must_be_known(admin_client, csrf):
    r = admin_client.post("/insurance/new", data=csrf(**_policy_form(type="boat")))
    assert r.status_code == 400
    assert b"Invalid policy type" in r.data


def test_filter_by_type(app, admin_client):
    with app.app_context():
        _policy()
        _policy(policy_number="C-1", type="car", provider="Acko")
        assert [p.policy_number for p in policies_by_type("car")] == ["C-1"]

    r = admin_client.get("/insurance?type=car")
    assert b"C-1" in r.data
    assert b"Star Health" not in r.data


def test_expiring_and_expired(app):
    today = date(2024, 6, 1)
    with app.app_context():
        _policy(policy_number="SOON", renewal_date=today + timedelta(days=10))
        _policy(policy_number="LATER", renewal_date=today + timedelta(days=90))
        _policy(policy_number="LAPSED", renewal_date=today + timedelta(days=5), status="lapsed")
        _policy(policy_number="PAST", renewal_date=today - timedelta(days=1))

        assert [p.policy_number for p in expiring_policies(today=today)] == ["SOON"]
        assert [p.policy_number for p in expired_policies(today=today)] == ["PAST"]


def test_premium_payments(app, admin_client, member_client, csrf):
    with app.app_context():
        p = _policy()

    r = admin_client.post(
        f"/insurance/{p.id}/premiums",
        data=csrf(amount="8000", due_date="2024-01-01", paid_date="2023-12-28", payment_method="upi"),
    )
    assert r.status_code == 302
    with app.app_context():
        rows = premiums_for_policy(p.id)
    assert len(rows) == 1
    assert rows[0].amount == Decimal("8000")

    r = admin_client.get(f"/insurance/{p.id}")
    assert r.status_code == 200
    assert b"2023-12-28" in r.data

    r = admin_client.post(f"/insurance/{p.id}/premiums", data=csrf(amount="8000"), follow_redirects=True)
    assert b"Due Date is required." in r.data

    assert member_client.post(f"/insurance/{p.id}/premiums/{rows[0].id}/delete", data=csrf()).status_code == 403
    admin_client.post(f"/insurance/{p.id}/premiums/{rows[0].id}/delete", data=csrf())
    with app.app_context():
        assert premiums_for_policy(p.id) == []


def test_delete_policy(app, admin_client, csrf):
    with app.app_context():
        p = _policy()
    r = admin_client.post(f"/insurance/{p.id}/delete", data=csrf())
    assert r.status_code == 302
    assert b"H-1" not in admin_client.get("/insurance").data
