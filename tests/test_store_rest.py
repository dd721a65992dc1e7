import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from app.fbms.store import Filter, RestStore, StoreError, StoreValidationError, postgrest_params


def _store(handler):
    return RestStore("https://example.supabase.co/", "anon-key", transport=httpx.MockTransport(handler))


def test_postgrest_params():
    params = postgrest_params(
        filters=[
            Filter("status", "eq", "pending"),
            Filter("due_date", "lt", date(2024, 6, 1)),
            Filter("is_active", "is", True),
            Filter("building_id", "isnot", None),
            Filter("category", "in", ["pan", "passport"]),
        ],
        any_of=[Filter("title", "ilike", "%deed, 2%"), Filter("issuer", "ilike", "%deed, 2%")],
        order_by="due_date",
        descending=True,
        limit=5,
    )
    assert params == [
        ("select", "*"),
        ("status", "eq.pending"),
        ("due_date", "lt.2024-06-01"),
        ("is_active", "is.true"),
        ("building_id", "not.is.null"),
        ("category", "in.(pan,passport)"),
        ("or", '(title.ilike."*deed, 2*",issuer.ilike."*deed, 2*")'),
        ("order", "due_date.desc"),
        ("limit", "5"),
    ]


def test_unknown_filter_op():
    with pytest.raises(ValueError):
        Filter("x", "like", "y")


def test_select_sends_auth_headers_and_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["apikey"] = request.headers["apikey"]
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json=[{"id": "1", "full_name": "Ravi"}])

    rows = _store(handler).select("family_members", filters=[Filter("relationship", "eq", "self")], limit=1)
    assert rows == [{"id": "1", "full_name": "Ravi"}]
    assert seen["path"] == "/rest/v1/family_members"
    assert seen["params"]["relationship"] == "eq.self"
    assert seen["params"]["limit"] == "1"
    assert seen["apikey"] == "anon-key"
    assert seen["auth"] == "Bearer anon-key"


def test_insert_serializes_values_and_returns_row():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.headers["Prefer"] == "return=representation"
        body = json.loads(request.content)
        assert body == {"amount": "18000.50", "due_date": "2024-05-05"}
        return httpx.Response(201, json=[{"id": "p1", **body}])

    row = _store(handler).insert("rent_payments", {"amount": Decimal("18000.50"), "due_date": date(2024, 5, 5)})
    assert row["id"] == "p1"


def test_update_missing_row_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.missing"
        return httpx.Response(200, json=[])

    assert _store(handler).update("tenants", "missing", {"phone": "1"}) is None


def test_validation_errors_are_classified():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409, json={"code": "23505", "message": "duplicate key value violates unique constraint", "details": "policy_number"}
        )

    with pytest.raises(StoreValidationError) as exc:
        _store(handler).insert("insurance_policies", {"policy_number": "X"})
    assert exc.value.status_code == 409
    assert exc.value.code == "23505"
    assert "duplicate key" in str(exc.value)


def test_server_and_network_errors_are_remote():
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(StoreError) as exc:
        _store(server_error).select("tenants")
    assert not isinstance(exc.value, StoreValidationError)

    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StoreError, match="Network error"):
        _store(offline).select("tenants")


def test_rpc_posts_params():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/rpc/exec_sql"
        assert json.loads(request.content) == {"sql_query": "select 1"}
        return httpx.Response(204)

    assert _store(handler).rpc("exec_sql", {"sql_query": "select 1"}) is None
