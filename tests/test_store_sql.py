from datetime import date

import pytest

from app.fbms.crud import ServiceError
from app.fbms.db import get_store
from app.fbms.modules.family.service import members
from app.fbms.store import Filter, StoreValidationError


def test_filters_and_ordering(app):
    with app.app_context():
        for name, rel, dob in (
            ("Asha", "mother", date(1960, 1, 1)),
            ("Bala", "father", date(1958, 1, 1)),
            ("Chitra", "sister", None),
        ):
            members.create({"full_name": name, "nickname": name[:3], "relationship": rel, "date_of_birth": dob})

        store = get_store()
        names = lambda rows: [r["full_name"] for r in rows]  # noqa: E731
        assert names(store.select("family_members", order_by="full_name")) == ["Asha", "Bala", "Chitra"]
        assert names(store.select("family_members", order_by="full_name", descending=True, limit=1)) == ["Chitra"]
        assert names(store.select("family_members", filters=[Filter("relationship", "neq", "mother")],
                                  order_by="full_name")) == ["Bala", "Chitra"]
        assert names(store.select("family_members", filters=[Filter("date_of_birth", "is", None)])) == ["Chitra"]
        assert names(store.select("family_members", filters=[Filter("date_of_birth", "gte", date(1959, 1, 1))])) == ["Asha"]
        assert names(store.select("family_members", filters=[Filter("relationship", "in", ["father", "sister"])],
                                  order_by="full_name")) == ["Bala", "Chitra"]
        assert names(store.select("family_members", any_of=[Filter("full_name", "ilike", "%ITR%"),
                                                            Filter("nickname", "ilike", "asha")])) == ["Chitra"]


def test_unknown_column_is_a_validation_error(app):
    with app.app_context():
        with pytest.raises(StoreValidationError):
            get_store().insert("family_members", {"full_name": "X", "nickname": "x", "relationship": "self", "age": 3})
        with pytest.raises(ServiceError) as exc:
            members.select("fetch family members", filters=[Filter("age", "eq", 3)])
        assert exc.value.is_validation


def test_missing_required_column_is_a_validation_error(app):
    with app.app_context():
        with pytest.raises(ServiceError) as exc:
            members.create({"full_name": "No nickname", "relationship": "self"})
        assert exc.value.is_validation
        assert str(exc.value).startswith("Failed to create family member:")


def test_update_stamps_updated_at(app):
    with app.app_context():
        m = members.create({"full_name": "Asha", "nickname": "Ash", "relationship": "mother"})
        updated = members.update(m.id, {"nickname": "Amma"})
        assert updated.nickname == "Amma"
        assert updated.updated_at is not None
        assert members.update("7c0c7f0e-2f41-4f27-9e8e-3d3c1b9c1a55", {"nickname": "x"}) is None


def test_information_schema_columns(app):
    with app.app_context():
        rows = get_store().select(
            "columns",
            schema="information_schema",
            filters=[Filter("table_name", "eq", "tenants"), Filter("column_name", "in", ["property_id", "building_id"])],
        )
    assert sorted(r["column_name"] for r in rows) == ["building_id", "property_id"]
    assert all(r["is_nullable"] == "YES" for r in rows)
