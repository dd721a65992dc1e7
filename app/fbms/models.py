from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, Numeric, Text, Uuid
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase

R = TypeVar("R", bound="Base")

# text[] on Postgres, JSON everywhere else (SQLite has no arrays).
TextList = JSON().with_variant(ARRAY(Text), "postgresql")

# UUID primary/foreign keys, exposed to Python as strings.
UuidStr = Uuid(as_uuid=False)


def _coerce(column_type: Any, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(column_type, DateTime):
        if isinstance(value, str):
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        return value
    if isinstance(column_type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value[:10])
        return value
    if isinstance(column_type, Numeric):
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None
    if isinstance(column_type, Boolean):
        return bool(value)
    if isinstance(column_type, Integer) and not isinstance(value, bool):
        return int(value)
    if isinstance(column_type, JSON) and isinstance(value, tuple):
        return list(value)
    return value


class Base(DeclarativeBase):
    """
    Declarative base for every table.

    The mapped classes double as typed records: rows coming back from the data
    store (PostgREST JSON or SQLAlchemy mappings) are normalized with
    ``from_row`` into transient instances that are never attached to a session.
    """

    @classmethod
    def from_row(cls: type[R], row: dict[str, Any]) -> R:
        obj = cls()
        for col in cls.__table__.columns:
            if col.key in row:
                setattr(obj, col.key, _coerce(col.type, row[col.key]))
        return obj

    @classmethod
    def column_names(cls) -> set[str]:
        return {c.key for c in cls.__table__.columns}

    def as_dict(self) -> dict[str, Any]:
        return {c.key: getattr(self, c.key, None) for c in self.__table__.columns}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={getattr(self, 'id', None)!r}>"


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.fbms.modules.family.models import FamilyMember  # noqa: E402,F401
from app.fbms.modules.properties.models import Apartment, Building, Flat, Land  # noqa: E402,F401
from app.fbms.modules.tenants.models import Tenant, TenantReference  # noqa: E402,F401
from app.fbms.modules.rent.models import RentPayment  # noqa: E402,F401
from app.fbms.modules.insurance.models import InsurancePolicy, PremiumPayment  # noqa: E402,F401
from app.fbms.modules.documents.models import Document  # noqa: E402,F401
