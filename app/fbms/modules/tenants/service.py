from __future__ import annotations

import logging
from typing import Any

from app.fbms.crud import VALIDATION, ServiceError, TableService
from app.fbms.modules.properties.service import apartments, flats, lands, property_choices, set_occupancy
from app.fbms.modules.tenants.models import TENANT_PROPERTY_TYPES, Tenant, TenantReference
from app.fbms.store import Filter

logger = logging.getLogger(__name__)

_UNIT_SERVICES = {"apartment": apartments, "flat": flats, "land": lands}


class TenantService(TableService[Tenant]):
    """
    Tenants keep ``full_name`` derived from first/last name, and the linked
    property's occupancy flag follows the tenant's active assignment.
    """

    def _prepare(self, values: dict[str, Any]) -> dict[str, Any]:
        row = dict(values)
        if "first_name" in row or "last_name" in row:
            row["full_name"] = " ".join(p for p in (row.get("first_name"), row.get("last_name")) if p).strip()
        ptype = row.get("property_type")
        pid = row.get("property_id")
        if pid and not ptype:
            raise ServiceError("Property type is required when a property is selected.", kind=VALIDATION)
        if ptype and ptype not in TENANT_PROPERTY_TYPES:
            raise ServiceError(f"Invalid property type {ptype!r}.", kind=VALIDATION)
        if "property_id" in row:
            # Apartments also record their building; other property types have none.
            building_id = None
            if ptype and pid:
                unit = _UNIT_SERVICES[ptype].get(pid)
                if unit is None:
                    raise ServiceError(f"Selected {ptype} does not exist.", kind=VALIDATION)
                if ptype == "apartment":
                    building_id = unit.building_id
            row["building_id"] = building_id
        return row

    def create(self, values: dict[str, Any]) -> Tenant:
        tenant = super().create(self._prepare(values))
        if tenant.is_active is not False:
            set_occupancy(tenant.property_type, tenant.property_id, True)
        return tenant

    def update(self, record_id: str, values: dict[str, Any]) -> Tenant | None:
        before = self.get(record_id)
        tenant = super().update(record_id, self._prepare(values))
        if tenant is None:
            return None
        if before is not None and before.is_active and (before.property_type, before.property_id) != (
            tenant.property_type,
            tenant.property_id,
        ):
            set_occupancy(before.property_type, before.property_id, False)
        set_occupancy(tenant.property_type, tenant.property_id, bool(tenant.is_active))
        return tenant

    def delete(self, record_id: str) -> None:
        before = self.get(record_id)
        super().delete(record_id)
        if before is not None and before.is_active:
            set_occupancy(before.property_type, before.property_id, False)


tenants = TenantService(Tenant, label="tenants", singular="tenant")
references: TableService[TenantReference] = TableService(
    TenantReference, label="tenant references", singular="tenant reference", descending=False
)


def tenant_for_property(property_id: str, property_type: str) -> Tenant | None:
    """The active tenant of a property, or None."""
    rows = tenants.select(
        "fetch tenant",
        filters=[
            Filter("property_id", "eq", property_id),
            Filter("property_type", "eq", property_type),
            Filter("is_active", "is", True),
        ],
        limit=1,
    )
    return rows[0] if rows else None


def tenants_for_building(building_id: str) -> list[Tenant]:
    return tenants.select(
        "fetch tenants",
        filters=[Filter("building_id", "eq", building_id), Filter("is_active", "is", True)],
    )


def active_tenants() -> list[Tenant]:
    return tenants.select("fetch tenants", filters=[Filter("is_active", "is", True)])


def references_for_tenant(tenant_id: str) -> list[TenantReference]:
    return references.list(Filter("tenant_id", "eq", tenant_id))


def tenant_choices(*, active_only: bool = False) -> list[tuple[str, str]]:
    rows = active_tenants() if active_only else tenants.list()
    return [(t.id, t.full_name) for t in sorted(rows, key=lambda t: (t.full_name or "").lower())]


def linked_property_choices() -> list[tuple[str, str]]:
    """Every rentable unit, labelled with its type, for the tenant form."""
    out: list[tuple[str, str]] = []
    for ptype in TENANT_PROPERTY_TYPES:
        out.extend((pid, f"{ptype.title()}: {label}") for pid, label in property_choices(ptype))
    return out
