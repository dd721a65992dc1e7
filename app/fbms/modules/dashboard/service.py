from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from app.fbms.modules.documents.service import expired_documents
from app.fbms.modules.family.service import members
from app.fbms.modules.insurance.service import expiring_policies
from app.fbms.modules.properties.service import buildings, flats, lands
from app.fbms.modules.rent.service import list_payments
from app.fbms.modules.tenants.service import active_tenants


@dataclass(frozen=True)
class DashboardSummary:
    family_members: int
    total_properties: int
    active_tenants: int
    pending_payments: int
    overdue_payments: int
    expired_documents: int
    expiring_policies: int


def dashboard_summary(*, today: date | None = None) -> DashboardSummary:
    """Headline counts for the dashboard. Raises ServiceError if any read fails."""
    return DashboardSummary(
        family_members=len(members.list()),
        total_properties=len(buildings.list()) + len(flats.list()) + len(lands.list()),
        active_tenants=len(active_tenants()),
        pending_payments=len(list_payments(status="pending")),
        overdue_payments=len(list_payments(status="overdue")),
        expired_documents=len(expired_documents(today=today)),
        expiring_policies=len(expiring_policies(today=today)),
    )
