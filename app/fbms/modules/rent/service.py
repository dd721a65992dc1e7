from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from app.fbms.crud import VALIDATION, ServiceError, TableService
from app.fbms.modules.properties.service import apartments, buildings, flats, lands, search_properties
from app.fbms.modules.rent.models import RENT_PAYMENT_METHODS, RENT_STATUSES, RentPayment
from app.fbms.modules.tenants.models import Tenant
from app.fbms.modules.tenants.service import active_tenants, tenants
from app.fbms.store import Filter
from app.fbms.utils import add_months, parse_date

logger = logging.getLogger(__name__)

UPCOMING_DAYS = 7
_CENT = Decimal("0.01")


def generate_receipt_number(now: datetime | None = None) -> str:
    """RCP-YYYYMMDD-NNNNNN, the suffix being the last six digits of the epoch milliseconds."""
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    return f"RCP-{now:%Y%m%d}-{str(millis)[-6:]}"


def payment_property(tenant: Tenant) -> tuple[str, str, str | None] | None:
    """
    (property_type, property_id, unit_id) a tenant's rent is booked against.

    Apartments are booked against their building with the apartment as unit.
    """
    if not tenant.property_id or not tenant.property_type:
        return None
    if tenant.property_type == "apartment":
        if not tenant.building_id:
            return None
        return "building", tenant.building_id, tenant.property_id
    return tenant.property_type, tenant.property_id, None


class RentPaymentService(TableService[RentPayment]):
    def _prepare(self, values: dict[str, Any], *, creating: bool) -> dict[str, Any]:
        row = dict(values)
        amount = row.get("amount")
        if amount is not None and amount <= 0:
            raise ServiceError("Rent payment amount must be positive.", kind=VALIDATION)
        if row.get("status") and row["status"] not in RENT_STATUSES:
            raise ServiceError(f"Invalid status {row['status']!r}.", kind=VALIDATION)
        if row.get("status") == "paid" and not row.get("paid_date"):
            row["paid_date"] = date.today()
        if creating:
            if row.get("tenant_id") and not (row.get("property_type") and row.get("property_id")):
                tenant = tenants.get(row["tenant_id"])
                linked = payment_property(tenant) if tenant else None
                if linked is None:
                    raise ServiceError("Tenant is not linked to a property; choose the property explicitly.", kind=VALIDATION)
                row["property_type"], row["property_id"], row["unit_id"] = linked
            if not row.get("receipt_number"):
                row["receipt_number"] = generate_receipt_number()
        return row

    def create(self, values: dict[str, Any]) -> RentPayment:
        return super().create(self._prepare(values, creating=True))

    def update(self, record_id: str, values: dict[str, Any]) -> RentPayment | None:
        return super().update(record_id, self._prepare(values, creating=False))


payments = RentPaymentService(RentPayment, label="rent payments", singular="rent payment", order_by="due_date")


def list_payments(*, status: str | None = None, tenant_id: str | None = None) -> list[RentPayment]:
    filters: list[Filter] = []
    if status:
        filters.append(Filter("status", "eq", status))
    if tenant_id:
        filters.append(Filter("tenant_id", "eq", tenant_id))
    return payments.list(*filters)


def payments_for_tenant(tenant_id: str) -> list[RentPayment]:
    return payments.list(Filter("tenant_id", "eq", tenant_id))


def mark_overdue(today: date | None = None) -> list[RentPayment]:
    """Pending payments whose due date has passed become overdue. Returns the updated payments."""
    today = today or date.today()
    due = payments.select(
        "fetch rent payments",
        filters=[Filter("status", "eq", "pending"), Filter("due_date", "lt", today)],
    )
    updated = []
    for p in due:
        row = payments.update(p.id, {"status": "overdue"})
        if row is not None:
            updated.append(row)
    logger.info("Marked %s rent payment(s) overdue", len(updated))
    return updated


def generate_monthly_payments(year: int, month: int) -> list[RentPayment]:
    """
    Create a pending payment for every active, property-linked tenant that has
    none due in the given month. Safe to re-run.
    """
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    created: list[RentPayment] = []
    for tenant in active_tenants():
        linked = payment_property(tenant)
        if linked is None:
            continue
        existing = payments.select(
            "fetch rent payments",
            filters=[
                Filter("tenant_id", "eq", tenant.id),
                Filter("due_date", "gte", first),
                Filter("due_date", "lte", last),
            ],
            limit=1,
        )
        if existing:
            continue
        ptype, pid, unit_id = linked
        due_day = min(max(tenant.rent_due_date or 1, 1), last.day)
        method = tenant.payment_method if tenant.payment_method in RENT_PAYMENT_METHODS else None
        created.append(
            payments.create(
                {
                    "tenant_id": tenant.id,
                    "property_type": ptype,
                    "property_id": pid,
                    "unit_id": unit_id,
                    "amount": tenant.rent_amount,
                    "due_date": date(year, month, due_day),
                    "status": "pending",
                    "payment_method": method,
                }
            )
        )
    logger.info("Generated %s rent payment(s) for %04d-%02d", len(created), year, month)
    return created


# ---------- Analytics ----------


@dataclass(frozen=True)
class MethodBreakdown:
    method: str
    count: int
    total_amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class RentAnalytics:
    total_properties: int
    total_tenants: int
    total_expected: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    collection_rate: Decimal
    average_rent_per_property: Decimal
    overdue_count: int
    upcoming_count: int
    methods: list[MethodBreakdown] = field(default_factory=list)


def _round(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def collected_amount(p: RentPayment) -> Decimal:
    return p.actual_amount_paid or p.amount or Decimal(0)


def rent_analytics(rows: list[RentPayment], *, today: date | None = None,
                   start: date | None = None, end: date | None = None) -> RentAnalytics:
    """Collection figures over ``rows`` (optionally restricted to due dates in [start, end])."""
    today = today or date.today()
    in_range = [p for p in rows if (start is None or p.due_date >= start) and (end is None or p.due_date <= end)]
    paid = [p for p in in_range if p.status == "paid"]

    expected = sum((p.amount or Decimal(0) for p in in_range), Decimal(0))
    collected = sum((collected_amount(p) for p in paid), Decimal(0))
    rate = _round(collected / expected * 100) if expected > 0 else Decimal(0)
    properties = {p.property_id for p in in_range}
    tenant_ids = {p.tenant_id for p in in_range}
    average = _round(expected / len(properties)) if properties else Decimal(0)

    horizon = today + timedelta(days=UPCOMING_DAYS)
    upcoming = sum(1 for p in rows if p.status == "pending" and today <= p.due_date <= horizon)

    by_method: dict[str, list[Decimal]] = defaultdict(list)
    for p in paid:
        by_method[p.payment_method or "unspecified"].append(collected_amount(p))
    method_total = sum((sum(v, Decimal(0)) for v in by_method.values()), Decimal(0))
    methods = [
        MethodBreakdown(
            method=m,
            count=len(amounts),
            total_amount=sum(amounts, Decimal(0)),
            percentage=_round(sum(amounts, Decimal(0)) / method_total * 100) if method_total > 0 else Decimal(0),
        )
        for m, amounts in by_method.items()
    ]

    return RentAnalytics(
        total_properties=len(properties),
        total_tenants=len(tenant_ids),
        total_expected=expected,
        total_collected=collected,
        total_outstanding=expected - collected,
        collection_rate=rate,
        average_rent_per_property=average,
        overdue_count=sum(1 for p in in_range if p.status == "overdue"),
        upcoming_count=upcoming,
        methods=methods,
    )


# ---------- Receipts ----------


@dataclass(frozen=True)
class RentReceipt:
    receipt_number: str
    payment: RentPayment
    tenant_name: str
    property_name: str
    property_address: str
    period_start: date
    period_end: date
    amount: Decimal
    late_fee: Decimal
    discount: Decimal
    total_amount: Decimal
    generated_at: datetime


def rent_period(due_date: date) -> tuple[date, date]:
    """The month of rent a due date settles: (due date - 1 month + 1 day, due date)."""
    return add_months(due_date, -1) + timedelta(days=1), due_date


def _property_info(p: RentPayment) -> tuple[str, str]:
    if p.property_type == "building":
        building = buildings.get(p.property_id)
        apt = apartments.get(p.unit_id) if p.unit_id else None
        if building is None:
            return "", ""
        if apt is not None:
            return f"{building.name} - {apt.door_number}", f"{building.address}, Apt {apt.door_number}"
        return building.name, building.address
    service = flats if p.property_type == "flat" else lands if p.property_type == "land" else None
    record = service.get(p.property_id) if service else None
    if record is None:
        return "", ""
    return record.name, record.address


def build_receipt(payment_id: str) -> RentReceipt | None:
    """
    Receipt for a paid payment; None when the payment does not exist.
    Unpaid payments raise a validation ``ServiceError``.
    """
    p = payments.get(payment_id)
    if p is None:
        return None
    if p.status != "paid" or not p.paid_date:
        raise ServiceError("Cannot generate receipt for unpaid payment.", kind=VALIDATION)
    number = p.receipt_number
    if not number:
        # Rows imported before receipt numbers were assigned on create.
        number = generate_receipt_number()
        payments.update(p.id, {"receipt_number": number})
    tenant = tenants.get(p.tenant_id) if p.tenant_id else None
    name, address = _property_info(p)
    start, end = rent_period(p.due_date)
    return RentReceipt(
        receipt_number=number,
        payment=p,
        tenant_name=tenant.full_name if tenant else "",
        property_name=name,
        property_address=address,
        period_start=start,
        period_end=end,
        amount=p.amount,
        late_fee=p.late_fee or Decimal(0),
        discount=p.discount or Decimal(0),
        total_amount=collected_amount(p),
        generated_at=datetime.now(timezone.utc),
    )


# ---------- Filtering and reports ----------

DATE_RANGES = ("all", "this_month", "last_month", "this_year", "custom")
REPORT_HEADERS = ("Receipt #", "Tenant", "Property", "Amount", "Status", "Due Date", "Paid Date", "Method")


@dataclass(frozen=True)
class RentFilters:
    status: str | None = None
    tenant_id: str | None = None
    date_range: str = "all"
    start: date | None = None
    end: date | None = None
    building_id: str | None = None
    flat_id: str | None = None
    search: str | None = None

    def summary(self) -> list[str]:
        """One line per applied filter, for report headers."""
        lines = []
        if self.start or self.end:
            label = self.date_range.replace("_", " ").title()
            lines.append(f"Date range ({label}): {self.start or '...'} to {self.end or '...'}")
        if self.status:
            lines.append(f"Status: {self.status.title()}")
        if self.tenant_id:
            lines.append("Tenant filter: applied")
        if self.building_id:
            lines.append("Building filter: applied")
        if self.flat_id:
            lines.append("Flat filter: applied")
        if self.search:
            lines.append(f'Search: "{self.search}"')
        return lines


def _month_bounds(d: date) -> tuple[date, date]:
    return d.replace(day=1), d.replace(day=calendar.monthrange(d.year, d.month)[1])


def _arg_date(raw: str | None) -> date | None:
    try:
        return parse_date(raw)
    except ValueError:
        return None


def rent_filters_from_args(args: Mapping[str, str], *, today: date | None = None) -> RentFilters:
    """Rent list/report filters from query arguments. Unknown or malformed values are ignored."""
    today = today or date.today()

    def arg(name: str) -> str | None:
        return (args.get(name) or "").strip() or None

    date_range = arg("date_range") or ("custom" if arg("start") or arg("end") else "all")
    if date_range not in DATE_RANGES:
        date_range = "all"
    start = end = None
    if date_range == "this_month":
        start, end = _month_bounds(today)
    elif date_range == "last_month":
        start, end = _month_bounds(add_months(today.replace(day=1), -1))
    elif date_range == "this_year":
        start, end = date(today.year, 1, 1), date(today.year, 12, 31)
    elif date_range == "custom":
        start, end = _arg_date(arg("start")), _arg_date(arg("end"))

    status = arg("status")
    return RentFilters(
        status=status if status in RENT_STATUSES else None,
        tenant_id=arg("tenant_id"),
        date_range=date_range,
        start=start,
        end=end,
        building_id=arg("building_id"),
        flat_id=arg("flat_id"),
        search=arg("q"),
    )


def filtered_payments(criteria: RentFilters) -> list[RentPayment]:
    """
    Payments matching ``criteria``. The search term matches receipt number,
    transaction id and notes, plus tenants and properties whose names match.
    """
    filters: list[Filter] = []
    if criteria.status:
        filters.append(Filter("status", "eq", criteria.status))
    if criteria.tenant_id:
        filters.append(Filter("tenant_id", "eq", criteria.tenant_id))
    if criteria.start:
        filters.append(Filter("due_date", "gte", criteria.start))
    if criteria.end:
        filters.append(Filter("due_date", "lte", criteria.end))
    if criteria.building_id:
        filters += [Filter("property_type", "eq", "building"), Filter("property_id", "eq", criteria.building_id)]
    if criteria.flat_id:
        filters += [Filter("property_type", "eq", "flat"), Filter("property_id", "eq", criteria.flat_id)]

    any_of: list[Filter] = []
    if criteria.search:
        term = f"%{criteria.search}%"
        any_of = [Filter(col, "ilike", term) for col in ("receipt_number", "transaction_id", "notes")]
        tenant_ids = [t.id for t in tenants.select("search tenants", filters=[Filter("full_name", "ilike", term)])]
        if tenant_ids:
            any_of.append(Filter("tenant_id", "in", tenant_ids))
        property_ids = [record.id for _, record in search_properties(criteria.search)]
        if property_ids:
            any_of.append(Filter("property_id", "in", property_ids))
    return payments.select("fetch rent payments", filters=filters, any_of=any_of)


@dataclass(frozen=True)
class RentReportStats:
    total_payments: int
    paid_payments: int
    pending_payments: int
    overdue_payments: int
    total_collected: Decimal


def report_statistics(rows: list[RentPayment]) -> RentReportStats:
    paid = [p for p in rows if p.status == "paid"]
    return RentReportStats(
        total_payments=len(rows),
        paid_payments=len(paid),
        pending_payments=sum(1 for p in rows if p.status == "pending"),
        overdue_payments=sum(1 for p in rows if p.status == "overdue"),
        total_collected=sum((collected_amount(p) for p in paid), Decimal(0)),
    )


@dataclass(frozen=True)
class RentReport:
    filters: list[str]
    stats: RentReportStats
    rows: list[tuple[str, ...]]
    generated_at: datetime


def format_rupees(amount: Decimal | None) -> str:
    return f"Rs. {amount or Decimal(0):,.2f}"


def build_rent_report(criteria: RentFilters) -> RentReport:
    """Filtered payments as report rows (see ``REPORT_HEADERS``) with summary statistics."""
    rows = filtered_payments(criteria)
    tenant_names = {t.id: t.full_name for t in tenants.list()}
    property_names = {b.id: b.name for b in buildings.list()}
    property_names.update({f.id: f.name for f in flats.list()})
    property_names.update({land.id: land.name for land in lands.list()})
    doors = {a.id: a.door_number for a in apartments.list()} if any(p.unit_id for p in rows) else {}

    table = []
    for p in rows:
        prop = property_names.get(p.property_id, "Unknown")
        if p.unit_id in doors:
            prop = f"{prop} - {doors[p.unit_id]}"
        table.append(
            (
                p.receipt_number or "N/A",
                tenant_names.get(p.tenant_id, "Unknown"),
                prop,
                format_rupees(p.amount),
                (p.status or "").title(),
                p.due_date.isoformat() if p.due_date else "",
                p.paid_date.isoformat() if p.paid_date else "Not Paid",
                (p.payment_method or "").replace("_", " ").title() or "N/A",
            )
        )
    return RentReport(
        filters=criteria.summary(),
        stats=report_statistics(rows),
        rows=table,
        generated_at=datetime.now(timezone.utc),
    )
