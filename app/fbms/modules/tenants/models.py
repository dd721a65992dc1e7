from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fbms.models import Base, TextList, UuidStr

MARITAL_STATUSES = ("single", "married", "divorced", "widowed")
PAYMENT_METHODS = ("cash", "bank_transfer", "cheque", "upi")
TENANT_PROPERTY_TYPES = ("apartment", "flat", "land")


class Tenant(Base):
    __tablename__ = "tenants"
    __table_args__ = (
        Index("idx_tenants_property_lookup", "property_id", "property_type", "is_active"),
        Index("idx_tenants_building_id", "building_id"),
    )

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)

    # Personal
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    occupation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    employer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    monthly_income: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    marital_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    family_size: Mapped[int | None] = mapped_column(Integer, nullable=True, default=1)
    nationality: Mapped[str | None] = mapped_column(String(50), nullable=True, default="Indian")
    religion: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Contact
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Emergency contact
    emergency_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(100), nullable=True)
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    emergency_contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_contact_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Identification
    aadhar_number: Mapped[str | None] = mapped_column(String(12), nullable=True)
    pan_number: Mapped[str | None] = mapped_column(String(10), nullable=True)
    driving_license: Mapped[str | None] = mapped_column(String(20), nullable=True)
    passport: Mapped[str | None] = mapped_column(String(20), nullable=True)
    voter_id_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Rental agreement
    agreement_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    maintenance_charges: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    rent_due_date: Mapped[int] = mapped_column(Integer, nullable=False)  # day of month
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True, default="bank_transfer")
    late_fee_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    notice_period: Mapped[int | None] = mapped_column(Integer, nullable=True, default=30)  # days
    renewal_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_conditions: Mapped[list | None] = mapped_column(TextList, nullable=True)

    # Property assignment (direct linking; property_id points at apartments, flats or lands)
    property_id: Mapped[str | None] = mapped_column(UuidStr, nullable=True)
    property_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    building_id: Mapped[str | None] = mapped_column(UuidStr, nullable=True)  # apartments only

    # Status
    move_in_date: Mapped[date] = mapped_column(Date, nullable=False)
    move_out_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=True, default=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TenantReference(Base):
    __tablename__ = "tenant_references"
    __table_args__ = (Index("idx_tenant_references_tenant_id", "tenant_id"),)

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)
    tenant_id: Mapped[str | None] = mapped_column(UuidStr, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
