from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.fbms.models import Base, UuidStr

POLICY_TYPES = ("LIC", "health", "car", "bike", "property")
POLICY_STATUSES = ("active", "expired", "lapsed")


class InsurancePolicy(Base):
    __tablename__ = "insurance_policies"
    __table_args__ = (Index("idx_insurance_policies_family_member_id", "family_member_id"),)

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)

    policy_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    provider: Mapped[str] = mapped_column(String(255), nullable=False)
    family_member_id: Mapped[str | None] = mapped_column(
        UuidStr, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=True
    )
    premium_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    coverage_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    renewal_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="active")

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PremiumPayment(Base):
    __tablename__ = "premium_payments"
    __table_args__ = (Index("idx_premium_payments_policy_id", "policy_id"),)

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)
    policy_id: Mapped[str | None] = mapped_column(
        UuidStr, ForeignKey("insurance_policies.id", ondelete="CASCADE"), nullable=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
