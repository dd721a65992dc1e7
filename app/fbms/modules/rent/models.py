from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fbms.models import Base, UuidStr

RENT_STATUSES = ("pending", "paid", "overdue", "partial")
RENT_PAYMENT_METHODS = ("cash", "bank_transfer", "cheque", "upi", "card")


class RentPayment(Base):
    __tablename__ = "rent_payments"
    __table_args__ = (
        Index("idx_rent_payments_tenant_id", "tenant_id"),
        Index("idx_rent_payments_due_date", "due_date"),
    )

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)
    tenant_id: Mapped[str | None] = mapped_column(UuidStr, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True)

    property_type: Mapped[str] = mapped_column(String(20), nullable=False)  # building, flat, land
    property_id: Mapped[str] = mapped_column(UuidStr, nullable=False)
    unit_id: Mapped[str | None] = mapped_column(UuidStr, nullable=True)  # apartment within a building

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True, default="pending")
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receipt_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    late_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True, default=0)
    discount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True, default=0)
    actual_amount_paid: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
