from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fbms.models import Base, TextList, UuidStr

DOCUMENT_CATEGORIES = (
    "aadhar",
    "pan",
    "driving_license",
    "passport",
    "house_documents",
    "business_documents",
    "insurance_documents",
    "bank_documents",
    "educational_certificates",
    "medical_records",
)


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_family_member_id", "family_member_id"),
        Index("idx_documents_property", "property_type", "property_id"),
    )

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)

    # File
    file_data: Mapped[str | None] = mapped_column(Text, nullable=True)  # storage key (or legacy data URL)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # Links
    family_member_id: Mapped[str | None] = mapped_column(
        UuidStr, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=True
    )
    property_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    property_id: Mapped[str | None] = mapped_column(UuidStr, nullable=True)
    insurance_policy_id: Mapped[str | None] = mapped_column(
        UuidStr, ForeignKey("insurance_policies.id", ondelete="CASCADE"), nullable=True
    )

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    issued_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    issuer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tags: Mapped[list | None] = mapped_column(TextList, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
