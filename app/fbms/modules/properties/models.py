from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fbms.models import Base, TextList, UuidStr

PROPERTY_TYPES = ("building", "flat", "land")
WATER_SUPPLY = ("24x7", "limited", "tanker")
AREA_UNITS = ("sqft", "acres", "cents")
ZONING = ("residential", "commercial", "agricultural", "industrial")
LEASE_TYPES = ("agricultural", "commercial", "residential")
RENT_FREQUENCIES = ("monthly", "quarterly", "yearly")


class Building(Base):
    __tablename__ = "buildings"

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    building_code: Mapped[str] = mapped_column(String(10), nullable=False)  # A, B, C, ...
    address: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_floors: Mapped[int] = mapped_column(Integer, nullable=False)
    total_apartments: Mapped[int] = mapped_column(Integer, nullable=False)
    amenities: Mapped[list | None] = mapped_column(TextList, nullable=True)
    construction_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    images: Mapped[list | None] = mapped_column(TextList, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Apartment(Base):
    __tablename__ = "apartments"
    __table_args__ = (Index("idx_apartments_building_id", "building_id"),)

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)
    building_id: Mapped[str | None] = mapped_column(UuidStr, ForeignKey("buildings.id", ondelete="CASCADE"), nullable=True)

    door_number: Mapped[str] = mapped_column(String(20), nullable=False)  # D-No: 500, 501, ...
    service_number: Mapped[str | None] = mapped_column(String(50), nullable=True)  # utilities
    floor: Mapped[int] = mapped_column(Integer, nullable=False)
    bedroom_count: Mapped[int] = mapped_column(Integer, nullable=False)
    bathroom_count: Mapped[int] = mapped_column(Integer, nullable=False)
    area: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)  # sq ft
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_occupied: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)

    # Amenities
    furnished: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    parking: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    balcony: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    air_conditioning: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    power_backup: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    water_supply: Mapped[str | None] = mapped_column(String(20), nullable=True, default="limited")
    internet_ready: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    additional_features: Mapped[list | None] = mapped_column(TextList, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Flat(Base):
    __tablename__ = "flats"

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    door_number: Mapped[str] = mapped_column(String(20), nullable=False)
    service_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    bedroom_count: Mapped[int] = mapped_column(Integer, nullable=False)
    bathroom_count: Mapped[int] = mapped_column(Integer, nullable=False)
    area: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    floor: Mapped[int] = mapped_column(Integer, nullable=False)
    total_floors: Mapped[int] = mapped_column(Integer, nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_occupied: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)

    # Amenities
    furnished: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    parking: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    balcony: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    air_conditioning: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    power_backup: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    water_supply: Mapped[str | None] = mapped_column(String(20), nullable=True, default="limited")
    internet_ready: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)
    society_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    maintenance_charges: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    additional_features: Mapped[list | None] = mapped_column(TextList, nullable=True)
    images: Mapped[list | None] = mapped_column(TextList, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Land(Base):
    __tablename__ = "lands"

    id: Mapped[str] = mapped_column(UuidStr, primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    survey_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    area: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    area_unit: Mapped[str] = mapped_column(String(10), nullable=False, default="sqft")
    zoning: Mapped[str] = mapped_column(String(20), nullable=False, default="residential")
    soil_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    water_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    road_access: Mapped[bool] = mapped_column(Boolean, nullable=True, default=True)
    electricity_connection: Mapped[bool] = mapped_column(Boolean, nullable=True, default=True)
    is_leased: Mapped[bool] = mapped_column(Boolean, nullable=True, default=False)

    # Lease terms
    lease_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rent_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    rent_frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    lease_security_deposit: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    lease_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # years
    renewal_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    restrictions: Mapped[list | None] = mapped_column(TextList, nullable=True)
    images: Mapped[list | None] = mapped_column(TextList, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
