from __future__ import annotations

from flask import Blueprint, flash, render_template, request

from app.fbms.forms import Field
from app.fbms.modules.documents.service import documents_for_property
from app.fbms.modules.properties.models import AREA_UNITS, LEASE_TYPES, PROPERTY_TYPES, RENT_FREQUENCIES, WATER_SUPPLY, ZONING
from app.fbms.modules.properties.service import (
    apartments,
    apartments_for_building,
    building_choices,
    buildings,
    flats,
    lands,
    property_statistics,
    search_properties,
)
from app.fbms.modules.tenants.service import tenant_for_property, tenants_for_building
from app.fbms.rbac import require_login
from app.fbms.views import Column, CrudScreen, ViewState, register_crud

bp = Blueprint("properties", __name__)

AMENITY_FIELDS = [
    Field("furnished", kind="bool"),
    Field("parking", kind="bool"),
    Field("balcony", kind="bool"),
    Field("air_conditioning", kind="bool"),
    Field("power_backup", kind="bool"),
    Field("internet_ready", kind="bool"),
    Field("water_supply", kind="select", choices=WATER_SUPPLY, default="limited"),
]

BUILDING_FIELDS = [
    Field("name", required=True),
    Field("building_code", required=True, help="Short code such as A or B."),
    Field("address", kind="textarea", required=True),
    Field("total_floors", kind="int", required=True),
    Field("total_apartments", kind="int", required=True),
    Field("construction_year", kind="int"),
    Field("amenities", kind="list", help="Comma separated."),
    Field("description", kind="textarea"),
]

APARTMENT_FIELDS = [
    Field("building_id", "Building", kind="select", required=True),
    Field("door_number", "Door number", required=True),
    Field("service_number", "Service number"),
    Field("floor", kind="int", required=True),
    Field("bedroom_count", "Bedrooms", kind="int", required=True),
    Field("bathroom_count", "Bathrooms", kind="int", required=True),
    Field("area", "Area (sq ft)", kind="decimal", required=True),
    Field("rent_amount", kind="decimal", required=True),
    Field("security_deposit", kind="decimal", required=True),
    Field("is_occupied", "Occupied", kind="bool"),
    *AMENITY_FIELDS,
    Field("additional_features", kind="list", help="Comma separated."),
]

FLAT_FIELDS = [
    Field("name", required=True),
    Field("door_number", "Door number", required=True),
    Field("service_number", "Service number"),
    Field("address", kind="textarea", required=True),
    Field("floor", kind="int", required=True),
    Field("total_floors", kind="int", required=True),
    Field("bedroom_count", "Bedrooms", kind="int", required=True),
    Field("bathroom_count", "Bathrooms", kind="int", required=True),
    Field("area", "Area (sq ft)", kind="decimal", required=True),
    Field("rent_amount", kind="decimal", required=True),
    Field("security_deposit", kind="decimal", required=True),
    Field("society_name"),
    Field("maintenance_charges", kind="decimal"),
    Field("is_occupied", "Occupied", kind="bool"),
    *AMENITY_FIELDS,
    Field("additional_features", kind="list", help="Comma separated."),
    Field("description", kind="textarea"),
]

LAND_FIELDS = [
    Field("name", required=True),
    Field("address", kind="textarea", required=True),
    Field("survey_number", "Survey number"),
    Field("area", kind="decimal", required=True),
    Field("area_unit", kind="select", required=True, choices=AREA_UNITS, default="sqft"),
    Field("zoning", kind="select", required=True, choices=ZONING, default="residential"),
    Field("soil_type"),
    Field("water_source"),
    Field("road_access", kind="bool", default=True),
    Field("electricity_connection", kind="bool", default=True),
    Field("is_leased", "Leased", kind="bool"),
    Field("lease_type", kind="select", choices=LEASE_TYPES),
    Field("rent_amount", kind="decimal"),
    Field("rent_frequency", kind="select", choices=RENT_FREQUENCIES),
    Field("lease_security_deposit", kind="decimal"),
    Field("lease_duration", "Lease duration (years)", kind="int"),
    Field("renewal_terms", kind="textarea"),
    Field("restrictions", kind="list", help="Comma separated."),
    Field("description", kind="textarea"),
]


# ---------- Overview ----------
@bp.get("/properties")
@require_login
def properties_overview():
    query = (request.args.get("q") or "").strip()
    ptype = (request.args.get("type") or "").strip() or None
    if ptype and ptype not in PROPERTY_TYPES:
        flash(f"Unknown property type {ptype!r}.", "warning")
        ptype = None
    stats = ViewState.load(property_statistics)
    results = ViewState.load(lambda: search_properties(query, ptype)) if (query or ptype) else None
    status = 502 if stats.failed or (results is not None and results.failed) else 200
    return (
        render_template(
            "properties/overview.html",
            stats=stats,
            results=results,
            query=query,
            property_type=ptype or "",
            property_types=PROPERTY_TYPES,
        ),
        status,
    )


def _building_detail(building) -> dict:
    def load():
        units = apartments_for_building(building.id)
        occupants = {t.property_id: t for t in tenants_for_building(building.id) if t.property_type == "apartment"}
        return [(apt, occupants.get(apt.id)) for apt in units]

    return {"units": ViewState.load(load), "documents": ViewState.load(lambda: documents_for_property(building.id))}


def _unit_detail(property_type: str):
    def extra(record) -> dict:
        return {
            "tenant": ViewState.load(lambda: tenant_for_property(record.id, property_type)),
            "documents": ViewState.load(lambda: documents_for_property(record.id)),
        }

    return extra


register_crud(
    bp,
    CrudScreen(
        name="buildings",
        title="Buildings",
        url="/properties/buildings",
        service=buildings,
        fields=BUILDING_FIELDS,
        columns=[
            Column("name", link=True),
            Column("building_code", "Code"),
            Column("address"),
            Column("total_floors", "Floors"),
            Column("total_apartments", "Apartments"),
        ],
        detail_extra=_building_detail,
        detail_template="properties/building_detail.html",
    ),
)

register_crud(
    bp,
    CrudScreen(
        name="apartments",
        title="Apartments",
        url="/properties/apartments",
        service=apartments,
        fields=APARTMENT_FIELDS,
        columns=[
            Column("door_number", "D-No", link=True),
            Column("floor"),
            Column("bedroom_count", "Bedrooms"),
            Column("area"),
            Column("rent_amount", "Rent", kind="money"),
            Column("is_occupied", "Occupied", kind="bool"),
        ],
        choices=lambda: {"building_id": building_choices()},
        detail_extra=_unit_detail("apartment"),
        detail_template="properties/unit_detail.html",
    ),
)

register_crud(
    bp,
    CrudScreen(
        name="flats",
        title="Flats",
        url="/properties/flats",
        service=flats,
        fields=FLAT_FIELDS,
        columns=[
            Column("name", link=True),
            Column("door_number", "D-No"),
            Column("address"),
            Column("bedroom_count", "Bedrooms"),
            Column("rent_amount", "Rent", kind="money"),
            Column("is_occupied", "Occupied", kind="bool"),
        ],
        detail_extra=_unit_detail("flat"),
        detail_template="properties/unit_detail.html",
    ),
)

register_crud(
    bp,
    CrudScreen(
        name="lands",
        title="Lands",
        url="/properties/lands",
        service=lands,
        fields=LAND_FIELDS,
        columns=[
            Column("name", link=True),
            Column("survey_number", "Survey No"),
            Column("area"),
            Column("area_unit", "Unit"),
            Column("zoning", kind="enum"),
            Column("is_leased", "Leased", kind="bool"),
        ],
        detail_extra=_unit_detail("land"),
        detail_template="properties/unit_detail.html",
    ),
)
