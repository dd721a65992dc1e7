from __future__ import annotations

import logging
from dataclasses import dataclass

from app.fbms.crud import TableService
from app.fbms.modules.properties.models import PROPERTY_TYPES, Apartment, Building, Flat, Land
from app.fbms.store import Filter

logger = logging.getLogger(__name__)

buildings: TableService[Building] = TableService(Building, label="buildings", singular="building")
apartments: TableService[Apartment] = TableService(
    Apartment, label="apartments", singular="apartment", order_by="door_number", descending=False
)
flats: TableService[Flat] = TableService(Flat, label="flats", singular="flat")
lands: TableService[Land] = TableService(Land, label="lands", singular="land")

# Columns matched by the free-text property search, per property type.
SEARCH_COLUMNS = {
    "building": ("name", "address", "building_code"),
    "flat": ("name", "address", "door_number"),
    "land": ("name", "address", "survey_number"),
}

_SERVICES = {"building": buildings, "flat": flats, "land": lands}


@dataclass(frozen=True)
class PropertyStats:
    total_buildings: int
    total_flats: int
    total_lands: int
    total_apartments: int
    occupied_units: int
    vacant_units: int
    leased_lands: int

    @property
    def total_properties(self) -> int:
        return self.total_buildings + self.total_flats + self.total_lands


def apartments_for_building(building_id: str) -> list[Apartment]:
    return apartments.select(
        "fetch apartments",
        filters=[Filter("building_id", "eq", building_id)],
        order_by="door_number",
        descending=False,
    )


def search_properties(query: str, property_type: str | None = None) -> list[tuple[str, Building | Flat | Land]]:
    """
    Case-insensitive substring search across buildings, flats and lands.

    Returns ``(property_type, record)`` pairs, buildings first. An empty query
    matches everything of the requested type(s).
    """
    if property_type and property_type not in PROPERTY_TYPES:
        raise ValueError(f"Invalid property type {property_type!r}. Must be one of: {', '.join(PROPERTY_TYPES)}")
    term = f"%{(query or '').strip()}%"
    results: list[tuple[str, Building | Flat | Land]] = []
    for ptype in PROPERTY_TYPES:
        if property_type and ptype != property_type:
            continue
        any_of = [Filter(col, "ilike", term) for col in SEARCH_COLUMNS[ptype]]
        for record in _SERVICES[ptype].select("search properties", any_of=any_of):
            results.append((ptype, record))
    return results


def property_statistics() -> PropertyStats:
    all_buildings = buildings.list()
    all_apartments = apartments.list()
    all_flats = flats.list()
    all_lands = lands.list()

    # Rentable units are apartments and flats.
    units = [*all_apartments, *all_flats]
    occupied = sum(1 for u in units if u.is_occupied)
    return PropertyStats(
        total_buildings=len(all_buildings),
        total_flats=len(all_flats),
        total_lands=len(all_lands),
        total_apartments=len(all_apartments),
        occupied_units=occupied,
        vacant_units=len(units) - occupied,
        leased_lands=sum(1 for land in all_lands if land.is_leased),
    )


def building_choices() -> list[tuple[str, str]]:
    return [(b.id, f"{b.name} ({b.building_code})") for b in buildings.select("fetch buildings", order_by="name", descending=False)]


def property_choices(property_type: str) -> list[tuple[str, str]]:
    """(id, label) pairs for the given rentable property type."""
    if property_type == "apartment":
        names = {b.id: b.building_code for b in buildings.list()}
        return [
            (a.id, f"{names.get(a.building_id, '?')}-{a.door_number}")
            for a in apartments.list()
        ]
    if property_type == "flat":
        return [(f.id, f"{f.name} (D-No {f.door_number})") for f in flats.list()]
    if property_type == "land":
        return [(land.id, land.name) for land in lands.list()]
    raise ValueError(f"Unknown property type {property_type!r}")


def property_label(property_type: str | None, property_id: str | None) -> str | None:
    """Human label for a linked property, or None when it cannot be resolved."""
    if not property_type or not property_id:
        return None
    if property_type == "apartment":
        apt = apartments.get(property_id)
        if apt is None:
            return None
        building = buildings.get(apt.building_id) if apt.building_id else None
        return f"{building.name if building else 'Building'} / D-No {apt.door_number}"
    service = _SERVICES.get(property_type)
    if service is None:
        return None
    record = service.get(property_id)
    return getattr(record, "name", None) if record else None


def set_occupancy(property_type: str | None, property_id: str | None, occupied: bool) -> None:
    """Flag a tenant-linked property as occupied/vacant (lands track this as leased)."""
    if not property_type or not property_id:
        return
    if property_type == "apartment":
        apartments.update(property_id, {"is_occupied": occupied})
    elif property_type == "flat":
        flats.update(property_id, {"is_occupied": occupied})
    elif property_type == "land":
        lands.update(property_id, {"is_leased": occupied})
    else:
        raise ValueError(f"Unknown property type {property_type!r}")
    logger.info("Marked %s %s as %s", property_type, property_id, "occupied" if occupied else "vacant")
