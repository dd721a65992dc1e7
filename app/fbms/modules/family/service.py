from __future__ import annotations

from app.fbms.crud import TableService
from app.fbms.modules.family.models import FamilyMember

RELATIONSHIPS = ("self", "spouse", "son", "daughter", "father", "mother", "brother", "sister", "other")

members: TableService[FamilyMember] = TableService(FamilyMember, label="family members", singular="family member")


def member_choices() -> list[tuple[str, str]]:
    """(id, name) pairs for select inputs, ordered by name."""
    rows = members.select("fetch family members", order_by="full_name", descending=False)
    return [(m.id, m.full_name) for m in rows]
