from __future__ import annotations

from flask import Blueprint

from app.fbms.forms import Field
from app.fbms.modules.documents.service import documents_for_member
from app.fbms.modules.family.service import RELATIONSHIPS, members
from app.fbms.modules.insurance.service import policies_for_member
from app.fbms.views import Column, CrudScreen, ViewState, register_crud

bp = Blueprint("family", __name__)

MEMBER_FIELDS = [
    Field("full_name", required=True),
    Field("nickname", required=True),
    Field("relationship", kind="select", required=True, choices=RELATIONSHIPS),
    Field("date_of_birth", kind="date"),
    Field("phone", kind="tel"),
    Field("email", kind="email"),
    Field("address", kind="textarea"),
    Field("profile_photo", "Profile photo URL"),
]


def _member_detail(member) -> dict:
    return {
        "documents": ViewState.load(lambda: documents_for_member(member.id)),
        "policies": ViewState.load(lambda: policies_for_member(member.id)),
    }


screen = register_crud(
    bp,
    CrudScreen(
        name="members",
        title="Family Members",
        url="/family",
        service=members,
        fields=MEMBER_FIELDS,
        columns=[
            Column("full_name", "Name", link=True),
            Column("nickname"),
            Column("relationship", kind="enum"),
            Column("phone"),
            Column("email"),
        ],
        detail_extra=_member_detail,
        detail_template="family/detail.html",
    ),
)
