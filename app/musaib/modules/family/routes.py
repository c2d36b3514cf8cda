from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.musaib.attachments import uploaded_file_from_request
from app.musaib.auth import current_user
from app.musaib.db import db_session
from app.musaib.errors import NotFoundError
from app.musaib.modules.family.eligibility import can_add_relation, remaining_slots
from app.musaib.modules.family.models import FamilyMember
from app.musaib.modules.family.service import (
    FamilyMemberPatch,
    add_family_member,
    delete_family_member,
    get_family_member,
    list_family_members,
    update_family_member,
)
from app.musaib.rbac import require_permission
from app.musaib.storage import current_storage
from app.musaib.utils import request_payload

bp = Blueprint("family", __name__)


def _owned_member(s, member_id: int) -> FamilyMember:
    fm = get_family_member(s, member_id)
    if fm.owner_user_id != current_user().id:
        raise NotFoundError(f"Family member {member_id} not found.")
    return fm


@bp.get("/")
@require_permission("family.view")
def family_list():
    s = db_session()
    members = list_family_members(s, current_user().id)
    return jsonify({"members": [m.to_dict() for m in members], "remaining": remaining_slots(members)})


@bp.post("/")
@require_permission("family.edit")
def family_add():
    s = db_session()
    u = current_user()
    fm = add_family_member(
        s,
        u.id,
        request_payload(),
        storage=current_storage(),
        document=uploaded_file_from_request(request.files.get("justification_document")),
    )
    s.commit()
    return jsonify(fm.to_dict()), 201


@bp.patch("/<int:member_id>")
@require_permission("family.edit")
def family_update(member_id: int):
    s = db_session()
    _owned_member(s, member_id)
    patch = FamilyMemberPatch.from_payload(
        request_payload(),
        document=uploaded_file_from_request(request.files.get("justification_document")),
    )
    fm = update_family_member(s, member_id, patch, storage=current_storage())
    s.commit()
    return jsonify(fm.to_dict())


@bp.delete("/<int:member_id>")
@require_permission("family.edit")
def family_delete(member_id: int):
    s = db_session()
    _owned_member(s, member_id)
    delete_family_member(s, member_id)
    s.commit()
    return "", 204


@bp.get("/eligibility/<relation>")
@require_permission("family.view")
def family_eligibility(relation: str):
    s = db_session()
    members = list_family_members(s, current_user().id)
    return jsonify({"relation": relation, "allowed": can_add_relation(members, relation)})
