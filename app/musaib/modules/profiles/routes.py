from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.musaib.audit import list_audit_events
from app.musaib.auth import current_user
from app.musaib.db import db_session
from app.musaib.models import Profile
from app.musaib.modules.profiles.service import (
    activate_profile,
    create_profile,
    delete_profile,
    list_profiles,
    suspend_profile,
    update_profile,
)
from app.musaib.rbac import require_permission
from app.musaib.utils import request_payload

bp = Blueprint("profiles", __name__)


def _profile_dict(p: Profile) -> dict:
    return {
        "id": p.id,
        "email": p.email,
        "full_name": p.full_name,
        "phone": p.phone,
        "role": p.role,
        "is_active": p.is_active,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


@bp.get("/profiles")
@require_permission("profiles.view")
def profiles_list():
    s = db_session()
    profiles = list_profiles(s, role=(request.args.get("role") or "").strip() or None)
    return jsonify({"profiles": [_profile_dict(p) for p in profiles]})


@bp.post("/profiles")
@require_permission("profiles.manage")
def profiles_create():
    s = db_session()
    p = create_profile(s, request_payload(), actor=current_user())
    s.commit()
    return jsonify(_profile_dict(p)), 201


@bp.patch("/profiles/<int:profile_id>")
@require_permission("profiles.manage")
def profiles_update(profile_id: int):
    s = db_session()
    p = update_profile(s, profile_id, request_payload(), actor=current_user())
    s.commit()
    return jsonify(_profile_dict(p))


@bp.post("/profiles/<int:profile_id>/activate")
@require_permission("profiles.manage")
def profiles_activate(profile_id: int):
    s = db_session()
    p = activate_profile(s, profile_id, actor=current_user())
    s.commit()
    return jsonify(_profile_dict(p))


@bp.post("/profiles/<int:profile_id>/suspend")
@require_permission("profiles.manage")
def profiles_suspend(profile_id: int):
    s = db_session()
    p = suspend_profile(s, profile_id, actor=current_user())
    s.commit()
    return jsonify(_profile_dict(p))


@bp.delete("/profiles/<int:profile_id>")
@require_permission("profiles.manage")
def profiles_delete(profile_id: int):
    s = db_session()
    delete_profile(s, profile_id, actor=current_user())
    s.commit()
    return "", 204


@bp.get("/logs")
@require_permission("audit.view")
def audit_logs():
    s = db_session()
    try:
        limit = min(max(int(request.args.get("limit") or 200), 1), 1000)
    except ValueError:
        limit = 200
    events = list_audit_events(
        s,
        category=(request.args.get("category") or "").strip() or None,
        severity=(request.args.get("severity") or "").strip() or None,
        limit=limit,
    )
    return jsonify(
        {
            "events": [
                {
                    "id": e.id,
                    "created_at": e.created_at.isoformat() if e.created_at else None,
                    "title": e.title,
                    "message": e.message,
                    "severity": e.severity,
                    "category": e.category,
                    "actor_email": e.actor_email,
                    "entity_type": e.entity_type,
                    "entity_id": e.entity_id,
                }
                for e in events
            ]
        }
    )
