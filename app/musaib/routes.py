from flask import Blueprint, g, jsonify

from app.musaib.rbac import require_permission

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access.
    """
    return "ok", 200


@bp.get("/me")
@require_permission("demands.view")
def me():
    u = g.current_user
    perms = sorted(p.key for p in u.role_ref.permissions)
    return jsonify(
        {"id": u.id, "email": u.email, "full_name": u.full_name, "role": u.role, "permissions": perms}
    )
