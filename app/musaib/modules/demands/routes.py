from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.musaib.attachments import uploaded_file_from_request
from app.musaib.auth import current_user
from app.musaib.db import db_session
from app.musaib.errors import NotFoundError, ValidationError
from app.musaib.modules.demands.models import Demand
from app.musaib.modules.demands.queries import demand_status_counts, list_demands_for_role, scoped_query
from app.musaib.modules.demands.service import create_demand, delete_demand, update_demand_status
from app.musaib.rbac import require_permission
from app.musaib.storage import current_storage
from app.musaib.utils import clean_str, request_payload

bp = Blueprint("demands", __name__)


@bp.get("/")
@require_permission("demands.view")
def demands_list():
    s = db_session()
    u = current_user()
    demands = list_demands_for_role(s, u.role, u.id)
    return jsonify({"role": u.role, "demands": [d.to_dict() for d in demands]})


@bp.get("/stats")
@require_permission("demands.view")
def demands_stats():
    s = db_session()
    u = current_user()
    return jsonify({"role": u.role, "counts": demand_status_counts(s, u.role, u.id)})


@bp.get("/<int:demand_id>")
@require_permission("demands.view")
def demand_detail(demand_id: int):
    s = db_session()
    u = current_user()
    q = scoped_query(s, u.role, u.id)
    d = q.filter(Demand.id == demand_id).one_or_none() if q is not None else None
    if d is None:
        raise NotFoundError(f"Demand {demand_id} not found.")
    return jsonify(d.to_dict())


@bp.post("/")
@require_permission("demands.create")
def demand_create():
    s = db_session()
    u = current_user()
    d = create_demand(
        s,
        u.id,
        u.full_name,
        request_payload(),
        storage=current_storage(),
        document=uploaded_file_from_request(request.files.get("justification_document")),
    )
    s.commit()
    return jsonify(d.to_dict()), 201


@bp.post("/<int:demand_id>/status")
@require_permission("demands.review", "demands.validate")
def demand_status(demand_id: int):
    s = db_session()
    u = current_user()
    payload = request_payload()
    status = clean_str(payload.get("status"))
    if not status:
        raise ValidationError("status is required.")
    d = update_demand_status(
        s,
        demand_id,
        status,
        u.id,
        u.full_name,
        payload.get("comment"),
        actor_role=u.role,
    )
    s.commit()
    return jsonify(d.to_dict())


@bp.delete("/<int:demand_id>")
@require_permission("demands.delete")
def demand_delete(demand_id: int):
    s = db_session()
    delete_demand(s, demand_id)
    s.commit()
    return "", 204
