from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.musaib.auth import current_user
from app.musaib.db import db_session
from app.musaib.modules.notifications.service import list_notifications, mark_read
from app.musaib.rbac import require_permission

bp = Blueprint("notifications", __name__)


@bp.get("/")
@require_permission("notifications.view")
def notifications_list():
    s = db_session()
    unread_only = (request.args.get("unread") or "").strip() == "1"
    items = list_notifications(s, current_user().id, unread_only=unread_only)
    return jsonify({"notifications": [n.to_dict() for n in items]})


@bp.post("/<int:notification_id>/read")
@require_permission("notifications.view")
def notifications_mark_read(notification_id: int):
    s = db_session()
    n = mark_read(s, notification_id, current_user().id)
    s.commit()
    return jsonify(n.to_dict())
