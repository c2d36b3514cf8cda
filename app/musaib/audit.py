import json
import logging
from typing import Any

from flask import g, has_app_context
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.musaib.constants import AUDIT_SEVERITIES
from app.musaib.models import AuditEvent, Profile

logger = logging.getLogger(__name__)


def create_log(
    s: Session,
    title: str,
    message: str,
    severity: str = "info",
    category: str = "Administration",
    *,
    actor: Profile | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent | None:
    """
    Append-only audit log helper.

    Fire-and-forget: the event is written inside a savepoint so a failing
    audit insert never undoes the change being audited. Returns None when
    the write failed.
    """
    if severity not in AUDIT_SEVERITIES:
        severity = "info"
    rid = getattr(g, "request_id", None) if has_app_context() else None
    ev = AuditEvent(
        request_id=rid,
        actor_profile_id=actor.id if actor else None,
        actor_email=actor.email if actor else None,
        title=title,
        message=message,
        severity=severity,
        category=category,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    try:
        with s.begin_nested():
            s.add(ev)
    except SQLAlchemyError as e:
        logger.error("Audit log write failed (title=%s request_id=%s): %s", title, rid, e)
        return None
    return ev


def list_audit_events(
    s: Session, *, category: str | None = None, severity: str | None = None, limit: int = 200
) -> list[AuditEvent]:
    q = s.query(AuditEvent)
    if category:
        q = q.filter(AuditEvent.category == category)
    if severity:
        q = q.filter(AuditEvent.severity == severity)
    return q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()
