"""
Role-scoped views over demands.

- membre: own demands only
- controleur: every demand (full pipeline)
- administrateur: demands accepted by a controller, awaiting validation
- anything else: nothing
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.musaib.constants import DemandStatus, UserRole
from app.musaib.errors import PersistenceError
from app.musaib.modules.demands.models import Demand

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)


def _newest_first(q: "Query") -> "Query":
    return q.order_by(Demand.created_at.desc(), Demand.id.desc())


def scoped_query(s: "Session", role: str | UserRole | None, user_id: int | None = None) -> "Query | None":
    """Base query for what `role` may see, or None when it may see nothing."""
    q = s.query(Demand)
    if role == UserRole.MEMBER:
        if user_id is None:
            return None
        return q.filter(Demand.member_id == user_id)
    if role == UserRole.CONTROLLER:
        return q
    if role == UserRole.ADMINISTRATOR:
        return q.filter(Demand.status == DemandStatus.ACCEPTED.value)
    return None


def _all(q: "Query", what: str) -> list[Demand]:
    try:
        return _newest_first(q).all()
    except SQLAlchemyError as e:
        logger.error("Demand query failed (%s): %s", what, e)
        raise PersistenceError("Could not load demands.") from e


def list_demands_for_role(s: "Session", role: str | UserRole | None, user_id: int | None = None) -> list[Demand]:
    q = scoped_query(s, role, user_id)
    if q is None:
        return []
    return _all(q, f"role={role} user_id={user_id}")


def list_all_demands(s: "Session") -> list[Demand]:
    return _all(s.query(Demand), "all")


def list_demands_by_member(s: "Session", member_id: int) -> list[Demand]:
    return _all(s.query(Demand).filter(Demand.member_id == member_id), f"member_id={member_id}")


def list_demands_by_status(s: "Session", status: str | DemandStatus) -> list[Demand]:
    value = status.value if isinstance(status, DemandStatus) else status
    return _all(s.query(Demand).filter(Demand.status == value), f"status={value}")


def demand_status_counts(s: "Session", role: str | UserRole | None, user_id: int | None = None) -> dict[str, int]:
    """Per-status totals within the role's scope (dashboard cards)."""
    counts = {st.value: 0 for st in DemandStatus}
    q = scoped_query(s, role, user_id)
    if q is None:
        return counts
    try:
        rows = q.with_entities(Demand.status, func.count(Demand.id)).group_by(Demand.status).all()
    except SQLAlchemyError as e:
        logger.error("Demand stats query failed (role=%s user_id=%s): %s", role, user_id, e)
        raise PersistenceError("Could not load demand statistics.") from e
    for status, n in rows:
        counts[status] = n
    return counts
