"""
Demand lifecycle.

    en_attente --controller--> acceptee | rejetee
    acceptee   --administrator--> validee | rejetee

`rejetee` and `validee` are terminal. Each stage stamps its own actor
fields; the other stage's fields are never touched, so a validated demand
carries both the controller and the administrator decision.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from app.musaib.attachments import UploadedFile, attach
from app.musaib.constants import DEMAND_DOCUMENTS, SERVICE_CATALOG, DemandStatus, UserRole
from app.musaib.errors import InvalidTransitionError, NotFoundError, PersistenceError, ValidationError
from app.musaib.modules.demands.models import Demand
from app.musaib.modules.notifications.service import notify_best_effort
from app.musaib.utils import clean_str, parse_amount, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.musaib.storage import Storage

logger = logging.getLogger(__name__)


# current status -> (role acting at that stage, allowed targets)
DEMAND_TRANSITIONS: dict[DemandStatus, tuple[UserRole, frozenset[DemandStatus]]] = {
    DemandStatus.PENDING: (UserRole.CONTROLLER, frozenset({DemandStatus.ACCEPTED, DemandStatus.REJECTED})),
    DemandStatus.ACCEPTED: (UserRole.ADMINISTRATOR, frozenset({DemandStatus.VALIDATED, DemandStatus.REJECTED})),
}

TERMINAL_STATUSES = frozenset({DemandStatus.REJECTED, DemandStatus.VALIDATED})

_DECISION_LABELS = {
    DemandStatus.ACCEPTED: "acceptée par le contrôleur",
    DemandStatus.REJECTED: "rejetée",
    DemandStatus.VALIDATED: "validée",
}


def parse_status(value: str | DemandStatus | None) -> DemandStatus:
    if isinstance(value, DemandStatus):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Unknown demand status: {value!r}.")
    try:
        return DemandStatus(value.strip())
    except ValueError as e:
        raise ValidationError(f"Unknown demand status: {value!r}.") from e


def stage_role(status: str | DemandStatus) -> UserRole | None:
    """Role expected to act on a demand in `status`, None when terminal."""
    stage = DEMAND_TRANSITIONS.get(parse_status(status))
    return stage[0] if stage else None


def allowed_transitions(status: str | DemandStatus) -> frozenset[DemandStatus]:
    stage = DEMAND_TRANSITIONS.get(parse_status(status))
    return stage[1] if stage else frozenset()


def validate_demand_payload(form: dict[str, Any]) -> list[str]:
    """Returns a list of errors; empty when the payload is acceptable."""
    errors = []
    service_type = clean_str(form.get("service_type"))
    if not service_type:
        errors.append("service_type is required.")
    if not clean_str(form.get("beneficiary_name")):
        errors.append("beneficiary_name is required.")

    try:
        amount = parse_amount(form.get("amount"))
    except ValidationError as e:
        errors.append(str(e))
        amount = None
    if amount is not None:
        if amount < 0:
            errors.append("amount cannot be negative.")
        ceiling = SERVICE_CATALOG.get(service_type or "")
        if ceiling is not None and amount > ceiling:
            errors.append(f"amount exceeds the {ceiling} EUR ceiling for {service_type}.")

    try:
        parse_date(form.get("event_date"), "event_date")
    except ValidationError as e:
        errors.append(str(e))

    payment_info = form.get("payment_info")
    if payment_info is not None and not isinstance(payment_info, dict):
        errors.append("payment_info must be an object.")
    return errors


def get_demand(s: "Session", demand_id: int) -> Demand:
    d = s.get(Demand, demand_id)
    if d is None:
        raise NotFoundError(f"Demand {demand_id} not found.")
    return d


def create_demand(
    s: "Session",
    member_id: int,
    member_name: str,
    form: dict[str, Any],
    *,
    storage: "Storage",
    document: UploadedFile | None = None,
) -> Demand:
    errors = validate_demand_payload(form)
    if errors:
        raise ValidationError(" ".join(errors))

    doc = attach(storage, document, DEMAND_DOCUMENTS) if document is not None else None

    d = Demand(
        member_id=member_id,
        member_name=member_name,
        service_type=clean_str(form.get("service_type")),
        beneficiary_name=clean_str(form.get("beneficiary_name")),
        beneficiary_relation=clean_str(form.get("beneficiary_relation")),
        amount=parse_amount(form.get("amount")),
        event_date=parse_date(form.get("event_date"), "event_date"),
        justification_document=doc,
        payment_info=form.get("payment_info"),
        status=DemandStatus.PENDING.value,
        created_at=datetime.utcnow(),
    )
    try:
        s.add(d)
        s.flush()
    except SQLAlchemyError as e:
        logger.error("Create demand failed (member_id=%s service_type=%s): %s", member_id, d.service_type, e)
        raise PersistenceError("Could not save demand.") from e

    logger.info("Demand created id=%s member_id=%s service_type=%s", d.id, member_id, d.service_type)
    notify_best_effort(
        s,
        member_id,
        "Demande enregistrée",
        f"Votre demande « {d.service_type} » pour {d.beneficiary_name} a été enregistrée et attend le contrôle.",
        demand_id=d.id,
    )
    return d


def update_demand_status(
    s: "Session",
    demand_id: int,
    new_status: str | DemandStatus,
    actor_id: int,
    actor_name: str,
    comment: str | None = None,
    *,
    actor_role: str | UserRole,
) -> Demand:
    """
    Apply a controller or administrator decision.

    The stage is derived from the current status and `actor_role` must be
    the role owning it. Raises InvalidTransitionError for moves outside the
    transition table, out of a terminal status, or by any other role; the
    record is left unchanged in every such case.
    """
    target = parse_status(new_status)
    d = get_demand(s, demand_id)
    current = parse_status(d.status)

    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Demand {demand_id} is {current.value}; no further transition.")
    role, targets = DEMAND_TRANSITIONS[current]
    if target not in targets:
        raise InvalidTransitionError(f"Cannot move demand {demand_id} from {current.value} to {target.value}.")
    if actor_role != role:
        raise InvalidTransitionError(f"Demand {demand_id} ({current.value}) awaits a {role.value} decision.")

    today = date.today()
    if role == UserRole.CONTROLLER:
        d.controller_id = actor_id
        d.controller_name = actor_name
        d.processing_date = today
    else:
        d.administrator_id = actor_id
        d.administrator_name = actor_name
        d.validation_date = today
    d.status = target.value
    if comment is not None:
        d.comment = clean_str(comment)

    try:
        s.flush()
    except SQLAlchemyError as e:
        logger.error("Update demand status failed (id=%s target=%s): %s", demand_id, target.value, e)
        raise PersistenceError("Could not update demand status.") from e

    logger.info(
        "Demand id=%s %s -> %s by %s id=%s", demand_id, current.value, target.value, role.value, actor_id
    )
    notify_best_effort(
        s,
        d.member_id,
        "Suivi de demande",
        f"Votre demande « {d.service_type} » a été {_DECISION_LABELS[target]}.",
        demand_id=d.id,
    )
    return d


def delete_demand(s: "Session", demand_id: int) -> None:
    d = get_demand(s, demand_id)
    try:
        s.delete(d)
        s.flush()
    except SQLAlchemyError as e:
        logger.error("Delete demand failed (id=%s): %s", demand_id, e)
        raise PersistenceError("Could not delete demand.") from e
    logger.info("Demand deleted id=%s", demand_id)
