from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from app.musaib.attachments import UploadedFile, attach
from app.musaib.constants import FAMILY_DOCUMENTS
from app.musaib.errors import ConstraintViolation, NotFoundError, PersistenceError, ValidationError
from app.musaib.models import Profile
from app.musaib.modules.family.eligibility import can_add_relation, parse_relation
from app.musaib.modules.family.models import FamilyMember
from app.musaib.utils import clean_str, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.musaib.storage import Storage

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


class _Clear:
    def __repr__(self) -> str:
        return "CLEAR"


# Field not part of the update.
UNSET: Any = _Unset()
# Explicit removal of the justification document.
CLEAR: Any = _Clear()

_TEXT_FIELDS = ("first_name", "last_name", "national_id", "birth_certificate_ref")
_REQUIRED_FIELDS = ("first_name", "last_name")


@dataclass
class FamilyMemberPatch:
    """
    Partial update. Every field defaults to UNSET; only fields explicitly
    provided are written. The document accepts an UploadedFile (replace),
    CLEAR (remove) or UNSET (keep).
    """

    first_name: str | None = UNSET
    last_name: str | None = UNSET
    national_id: str | None = UNSET
    birth_certificate_ref: str | None = UNSET
    date_of_birth: date | str | None = UNSET
    relation: str | None = UNSET
    justification_document: UploadedFile | _Clear | None = UNSET

    @classmethod
    def from_payload(cls, payload: dict[str, Any], document: UploadedFile | None = None) -> "FamilyMemberPatch":
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name != "justification_document" and f.name in payload:
                kwargs[f.name] = payload[f.name]
        if document is not None:
            kwargs["justification_document"] = document
        elif "justification_document" in payload and payload["justification_document"] in (None, ""):
            kwargs["justification_document"] = CLEAR
        elif str(payload.get("clear_document") or "").strip().lower() in ("1", "true", "yes", "on"):
            kwargs["justification_document"] = CLEAR
        return cls(**kwargs)

    def provided(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}


def list_family_members(s: "Session", owner_id: int) -> list[FamilyMember]:
    try:
        return (
            s.query(FamilyMember)
            .filter(FamilyMember.owner_user_id == owner_id)
            .order_by(FamilyMember.created_at.desc(), FamilyMember.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.error("List family members failed (owner_id=%s): %s", owner_id, e)
        raise PersistenceError("Could not load family members.") from e


def get_family_member(s: "Session", member_id: int) -> FamilyMember:
    fm = s.get(FamilyMember, member_id)
    if fm is None:
        raise NotFoundError(f"Family member {member_id} not found.")
    return fm


def _lock_owner(s: "Session", owner_id: int) -> Profile:
    """
    Row lock on the owner's profile: serializes concurrent registrations for
    the same owner on Postgres. SQLite ignores FOR UPDATE.
    """
    owner = s.query(Profile).filter(Profile.id == owner_id).with_for_update().one_or_none()
    if owner is None:
        raise NotFoundError(f"Profile {owner_id} not found.")
    return owner


def _validated_relation(value: Any) -> str:
    rel = parse_relation(value)
    if rel is None:
        raise ValidationError(f"Unknown relation: {value!r}.")
    return rel.value


def _validated_birth_date(value: Any) -> date | None:
    dob = parse_date(value, "date_of_birth")
    if dob is not None and dob > date.today():
        raise ValidationError("date_of_birth cannot be in the future.")
    return dob


def add_family_member(
    s: "Session",
    owner_id: int,
    payload: dict[str, Any],
    *,
    storage: "Storage",
    document: UploadedFile | None = None,
) -> FamilyMember:
    """Register a dependent after checking the owner's relation caps."""
    missing = [k for k in _REQUIRED_FIELDS if not clean_str(payload.get(k))]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}.")
    relation = _validated_relation(payload.get("relation"))
    dob = _validated_birth_date(payload.get("date_of_birth"))

    _lock_owner(s, owner_id)
    existing = s.query(FamilyMember).filter(FamilyMember.owner_user_id == owner_id).all()
    if not can_add_relation(existing, relation):
        raise ConstraintViolation(f"Relation limit reached for {relation!r}.")

    doc = attach(storage, document, FAMILY_DOCUMENTS) if document is not None else None

    fm = FamilyMember(
        owner_user_id=owner_id,
        first_name=clean_str(payload.get("first_name")),
        last_name=clean_str(payload.get("last_name")),
        national_id=clean_str(payload.get("national_id")),
        birth_certificate_ref=clean_str(payload.get("birth_certificate_ref")),
        date_of_birth=dob,
        relation=relation,
        justification_document=doc,
    )
    try:
        s.add(fm)
        s.flush()
    except SQLAlchemyError as e:
        logger.error("Add family member failed (owner_id=%s relation=%s): %s", owner_id, relation, e)
        raise PersistenceError("Could not save family member.") from e

    logger.info("Family member added id=%s owner_id=%s relation=%s", fm.id, owner_id, relation)
    return fm


def update_family_member(
    s: "Session",
    member_id: int,
    patch: FamilyMemberPatch,
    *,
    storage: "Storage",
) -> FamilyMember:
    """
    Apply the fields `patch` provides. Every field and the relation cap are
    checked before the row is touched, so a rejected patch leaves it as it was.
    """
    fm = get_family_member(s, member_id)
    changes = patch.provided()

    values: dict[str, Any] = {}
    for name in _TEXT_FIELDS:
        if name in changes:
            value = clean_str(changes[name])
            if name in _REQUIRED_FIELDS and value is None:
                raise ValidationError(f"{name} cannot be blank.")
            values[name] = value

    if "date_of_birth" in changes:
        values["date_of_birth"] = _validated_birth_date(changes["date_of_birth"])

    if "relation" in changes:
        relation = _validated_relation(changes["relation"])
        if relation != fm.relation:
            _lock_owner(s, fm.owner_user_id)
            others = (
                s.query(FamilyMember)
                .filter(FamilyMember.owner_user_id == fm.owner_user_id, FamilyMember.id != fm.id)
                .all()
            )
            if not can_add_relation(others, relation):
                raise ConstraintViolation(f"Relation limit reached for {relation!r}.")
            values["relation"] = relation

    for name, value in values.items():
        setattr(fm, name, value)

    doc = changes.get("justification_document", UNSET)
    if isinstance(doc, UploadedFile):
        uploaded = attach(storage, doc, FAMILY_DOCUMENTS)
        if uploaded is not None:
            fm.justification_document = uploaded
        else:
            logger.warning("Document replacement skipped for family member id=%s (upload failed)", fm.id)
    elif doc is CLEAR or doc is None:
        fm.justification_document = None

    try:
        s.flush()
    except SQLAlchemyError as e:
        logger.error("Update family member failed (id=%s): %s", member_id, e)
        raise PersistenceError("Could not update family member.") from e
    return fm


def delete_family_member(s: "Session", member_id: int) -> None:
    """Hard delete. The stored document is left to the storage backend."""
    fm = get_family_member(s, member_id)
    try:
        s.delete(fm)
        s.flush()
    except SQLAlchemyError as e:
        logger.error("Delete family member failed (id=%s): %s", member_id, e)
        raise PersistenceError("Could not delete family member.") from e
    logger.info("Family member deleted id=%s owner_id=%s", member_id, fm.owner_user_id)
