from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.musaib.audit import create_log
from app.musaib.constants import UserRole
from app.musaib.errors import NotFoundError, PersistenceError, ValidationError
from app.musaib.models import Profile
from app.musaib.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("full_name", "phone", "role", "email")


def _validated_role(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"Unknown role: {value!r}.")
    try:
        return UserRole(value.strip()).value
    except ValueError as e:
        raise ValidationError(f"Unknown role: {value!r}.") from e


def _flush(s: "Session", what: str) -> None:
    try:
        s.flush()
    except IntegrityError as e:
        logger.warning("%s rejected by the database: %s", what, e)
        raise ValidationError(f"{what}: email already in use.") from e
    except SQLAlchemyError as e:
        logger.error("%s failed: %s", what, e)
        raise PersistenceError(f"{what} failed.") from e


def get_profile(s: "Session", profile_id: int) -> Profile:
    p = s.get(Profile, profile_id)
    if p is None:
        raise NotFoundError(f"Profile {profile_id} not found.")
    return p


def list_profiles(s: "Session", role: str | None = None) -> list[Profile]:
    q = s.query(Profile)
    if role:
        q = q.filter(Profile.role == _validated_role(role))
    return q.order_by(Profile.created_at.desc(), Profile.id.desc()).all()


def create_profile(s: "Session", payload: dict[str, Any], actor: Profile | None = None) -> Profile:
    email = (clean_str(payload.get("email")) or "").lower()
    full_name = clean_str(payload.get("full_name"))
    if not email or not full_name:
        raise ValidationError("email and full_name are required.")
    p = Profile(
        email=email,
        full_name=full_name,
        phone=clean_str(payload.get("phone")),
        role=_validated_role(payload.get("role") or UserRole.MEMBER.value),
        is_active=bool(payload.get("is_active", True)),
    )
    s.add(p)
    _flush(s, "Create profile")
    create_log(
        s,
        "Création utilisateur",
        f"Utilisateur {p.id} ({p.email}) créé avec le rôle {p.role}",
        "success",
        "Administration",
        actor=actor,
        entity_type="Profile",
        entity_id=str(p.id),
    )
    return p


def update_profile(s: "Session", profile_id: int, payload: dict[str, Any], actor: Profile | None = None) -> Profile:
    p = get_profile(s, profile_id)
    changes: dict[str, dict[str, Any]] = {}
    for name in _EDITABLE_FIELDS:
        if name not in payload:
            continue
        value = clean_str(payload[name])
        if name == "role":
            value = _validated_role(value)
        elif name == "email":
            value = (value or "").lower() or None
        if name in ("full_name", "email", "role") and value is None:
            raise ValidationError(f"{name} cannot be blank.")
        if value != getattr(p, name):
            changes[name] = {"old": getattr(p, name), "new": value}
            setattr(p, name, value)
    _flush(s, "Update profile")
    create_log(
        s,
        "Mise à jour profil",
        f"Profil mis à jour pour l'utilisateur {profile_id}",
        "info",
        "Administration",
        actor=actor,
        entity_type="Profile",
        entity_id=str(profile_id),
        metadata={"changes": changes},
    )
    return p


def _set_active(s: "Session", profile_id: int, active: bool, actor: Profile | None) -> Profile:
    p = get_profile(s, profile_id)
    p.is_active = active
    _flush(s, "Activate user" if active else "Suspend user")
    if active:
        create_log(s, "Activation utilisateur", f"Utilisateur {profile_id} activé", "success", "Administration",
                   actor=actor, entity_type="Profile", entity_id=str(profile_id))
    else:
        create_log(s, "Suspension utilisateur", f"Utilisateur {profile_id} suspendu", "warning", "Administration",
                   actor=actor, entity_type="Profile", entity_id=str(profile_id))
    logger.info("Profile id=%s is_active=%s", profile_id, active)
    return p


def activate_profile(s: "Session", profile_id: int, actor: Profile | None = None) -> Profile:
    return _set_active(s, profile_id, True, actor)


def suspend_profile(s: "Session", profile_id: int, actor: Profile | None = None) -> Profile:
    return _set_active(s, profile_id, False, actor)


def delete_profile(s: "Session", profile_id: int, actor: Profile | None = None) -> None:
    p = get_profile(s, profile_id)
    email = p.email
    s.delete(p)
    _flush(s, "Delete profile")
    create_log(
        s,
        "Suppression utilisateur",
        f"Utilisateur {profile_id} ({email}) supprimé",
        "warning",
        "Administration",
        actor=actor,
        entity_type="Profile",
        entity_id=str(profile_id),
    )
