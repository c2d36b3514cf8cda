from __future__ import annotations

from sqlalchemy.orm import Session

from app.musaib.constants import PERMISSIONS, ROLE_NAMES, ROLE_PERMISSIONS
from app.musaib.models import Permission, Role


def seed_roles(s: Session) -> dict[str, Role]:
    """
    Create the portal roles and permissions in an idempotent way.
    Existing grants are extended, never revoked.
    """
    perms: dict[str, Permission] = {}
    for key, name in PERMISSIONS.items():
        p = s.query(Permission).filter(Permission.key == key).one_or_none()
        if not p:
            p = Permission(key=key, name=name)
            s.add(p)
        perms[key] = p

    roles: dict[str, Role] = {}
    for role_key, perm_keys in ROLE_PERMISSIONS.items():
        r = s.query(Role).filter(Role.key == role_key.value).one_or_none()
        if not r:
            r = Role(key=role_key.value, name=ROLE_NAMES[role_key])
            s.add(r)
        for k in perm_keys:
            if perms[k] not in r.permissions:
                r.permissions.append(perms[k])
        roles[role_key.value] = r
    s.flush()
    return roles
