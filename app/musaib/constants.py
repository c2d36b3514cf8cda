"""
Central constants for the MuSAIB portal.
"""
from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    MEMBER = "membre"
    CONTROLLER = "controleur"
    ADMINISTRATOR = "administrateur"


class Relation(str, Enum):
    SPOUSE_M = "epoux"
    SPOUSE_F = "epouse"
    CHILD = "enfant"
    FATHER = "pere"
    MOTHER = "mere"
    STEP_FATHER = "beau_pere"
    STEP_MOTHER = "belle_mere"


class DemandStatus(str, Enum):
    PENDING = "en_attente"
    ACCEPTED = "acceptee"
    REJECTED = "rejetee"
    VALIDATED = "validee"


# Both spouse variants share a single slot.
SPOUSE_RELATIONS = frozenset({Relation.SPOUSE_M, Relation.SPOUSE_F})

MAX_CHILDREN = 6

# Ceiling (EUR) per catalog service; service types outside the catalog have no ceiling.
SERVICE_CATALOG: dict[str, int] = {
    "Scolaire": 500,
    "Santé": 1000,
    "Décès": 2000,
}

# Upload categories (storage key prefixes)
FAMILY_DOCUMENTS = "family"
DEMAND_DOCUMENTS = "demands"

# Audit severities, as displayed in the admin log viewer
AUDIT_SEVERITIES = ("info", "success", "warning", "error")

# permission key -> display name, granted per role
PERMISSIONS: dict[str, str] = {
    "family.view": "Family: view",
    "family.edit": "Family: register/edit dependents",
    "demands.view": "Demands: view",
    "demands.create": "Demands: submit",
    "demands.review": "Demands: controller review",
    "demands.validate": "Demands: final validation",
    "demands.delete": "Demands: delete",
    "profiles.view": "Profiles: view",
    "profiles.manage": "Profiles: manage",
    "audit.view": "Logs & Audit: view",
    "notifications.view": "Notifications: view",
}

ROLE_PERMISSIONS: dict[UserRole, tuple[str, ...]] = {
    UserRole.MEMBER: ("family.view", "family.edit", "demands.view", "demands.create", "notifications.view"),
    UserRole.CONTROLLER: ("demands.view", "demands.review", "notifications.view"),
    UserRole.ADMINISTRATOR: (
        "demands.view",
        "demands.validate",
        "demands.delete",
        "profiles.view",
        "profiles.manage",
        "audit.view",
        "notifications.view",
    ),
}

ROLE_NAMES: dict[UserRole, str] = {
    UserRole.MEMBER: "Adhérent",
    UserRole.CONTROLLER: "Contrôleur",
    UserRole.ADMINISTRATOR: "Administrateur",
}
