"""
Family-relation cardinality rules.

A member may register at most one spouse (husband or wife, not both), one
father, one mother, one step-father, one step-mother and six children.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from app.musaib.constants import MAX_CHILDREN, SPOUSE_RELATIONS, Relation

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.musaib.modules.family.models import FamilyMember


RELATION_CAPS: dict[str, int] = {
    "spouse": 1,
    Relation.FATHER.value: 1,
    Relation.MOTHER.value: 1,
    Relation.STEP_FATHER.value: 1,
    Relation.STEP_MOTHER.value: 1,
    Relation.CHILD.value: MAX_CHILDREN,
}


def parse_relation(value: str | Relation | None) -> Relation | None:
    if isinstance(value, Relation):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Relation(value.strip())
    except ValueError:
        return None


def relation_category(relation: Relation) -> str:
    """Both spouse variants count against the same slot."""
    if relation in SPOUSE_RELATIONS:
        return "spouse"
    return relation.value


def relation_counts(members: Iterable["FamilyMember"]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for m in members:
        rel = parse_relation(m.relation)
        if rel is None:
            continue
        cat = relation_category(rel)
        counts[cat] = counts.get(cat, 0) + 1
    return counts


def can_add_relation(members: Iterable["FamilyMember"], relation: str | Relation | None) -> bool:
    """Pure predicate over a snapshot of one owner's family members."""
    rel = parse_relation(relation)
    if rel is None:
        return False
    cat = relation_category(rel)
    return relation_counts(members).get(cat, 0) < RELATION_CAPS[cat]


def remaining_slots(members: Iterable["FamilyMember"]) -> dict[str, int]:
    counts = relation_counts(members)
    return {cat: max(cap - counts.get(cat, 0), 0) for cat, cap in RELATION_CAPS.items()}


def can_add_relation_for_owner(s: "Session", owner_id: int, relation: str | Relation | None) -> bool:
    from app.musaib.modules.family.models import FamilyMember

    members = s.query(FamilyMember).filter(FamilyMember.owner_user_id == owner_id).all()
    return can_add_relation(members, relation)
