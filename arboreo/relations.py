"""Relationship bookkeeping between people.

The typed list on ``Person.relationships`` is the only stored shape. Older
payloads that carry ``parents``/``spouse``/``children`` id arrays go through
``relationships_from_arrays`` once, when the Person model is validated.
"""
from __future__ import annotations

from typing import Iterable, Optional

from .models import INVERSE_REL, RelType
from .schemas import Person, Relationship, new_id

_ARRAY_TYPES = (
    ("parents", RelType.PARENT),
    ("spouse", RelType.SPOUSE),
    ("children", RelType.CHILD),
)


def relationships_from_arrays(parents: Iterable[str] = (), spouse: Iterable[str] = (),
                              children: Iterable[str] = ()) -> list[dict]:
    """Convert legacy id arrays into typed relationship records.

    Duplicate ids within one array are collapsed; order is parents, spouses,
    then children.
    """
    arrays = {"parents": parents, "spouse": spouse, "children": children}
    out = []
    for key, rel_type in _ARRAY_TYPES:
        seen = set()
        for pid in arrays[key] or ():
            if not pid or pid in seen:
                continue
            seen.add(pid)
            out.append({"id": new_id(), "type": rel_type, "person_id": str(pid)})
    return out


def to_arrays(person: Person) -> dict[str, list[str]]:
    """Array view of a person's relationships (siblings included for completeness)."""
    return {
        "parents": person.related_ids(RelType.PARENT),
        "spouse": person.related_ids(RelType.SPOUSE),
        "children": person.related_ids(RelType.CHILD),
        "siblings": person.related_ids(RelType.SIBLING),
    }


def has_relationship(person: Person, other_id: str, rel_type: RelType) -> bool:
    return any(r.person_id == other_id and r.type == rel_type for r in person.relationships)


def add_relationship(person: Person, other: Person, rel_type: RelType,
                     rel_id: Optional[str] = None) -> bool:
    """Record ``other`` as ``person``'s <rel_type> and the inverse on ``other``.

    Both sides are updated together; an existing pair is left alone.
    Returns True when anything was added.
    """
    if person.id == other.id:
        raise ValueError("a person cannot be related to themselves")
    rel_type = RelType(rel_type)
    inverse = INVERSE_REL[rel_type]
    rel_id = rel_id or new_id()
    added = False
    if not has_relationship(person, other.id, rel_type):
        person.relationships.append(Relationship(id=rel_id, type=rel_type, person_id=other.id))
        added = True
    if not has_relationship(other, person.id, inverse):
        other.relationships.append(Relationship(id=rel_id, type=inverse, person_id=person.id))
        added = True
    return added
