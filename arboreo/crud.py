"""Person storage on KuzuDB.

People are Person nodes; relationships are PARENT_OF, SPOUSE_OF and
SIBLING_OF edges, one per pair. Reading a person rebuilds the typed
relationship list from the edges it touches, so both endpoints always agree.
"""
import datetime as dt
import logging

import kuzu

from . import relations
from .models import INVERSE_REL, DataIntegrityError, Gender, InvalidDateError, RelType
from .schemas import ContactInfo, Person, Relationship, new_id

logger = logging.getLogger(__name__)

_PERSON_FIELDS = (
    "p.id, p.name, p.gender, p.birth_date, p.death_date, p.location, "
    "p.profession, p.biography, p.photo, p.contact_info, p.is_main_user"
)

# Edge table plus the RelType the edge's source sees its target as.
_EDGE_TABLES = (
    ("PARENT_OF", RelType.CHILD),
    ("SPOUSE_OF", RelType.SPOUSE),
    ("SIBLING_OF", RelType.SIBLING),
)

_REVERSED_PARENT = "These people are already related the other way round"


def _stored_date(value: str, field: str, person_id: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidDateError(f"Invalid {field} {value!r} for person {person_id}") from None


def _row_to_person(row) -> Person:
    """Rows that break the closed value sets raise instead of being skipped."""
    try:
        gender = Gender(row[2])
    except ValueError:
        raise DataIntegrityError(f"Unknown gender {row[2]!r} for person {row[0]}") from None
    born = _stored_date(row[3], "date_of_birth", row[0])
    died = _stored_date(row[4], "death_date", row[0]) if row[4] else None
    contact = ContactInfo.model_validate_json(row[9]) if row[9] else None
    return Person(
        id=row[0], name=row[1], gender=gender,
        date_of_birth=born, death_date=died,
        location=row[5], profession=row[6], biography=row[7], photo=row[8],
        contact_info=contact, is_main_user=bool(row[10]),
    )


def _params(person: Person) -> dict:
    return {
        "id": person.id,
        "name": person.name,
        "gender": person.gender.value,
        "birth": person.date_of_birth.isoformat(),
        "death": person.death_date.isoformat() if person.death_date else "",
        "location": person.location or "",
        "profession": person.profession or "",
        "bio": person.biography or "",
        "photo": person.photo or "",
        "contact": person.contact_info.model_dump_json() if person.contact_info else "",
        "main": person.is_main_user,
    }


def _edges(conn: kuzu.Connection, person_id: str | None = None):
    """(source id, target id, edge id, RelType seen from source), oldest first."""
    where = "WHERE a.id = $id OR b.id = $id " if person_id else ""
    params = {"id": person_id} if person_id else {}
    for table, rel_type in _EDGE_TABLES:
        result = conn.execute(
            f"MATCH (a:Person)-[r:{table}]->(b:Person) {where}"
            f"RETURN a.id, b.id, r.id ORDER BY r.created_at, r.id",
            params
        )
        while result.has_next():
            row = result.get_next()
            yield row[0], row[1], row[2], rel_type


def person_exists(conn: kuzu.Connection, person_id: str) -> bool:
    result = conn.execute(
        "MATCH (p:Person) WHERE p.id = $id RETURN count(*)", {"id": person_id}
    )
    return result.has_next() and result.get_next()[0] > 0


def count_people(conn: kuzu.Connection) -> int:
    result = conn.execute("MATCH (p:Person) RETURN count(*)")
    if result.has_next():
        return result.get_next()[0]
    return 0


def list_people(conn: kuzu.Connection) -> list[Person]:
    """Every person with relationships filled in from both edge directions."""
    result = conn.execute(
        f"MATCH (p:Person) RETURN {_PERSON_FIELDS} ORDER BY p.birth_date, p.name, p.id"
    )
    people = []
    while result.has_next():
        people.append(_row_to_person(result.get_next()))
    by_id = {p.id: p for p in people}
    for source, target, rel_id, rel_type in _edges(conn):
        relations.add_relationship(by_id[source], by_id[target], rel_type, rel_id=rel_id)
    return people


def get_person(conn: kuzu.Connection, person_id: str) -> Person | None:
    result = conn.execute(
        f"MATCH (p:Person) WHERE p.id = $id RETURN {_PERSON_FIELDS}", {"id": person_id}
    )
    if not result.has_next():
        return None
    person = _row_to_person(result.get_next())
    for source, target, rel_id, rel_type in _edges(conn, person_id):
        if source == person_id:
            person.relationships.append(Relationship(id=rel_id, type=rel_type, person_id=target))
        else:
            person.relationships.append(
                Relationship(id=rel_id, type=INVERSE_REL[rel_type], person_id=source)
            )
    return person


def get_parents(conn: kuzu.Connection, person_id: str) -> list[dict]:
    result = conn.execute(
        "MATCH (parent:Person)-[:PARENT_OF]->(child:Person) WHERE child.id = $id "
        "RETURN parent.id, parent.name",
        {"id": person_id}
    )
    parents = []
    while result.has_next():
        row = result.get_next()
        parents.append({"id": row[0], "name": row[1]})
    return parents


def _checked_links(conn: kuzu.Connection, person: Person) -> list[Relationship]:
    """Payload relationships that can be stored; raises on a reversed parent edge."""
    links = []
    planned = set()
    for rel in person.relationships:
        if rel.person_id == person.id:
            continue
        if not person_exists(conn, rel.person_id):
            logger.warning("Skipping %s relationship from %s to unknown person %s",
                           rel.type.value, person.id, rel.person_id)
            continue
        table, source, target = _edge_for(rel.type, person.id, rel.person_id)
        if table == "PARENT_OF" and (
            (target, source) in planned
            or _find_edge(conn, table, target, source, either_direction=False)
        ):
            raise ValueError(_REVERSED_PARENT)
        if table == "PARENT_OF":
            planned.add((source, target))
        links.append(rel)
    return links


def upsert_person(conn: kuzu.Connection, person: Person) -> tuple[Person, bool]:
    """Create or replace a person's fields, then store any new relationships.

    Relationships already on file are kept; the payload can add edges but not
    remove them. References to unknown people are skipped. A relationship that
    contradicts a stored one raises ValueError before anything is written.
    Returns the stored person and whether it was newly created.
    """
    created = not person_exists(conn, person.id)
    links = _checked_links(conn, person)
    params = _params(person)
    if created:
        conn.execute(
            "CREATE (p:Person {id: $id, name: $name, gender: $gender, "
            "birth_date: $birth, death_date: $death, location: $location, "
            "profession: $profession, biography: $bio, photo: $photo, "
            "contact_info: $contact, is_main_user: $main})",
            params
        )
    else:
        conn.execute(
            "MATCH (p:Person) WHERE p.id = $id "
            "SET p.name = $name, p.gender = $gender, p.birth_date = $birth, "
            "p.death_date = $death, p.location = $location, p.profession = $profession, "
            "p.biography = $bio, p.photo = $photo, p.contact_info = $contact, "
            "p.is_main_user = $main",
            params
        )
    if person.is_main_user:
        set_main_user(conn, person.id)

    for rel in links:
        add_relationship(conn, person.id, rel.person_id, rel.type, rel_id=rel.id)
    return get_person(conn, person.id), created


def _edge_for(rel_type: RelType, person_id: str, other_id: str) -> tuple[str, str, str]:
    """Edge table, source and target that store ``other_id`` as ``person_id``'s <rel_type>."""
    if rel_type == RelType.PARENT:
        return "PARENT_OF", other_id, person_id
    if rel_type == RelType.CHILD:
        return "PARENT_OF", person_id, other_id
    if rel_type == RelType.SPOUSE:
        return "SPOUSE_OF", person_id, other_id
    return "SIBLING_OF", person_id, other_id


def _find_edge(conn: kuzu.Connection, table: str, source: str, target: str,
               either_direction: bool) -> str | None:
    pattern = "-[r:{t}]-" if either_direction else "-[r:{t}]->"
    result = conn.execute(
        f"MATCH (a:Person){pattern.format(t=table)}(b:Person) "
        f"WHERE a.id = $a AND b.id = $b RETURN r.id",
        {"a": source, "b": target}
    )
    if result.has_next():
        return result.get_next()[0]
    return None


def add_relationship(conn: kuzu.Connection, person_id: str, other_id: str,
                     rel_type: RelType, rel_id: str | None = None) -> dict:
    """Store ``other_id`` as ``person_id``'s <rel_type>.

    One edge is written per pair and both people read it back, so the
    inverse side never needs a second write. An existing edge is returned
    unchanged.
    """
    rel_type = RelType(rel_type)
    if person_id == other_id:
        raise ValueError("A person cannot be related to themselves")
    for pid in (person_id, other_id):
        if not person_exists(conn, pid):
            raise KeyError(pid)

    table, source, target = _edge_for(rel_type, person_id, other_id)
    directed = table == "PARENT_OF"

    existing = _find_edge(conn, table, source, target, either_direction=not directed)
    if existing:
        return {"id": existing, "type": rel_type.value,
                "person_id": person_id, "other_person_id": other_id, "created": False}
    if directed and _find_edge(conn, table, target, source, either_direction=False):
        raise ValueError(_REVERSED_PARENT)

    rid = rel_id or new_id()
    now = dt.datetime.now(dt.timezone.utc).isoformat()
    conn.execute(
        f"MATCH (a:Person), (b:Person) WHERE a.id = $a AND b.id = $b "
        f"CREATE (a)-[:{table} {{id: $id, created_at: $ts}}]->(b)",
        {"a": source, "b": target, "id": rid, "ts": now}
    )
    return {"id": rid, "type": rel_type.value,
            "person_id": person_id, "other_person_id": other_id, "created": True}


def set_main_user(conn: kuzu.Connection, person_id: str):
    """Flag one person as the main user and clear the flag everywhere else."""
    if not person_exists(conn, person_id):
        raise KeyError(person_id)
    conn.execute(
        "MATCH (p:Person) WHERE p.id <> $id AND p.is_main_user = true "
        "SET p.is_main_user = false",
        {"id": person_id}
    )
    conn.execute(
        "MATCH (p:Person) WHERE p.id = $id SET p.is_main_user = true", {"id": person_id}
    )


def clear_all(conn: kuzu.Connection):
    """Delete every person and relationship."""
    conn.execute("MATCH (p:Person) DETACH DELETE p")
