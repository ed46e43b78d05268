"""Node/link graph derived from people, and walks over it."""
from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Optional, Sequence

from .models import LinkType, RelType
from .schemas import FamilyLink, FamilyNode, GraphOut, Person

logger = logging.getLogger(__name__)

# Pass order per person; decides which side of a pair produces the link.
_LINK_PASSES = (
    (RelType.SPOUSE, LinkType.SPOUSE, False),
    (RelType.CHILD, LinkType.PARENT_CHILD, False),
    (RelType.PARENT, LinkType.PARENT_CHILD, True),
    (RelType.SIBLING, LinkType.SIBLING, False),
)


def build_graph(people: Sequence[Person]) -> GraphOut:
    """One node per person plus deduplicated links between resolvable ids.

    A link is identified by its unordered endpoint pair and its type, so a
    couple that lists each other produces a single spouse link.
    """
    known = {p.id for p in people}
    nodes = [FamilyNode(**p.model_dump()) for p in people]
    links: list[FamilyLink] = []
    seen: set[tuple[frozenset, LinkType]] = set()

    for person in people:
        for rel_type, link_type, reversed_ in _LINK_PASSES:
            for other_id in person.related_ids(rel_type):
                if other_id not in known:
                    logger.debug("Skipping dangling %s reference %s on %s",
                                 rel_type.value, other_id, person.id)
                    continue
                key = (frozenset((person.id, other_id)), link_type)
                if key in seen:
                    continue
                seen.add(key)
                source, target = (other_id, person.id) if reversed_ else (person.id, other_id)
                links.append(FamilyLink(source=source, target=target, type=link_type))

    return GraphOut(nodes=nodes, links=links)


def shortest_path(nodes: Sequence[Person], links: Sequence[FamilyLink],
                  from_id: str, to_id: str) -> list[str]:
    """Fewest-hop path between two people, or [] when none exists.

    Links are walked in both directions and every link type costs one hop.
    """
    if from_id == to_id:
        return [from_id]
    node_ids = {n.id for n in nodes}
    if from_id not in node_ids or to_id not in node_ids:
        return []

    adjacency: dict[str, list[str]] = defaultdict(list)
    for link in links:
        adjacency[link.source].append(link.target)
        adjacency[link.target].append(link.source)

    queue = deque([(from_id, [from_id])])
    visited = {from_id}
    while queue:
        current, path = queue.popleft()
        if current == to_id:
            return path
        for neighbor in adjacency.get(current, ()):
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append((neighbor, path + [neighbor]))
    return []


def find_main_user(people: Sequence[Person]) -> Optional[Person]:
    for p in people:
        if p.is_main_user:
            return p
    return people[0] if people else None


def ancestor_generations(people: Sequence[Person], person_id: str,
                         generations: int = 4) -> list[list[Person]]:
    """[[person], [parents], [grandparents], ...] up to ``generations`` steps back."""
    by_id = {p.id: p for p in people}
    start = by_id.get(person_id)
    if start is None:
        raise KeyError(person_id)

    result = [[start]]
    current = [start]
    for _ in range(generations):
        parents = [by_id[pid] for p in current for pid in p.related_ids(RelType.PARENT)
                   if pid in by_id]
        if not parents:
            break
        result.append(parents)
        current = parents
    return result


def search_people(people: Sequence[Person], term: str) -> list[Person]:
    term = (term or "").strip().lower()
    if not term:
        return []
    return [p for p in people if term in p.name.lower()]
