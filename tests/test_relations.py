"""Tests for arboreo/relations.py: legacy arrays and symmetric updates."""
import pytest

from arboreo import relations
from arboreo.models import RelType
from conftest import make_person


class TestRelationshipsFromArrays:
    def test_order_and_types(self):
        rels = relations.relationships_from_arrays(parents=["p1", "p2"], spouse=["s"], children=["c"])
        assert [(r["type"], r["person_id"]) for r in rels] == [
            (RelType.PARENT, "p1"), (RelType.PARENT, "p2"),
            (RelType.SPOUSE, "s"), (RelType.CHILD, "c"),
        ]

    def test_duplicates_collapsed(self):
        rels = relations.relationships_from_arrays(children=["c", "c", ""])
        assert [r["person_id"] for r in rels] == ["c"]

    def test_each_gets_an_id(self):
        rels = relations.relationships_from_arrays(parents=["a"], spouse=["b"])
        assert all(r["id"] for r in rels)
        assert rels[0]["id"] != rels[1]["id"]

    def test_none_arrays(self):
        assert relations.relationships_from_arrays(parents=None, spouse=None) == []


class TestToArrays:
    def test_round_trip_view(self):
        p = make_person("Pat", "1980-01-01", parents=["a"], spouse=["b"], children=["c"])
        assert relations.to_arrays(p) == {
            "parents": ["a"], "spouse": ["b"], "children": ["c"], "siblings": [],
        }


class TestAddRelationship:
    def test_both_sides_updated(self):
        kid = make_person("Kid", "2000-01-01")
        dad = make_person("Dad", "1970-01-01")
        assert relations.add_relationship(kid, dad, RelType.PARENT) is True
        assert kid.related_ids(RelType.PARENT) == ["dad"]
        assert dad.related_ids(RelType.CHILD) == ["kid"]
        assert kid.relationships[0].id == dad.relationships[0].id

    def test_spouse_is_symmetric(self):
        a = make_person("A", "1970-01-01")
        b = make_person("B", "1970-01-01")
        relations.add_relationship(a, b, RelType.SPOUSE)
        assert relations.has_relationship(a, "b", RelType.SPOUSE)
        assert relations.has_relationship(b, "a", RelType.SPOUSE)

    def test_existing_pair_untouched(self):
        a = make_person("A", "1970-01-01")
        b = make_person("B", "1970-01-01")
        relations.add_relationship(a, b, RelType.SIBLING)
        assert relations.add_relationship(b, a, RelType.SIBLING) is False
        assert len(a.relationships) == 1
        assert len(b.relationships) == 1

    def test_repairs_one_sided(self):
        kid = make_person("Kid", "2000-01-01", parents=["dad"])
        dad = make_person("Dad", "1970-01-01")
        assert relations.add_relationship(kid, dad, RelType.PARENT) is True
        assert len(kid.relationships) == 1
        assert dad.related_ids(RelType.CHILD) == ["kid"]

    def test_self_rejected(self):
        a = make_person("A", "1970-01-01")
        with pytest.raises(ValueError):
            relations.add_relationship(a, a, RelType.SPOUSE)
