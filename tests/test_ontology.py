"""Tests for the ontology package — schema, concept graph, and loader."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from ontorag.config import DATA_DIR
from ontorag.ontology.graph import ConceptGraph
from ontorag.ontology.loader import (
    OntologyDefinition,
    RelationRecord,
    build_graph,
    load_ontology_file,
    parse_ontology,
)
from ontorag.ontology.schema import Concept, Relation

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def chain_graph() -> ConceptGraph:
    """a - b - c - d, plus x -> a (reverse direction into a)."""
    graph = ConceptGraph()
    for cid in ("a", "b", "c", "d", "x"):
        graph.add_concept(cid, {"label": cid.upper()})
    graph.add_relation("a", "b", "related")
    graph.add_relation("b", "c", "related")
    graph.add_relation("c", "d", "enables")
    graph.add_relation("x", "a", "used-in")
    return graph


# ===================================================================
# schema tests
# ===================================================================


class TestConcept:
    """Tests for the Concept record."""

    def test_from_properties_splits_core_and_extra(self) -> None:
        c = Concept.from_properties(
            "loops",
            {"label": "ループ", "level": "beginner", "prerequisites": ["variables"], "color": "blue"},
        )
        assert c.id == "loops"
        assert c.label == "ループ"
        assert c.level == "beginner"
        assert c.prerequisites == ("variables",)
        assert c.extra == {"color": "blue"}

    def test_reserved_keys_ignored(self) -> None:
        c = Concept.from_properties("loops", {"id": "other", "addedAt": "yesterday"})
        assert c.id == "loops"
        assert c.extra == {}

    def test_display_label_falls_back_to_id(self) -> None:
        assert Concept(id="loops").display_label == "loops"

    def test_relation_key(self) -> None:
        r = Relation("loops", "related", "conditionals")
        assert r.key == ("loops", "related", "conditionals")
        assert r.strength == 1.0


# ===================================================================
# graph tests
# ===================================================================


class TestConceptStorage:
    """Tests for adding and reading concepts."""

    def test_round_trip(self) -> None:
        props = {
            "label": "ループ",
            "level": "beginner",
            "prerequisites": ["variables"],
            "description": "repeat things",
        }
        graph = ConceptGraph()
        graph.add_concept("loops", props)

        concept = graph.get_concept("loops")
        assert concept is not None
        assert concept.to_properties() == props
        assert concept.added_at is not None

    def test_missing_concept_is_none(self) -> None:
        assert ConceptGraph().get_concept("nope") is None

    def test_readd_replaces(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("loops", {"label": "old", "level": "beginner"})
        graph.add_concept("loops", {"label": "new"})

        concept = graph.get_concept("loops")
        assert concept.label == "new"
        assert concept.level is None
        assert len(graph) == 1

    def test_contains(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("loops")
        assert "loops" in graph
        assert "functions" not in graph

    def test_round_trip_keeps_user_added_at(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("x", {"label": "L", "added_at": "2024"})

        concept = graph.get_concept("x")
        assert concept.to_properties() == {"label": "L", "added_at": "2024"}
        assert concept.added_at != "2024"

    def test_round_trip_keeps_explicit_none(self) -> None:
        props = {"label": None, "level": "beginner", "prerequisites": None}
        graph = ConceptGraph()
        graph.add_concept("x", props)

        assert graph.get_concept("x").to_properties() == props
        assert graph.get_concept("x").display_label == "x"

    def test_records_do_not_share_state(self) -> None:
        props = {"label": "L", "tags": ["a"]}
        graph = ConceptGraph()
        graph.add_concept("x", props)

        # caller keeps mutating its own definition
        props["tags"].append("from-caller")
        props["label"] = "changed"

        # and a reader mutates what it was given
        concept = graph.get_concept("x")
        concept.extra["tags"].append("b")
        concept.extra["new"] = 1
        concept.to_properties()["tags"].append("c")
        graph.concepts()[0].extra.clear()

        assert graph.get_concept("x").to_properties() == {"label": "L", "tags": ["a"]}


class TestRelations:
    """Tests for relation storage."""

    def test_same_triple_overwrites_strength(self) -> None:
        graph = ConceptGraph()
        graph.add_relation("loops", "conditionals", "related", 0.3)
        graph.add_relation("loops", "conditionals", "related", 0.9)

        assert graph.relation_count == 1
        assert graph.get_relation("loops", "conditionals", "related").strength == 0.9

    def test_different_types_are_separate_edges(self) -> None:
        graph = ConceptGraph()
        graph.add_relation("loops", "conditionals", "related")
        graph.add_relation("loops", "conditionals", "uses")

        assert graph.relation_count == 2
        types = {r.relation_type for r in graph.relations()}
        assert types == {"related", "uses"}

    def test_default_strength(self) -> None:
        graph = ConceptGraph()
        relation = graph.add_relation("a", "b", "related")
        assert relation.strength == 1.0

    @pytest.mark.parametrize("strength", [-0.1, 1.5])
    def test_strength_out_of_range(self, strength: float) -> None:
        with pytest.raises(ValueError):
            ConceptGraph().add_relation("a", "b", "related", strength)

    def test_get_relation_missing(self) -> None:
        assert ConceptGraph().get_relation("a", "b", "related") is None

    def test_dangling_endpoint_tolerated(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("loops", {"label": "ループ"})
        graph.add_relation("loops", "ghost", "related")

        assert graph.find_related("loops", 1) == ["ghost"]
        assert graph.get_concept("ghost") is None
        assert len(graph) == 1


class TestFindRelated:
    """Tests for the undirected breadth-first traversal."""

    def test_depth_zero_is_empty(self, chain_graph: ConceptGraph) -> None:
        for cid in ("a", "b", "c", "d", "x"):
            assert chain_graph.find_related(cid, 0) == []

    def test_one_hop_both_directions(self, chain_graph: ConceptGraph) -> None:
        assert set(chain_graph.find_related("a", 1)) == {"b", "x"}

    def test_default_depth_is_two(self, chain_graph: ConceptGraph) -> None:
        assert set(chain_graph.find_related("a")) == {"b", "x", "c"}

    def test_reaches_further_with_depth(self, chain_graph: ConceptGraph) -> None:
        assert set(chain_graph.find_related("a", 3)) == {"b", "x", "c", "d"}

    def test_monotonic_in_depth(self, chain_graph: ConceptGraph) -> None:
        for cid in ("a", "b", "c", "d", "x"):
            previous: set[str] = set()
            for depth in range(5):
                current = set(chain_graph.find_related(cid, depth))
                assert previous <= current
                previous = current

    def test_never_includes_start(self, chain_graph: ConceptGraph) -> None:
        chain_graph.add_relation("d", "a", "loops-back")
        chain_graph.add_relation("a", "a", "self")
        for cid in ("a", "b", "c", "d", "x"):
            for depth in range(5):
                assert cid not in chain_graph.find_related(cid, depth)

    def test_no_duplicates(self, chain_graph: ConceptGraph) -> None:
        chain_graph.add_relation("b", "a", "related")
        chain_graph.add_relation("a", "c", "related")
        result = chain_graph.find_related("a", 3)
        assert len(result) == len(set(result))

    def test_unknown_concept(self, chain_graph: ConceptGraph) -> None:
        assert chain_graph.find_related("nope", 3) == []

    def test_ignores_relation_type(self) -> None:
        graph = ConceptGraph()
        graph.add_relation("a", "b", "cosmetic")
        graph.add_relation("c", "a", "prerequisite")
        assert set(graph.find_related("a", 1)) == {"b", "c"}


class TestPrerequisiteChain:
    """Tests for the prerequisite closure."""

    def test_transitive(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("programming", {"prerequisites": []})
        graph.add_concept("variables", {"prerequisites": ["programming"]})
        graph.add_concept("loops", {"prerequisites": ["variables"]})

        assert graph.get_prerequisite_chain("loops") == ["variables", "programming"]

    def test_diamond_deduplicated(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("d", {"prerequisites": ["b", "c"]})
        graph.add_concept("b", {"prerequisites": ["a"]})
        graph.add_concept("c", {"prerequisites": ["a"]})
        graph.add_concept("a")

        assert graph.get_prerequisite_chain("d") == ["b", "a", "c"]

    def test_two_cycle_terminates(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("A", {"prerequisites": ["B"]})
        graph.add_concept("B", {"prerequisites": ["A"]})

        assert set(graph.get_prerequisite_chain("A")) == {"A", "B"}
        assert set(graph.get_prerequisite_chain("B")) == {"A", "B"}

    def test_self_cycle_terminates(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("A", {"prerequisites": ["A"]})
        assert graph.get_prerequisite_chain("A") == ["A"]

    def test_long_cycle_terminates(self) -> None:
        graph = ConceptGraph()
        ids = [f"c{i}" for i in range(500)]
        for i, cid in enumerate(ids):
            graph.add_concept(cid, {"prerequisites": [ids[(i + 1) % len(ids)]]})

        assert set(graph.get_prerequisite_chain("c0")) == set(ids)

    def test_unknown_prerequisite_kept(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("loops", {"prerequisites": ["ghost"]})
        assert graph.get_prerequisite_chain("loops") == ["ghost"]

    def test_ignores_relations(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("loops")
        graph.add_relation("loops", "variables", "prerequisite")
        assert graph.get_prerequisite_chain("loops") == []

    def test_unknown_concept(self) -> None:
        assert ConceptGraph().get_prerequisite_chain("nope") == []


class TestDescribe:
    """Tests for the debug listing."""

    def test_lists_concepts_and_relations(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("loops", {"label": "ループ", "level": "beginner"})
        graph.add_relation("loops", "conditionals", "related")

        text = graph.describe()
        assert "Concepts: 1" in text
        assert "Relations: 1" in text
        assert "- loops: ループ (beginner)" in text
        assert "- loops --[related]--> conditionals" in text


# ===================================================================
# loader tests
# ===================================================================

SAMPLE_DEFINITION = {
    "concepts": {
        "loops": {"label": "ループ", "level": "beginner", "prerequisites": ["variables"]},
        "variables": {"label": "変数", "level": "beginner", "keywords": ["代入"]},
    },
    "relations": [
        {"from": "loops", "to": "conditionals", "type": "related"},
        {"from": "variables", "to": "loops", "type": "used-in", "strength": 0.8},
    ],
}


class TestParseOntology:
    """Tests for parse_ontology."""

    def test_parses_concepts_and_relations(self) -> None:
        definition = parse_ontology(SAMPLE_DEFINITION)
        assert set(definition.concepts) == {"loops", "variables"}
        assert definition.relations[0] == RelationRecord("loops", "conditionals", "related", 1.0)
        assert definition.relations[1].strength == 0.8

    def test_missing_field_raises(self) -> None:
        with pytest.raises(ValueError, match="type"):
            parse_ontology({"relations": [{"from": "a", "to": "b"}]})

    def test_empty_definition(self) -> None:
        definition = parse_ontology({})
        assert definition.concepts == {}
        assert definition.relations == []

    def test_keywords(self) -> None:
        definition = parse_ontology(SAMPLE_DEFINITION)
        assert definition.keywords() == {"variables": ["代入"]}


class TestBuildGraph:
    """Tests for build_graph / load_ontology_file."""

    def test_build_graph(self) -> None:
        graph = build_graph(parse_ontology(SAMPLE_DEFINITION))
        assert len(graph) == 2
        assert graph.relation_count == 2
        # relation to a concept that has no record is accepted
        assert "conditionals" in graph.find_related("loops", 1)

    def test_build_into_existing_graph(self) -> None:
        graph = ConceptGraph()
        graph.add_concept("extra")
        build_graph(OntologyDefinition(concepts={"loops": {}}), graph)
        assert len(graph) == 2

    def test_load_file(self, tmp_path: Path) -> None:
        path = tmp_path / "ontology.json"
        path.write_text(json.dumps(SAMPLE_DEFINITION, ensure_ascii=False), encoding="utf-8")

        definition = load_ontology_file(path)
        assert definition.concepts["loops"]["label"] == "ループ"

    def test_bundled_ontology(self) -> None:
        definition = load_ontology_file(DATA_DIR / "ontology.json")
        graph = build_graph(definition)

        assert len(graph) == 10
        for relation in graph.relations():
            assert relation.from_id in graph
            assert relation.to_id in graph
        assert "conditionals" in graph.find_related("loops", 1)
