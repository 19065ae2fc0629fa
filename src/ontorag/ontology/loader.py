"""Load a learning ontology definition into a ConceptGraph.

Definition format (JSON):

    {
      "concepts": {
        "loops": {"label": "ループ", "level": "beginner", "prerequisites": ["variables"]},
        ...
      },
      "relations": [
        {"from": "loops", "to": "conditionals", "type": "related", "strength": 0.8},
        ...
      ]
    }

Concepts load in any order; relations may reference ids that are not
(yet) defined as concepts.

Usage:
    python -m ontorag.ontology.loader data/ontology.json
"""

from __future__ import annotations

import json
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from ontorag.ontology.graph import ConceptGraph
from ontorag.ontology.schema import DEFAULT_RELATION_STRENGTH


@dataclass
class RelationRecord:
    """One entry of the ``relations`` list."""

    from_id: str
    to_id: str
    relation_type: str
    strength: float = DEFAULT_RELATION_STRENGTH


@dataclass
class OntologyDefinition:
    """Static ontology input consumed at initialization."""

    concepts: dict[str, dict[str, Any]] = field(default_factory=dict)
    relations: list[RelationRecord] = field(default_factory=list)

    def keywords(self) -> dict[str, list[str]]:
        """Extra trigger phrases declared on concepts via a ``keywords`` field."""
        return {
            concept_id: list(props["keywords"])
            for concept_id, props in self.concepts.items()
            if props.get("keywords")
        }


def parse_ontology(data: Mapping[str, Any]) -> OntologyDefinition:
    """Parse a raw definition mapping (e.g. decoded JSON).

    Raises:
        ValueError: If a relation record lacks ``from``, ``to`` or ``type``.
    """
    concepts = {cid: dict(props or {}) for cid, props in (data.get("concepts") or {}).items()}

    relations: list[RelationRecord] = []
    for i, raw in enumerate(data.get("relations") or []):
        try:
            relations.append(
                RelationRecord(
                    from_id=raw["from"],
                    to_id=raw["to"],
                    relation_type=raw["type"],
                    strength=float(raw.get("strength", DEFAULT_RELATION_STRENGTH)),
                )
            )
        except KeyError as exc:
            raise ValueError(f"Relation #{i} is missing field {exc}") from exc

    return OntologyDefinition(concepts=concepts, relations=relations)


def load_ontology_file(path: Path | str) -> OntologyDefinition:
    """Read and parse an ontology definition JSON file."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    logger.debug("Read ontology definition from {}", path)
    return parse_ontology(data)


def build_graph(definition: OntologyDefinition, graph: ConceptGraph | None = None) -> ConceptGraph:
    """Bulk-load a definition into a (new) ConceptGraph."""
    if graph is None:
        graph = ConceptGraph()

    logger.info("Loading ontology...")

    for concept_id, props in definition.concepts.items():
        graph.add_concept(concept_id, props)

    for rel in definition.relations:
        graph.add_relation(rel.from_id, rel.to_id, rel.relation_type, rel.strength)

    logger.info("Loaded {} concepts", len(graph))
    logger.info("Loaded {} relations", graph.relation_count)
    return graph


def main() -> None:
    """CLI entry point: load a definition and print the resulting graph."""
    import argparse

    from ontorag.config import get_settings

    settings = get_settings()

    parser = argparse.ArgumentParser(description="Load and inspect an ontology definition")
    parser.add_argument("path", nargs="?", default=str(settings.ontology_path))
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    graph = build_graph(load_ontology_file(args.path))
    print(graph.describe())


if __name__ == "__main__":
    main()
