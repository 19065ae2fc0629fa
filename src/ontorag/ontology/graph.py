"""In-memory concept graph backed by a networkx MultiDiGraph.

Concepts are stored by id; relations are stored as multi-edges keyed by
relation type, so inserting the same ``(from, type, to)`` twice updates the
strength instead of adding a parallel edge. Relation endpoints are not
required to exist as concepts: dangling ids are kept as bare nodes and
simply have no concept record.

The graph is populated once at startup and read concurrently afterwards.
To replace the ontology at runtime, build a new ``ConceptGraph`` and swap
the reference rather than mutating a live instance.

Usage:
    from ontorag.ontology.graph import ConceptGraph
    graph = ConceptGraph()
    graph.add_concept("loops", {"label": "ループ", "level": "beginner"})
    graph.add_relation("loops", "conditionals", "related")
    graph.find_related("loops", max_depth=1)  # ["conditionals"]
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Mapping
from itertools import chain
from typing import Any

import networkx as nx
from loguru import logger

from ontorag.ontology.schema import DEFAULT_RELATION_STRENGTH, Concept, Relation

DEFAULT_MAX_DEPTH = 2


class ConceptGraph:
    """Concepts plus typed, weighted directed relations between them."""

    def __init__(self) -> None:
        self._concepts: dict[str, Concept] = {}
        self._graph = nx.MultiDiGraph()

    # -------------------- Concepts --------------------

    def add_concept(self, concept_id: str, properties: Mapping[str, Any] | None = None) -> Concept:
        """Insert or replace a concept record (last write wins).

        *properties* is deep-copied; later changes to it do not reach the graph.
        """
        concept = Concept.from_properties(concept_id, properties)
        self._concepts[concept_id] = concept
        self._graph.add_node(concept_id)
        return concept.detached()

    def get_concept(self, concept_id: str) -> Concept | None:
        """Return a copy of the concept record, or None when the id has no record."""
        concept = self._concepts.get(concept_id)
        return concept.detached() if concept is not None else None

    def concepts(self) -> list[Concept]:
        return [c.detached() for c in self._concepts.values()]

    def __contains__(self, concept_id: object) -> bool:
        return concept_id in self._concepts

    def __len__(self) -> int:
        return len(self._concepts)

    # -------------------- Relations --------------------

    def add_relation(
        self,
        from_id: str,
        to_id: str,
        relation_type: str,
        strength: float = DEFAULT_RELATION_STRENGTH,
    ) -> Relation:
        """Insert or update the relation keyed by ``(from_id, relation_type, to_id)``."""
        if not 0.0 <= strength <= 1.0:
            raise ValueError(f"Relation strength must be within [0, 1], got {strength}")
        self._graph.add_edge(from_id, to_id, key=relation_type, strength=float(strength))
        return Relation(from_id, relation_type, to_id, float(strength))

    def relations(self) -> Iterator[Relation]:
        for from_id, to_id, relation_type, data in self._graph.edges(keys=True, data=True):
            yield Relation(from_id, relation_type, to_id, data["strength"])

    @property
    def relation_count(self) -> int:
        return self._graph.number_of_edges()

    def get_relation(self, from_id: str, to_id: str, relation_type: str) -> Relation | None:
        data = self._graph.get_edge_data(from_id, to_id, key=relation_type)
        if data is None:
            return None
        return Relation(from_id, relation_type, to_id, data["strength"])

    # -------------------- Traversal --------------------

    def _neighbors(self, concept_id: str) -> Iterator[str]:
        """Adjacent ids in either direction, regardless of relation type."""
        return chain(self._graph.successors(concept_id), self._graph.predecessors(concept_id))

    def find_related(self, concept_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> list[str]:
        """Breadth-first search over relations treated as undirected edges.

        Returns ids first reached within ``max_depth`` hops, in discovery
        order, never including ``concept_id`` itself.
        """
        if max_depth <= 0 or concept_id not in self._graph:
            return []

        visited: set[str] = {concept_id}
        related: list[str] = []
        queue: deque[tuple[str, int]] = deque([(concept_id, 0)])

        while queue:
            node, depth = queue.popleft()
            if depth >= max_depth:
                continue
            for neighbor in self._neighbors(node):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                related.append(neighbor)
                queue.append((neighbor, depth + 1))

        return related

    def get_prerequisite_chain(self, concept_id: str) -> list[str]:
        """Transitive closure of the ``prerequisites`` lists, depth-first.

        Only the prerequisite lists stored on concept records are followed,
        never the relation edges. A visited set spans the whole walk, so a
        cyclic prerequisite definition terminates with a partial result
        (which may include ``concept_id`` itself).
        """
        concept = self._concepts.get(concept_id)
        if concept is None or not concept.prerequisites:
            return []

        visited: set[str] = set()
        chain_ids: list[str] = []
        stack: list[str] = list(reversed(concept.prerequisites))

        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            chain_ids.append(current)

            record = self._concepts.get(current)
            if record is not None and record.prerequisites:
                stack.extend(p for p in reversed(record.prerequisites) if p not in visited)

        if concept_id in visited:
            logger.debug("Cyclic prerequisite chain detected for '{}'", concept_id)

        return chain_ids

    # -------------------- Debug --------------------

    def describe(self) -> str:
        """Human-readable listing of concepts and relations."""
        lines = [
            "=== Ontology ===",
            f"Concepts: {len(self._concepts)}",
            f"Relations: {self.relation_count}",
            "",
            "Concepts:",
        ]
        for concept in self._concepts.values():
            lines.append(f"- {concept.id}: {concept.display_label} ({concept.level or '-'})")
        lines.append("")
        lines.append("Relations:")
        for relation in self.relations():
            lines.append(f"- {relation.from_id} --[{relation.relation_type}]--> {relation.to_id}")
        return "\n".join(lines)
