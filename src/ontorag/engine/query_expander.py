"""Ontology-driven query expansion.

Extracts concepts from the raw query, widens them with their one-hop
neighbours and full prerequisite chains, then appends the concept labels
to the query text. The expanded text is what the retrieval backend sees,
so passages using the ontology's vocabulary can be found even when the
user phrased things differently.

Usage:
    expander = QueryExpander(graph, ConceptExtractor())
    result = expander.expand("for文について教えて")
    result.expanded_query  # "for文について教えて ループ 条件分岐"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ontorag.engine.concept_extractor import ConceptExtractor
from ontorag.ontology.graph import ConceptGraph

DEFAULT_EXPANSION_DEPTH = 1


@dataclass(frozen=True)
class ExpansionResult:
    """Per-query expansion output."""

    original_query: str
    """The raw user query."""

    query_concepts: list[str] = field(default_factory=list)
    """Concept ids extracted from the query."""

    expanded_concepts: list[str] = field(default_factory=list)
    """Query concepts plus related and prerequisite concepts (insertion order)."""

    expanded_query: str = ""
    """Original query followed by the labels of the expanded concepts."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_query": self.original_query,
            "query_concepts": list(self.query_concepts),
            "expanded_concepts": list(self.expanded_concepts),
            "expanded_query": self.expanded_query,
        }


class QueryExpander:
    """Turn a raw query into an :class:`ExpansionResult`."""

    def __init__(
        self,
        graph: ConceptGraph,
        extractor: ConceptExtractor,
        *,
        depth: int = DEFAULT_EXPANSION_DEPTH,
    ) -> None:
        self.graph = graph
        self.extractor = extractor
        self.depth = depth

    def expand(self, query: str) -> ExpansionResult:
        query_concepts = self.extractor.extract(query)
        logger.debug("Query concepts: {}", query_concepts)

        # dict keys keep insertion order and deduplicate
        expanded: dict[str, None] = dict.fromkeys(query_concepts)
        for concept_id in query_concepts:
            expanded.update(dict.fromkeys(self.graph.find_related(concept_id, self.depth)))
            expanded.update(dict.fromkeys(self.graph.get_prerequisite_chain(concept_id)))

        expanded_concepts = list(expanded)
        logger.debug("Expanded concepts: {}", expanded_concepts)

        return ExpansionResult(
            original_query=query,
            query_concepts=query_concepts,
            expanded_concepts=expanded_concepts,
            expanded_query=self.build_expanded_query(query, expanded_concepts),
        )

    def build_expanded_query(self, query: str, concept_ids: list[str]) -> str:
        """Append the labels of known concepts to the query text.

        Ids without a concept record (or without a label) are skipped.
        """
        labels: list[str] = []
        for concept_id in concept_ids:
            concept = self.graph.get_concept(concept_id)
            if concept is None or concept.label is None or concept.label == "":
                continue
            labels.append(str(concept.label))
        return f"{query} {' '.join(labels)}"
