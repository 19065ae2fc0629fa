"""Ontology-aware reranking of retrieval candidates.

Each candidate's text is run through the concept extractor; the resulting
concepts are scored against the query concepts using the graph:

    exact match          -> +1.0 per (query concept, doc concept) pair
    one-hop related      -> +0.5 per pair
    semantic_score       =  min(1, sum / max(len(query_concepts), 1))
    combined_score       =  similarity * 0.6 + semantic_score * 0.4

Sorting is stable, so candidates with equal combined scores keep their
retrieval order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ontorag.engine.concept_extractor import ConceptExtractor
from ontorag.engine.retriever import Candidate, Document
from ontorag.ontology.graph import ConceptGraph

SIMILARITY_WEIGHT = 0.6
SEMANTIC_WEIGHT = 0.4
EXACT_MATCH_SCORE = 1.0
RELATED_MATCH_SCORE = 0.5
RELATION_DEPTH = 1


@dataclass(frozen=True)
class RankedCandidate:
    """A candidate annotated with graph-derived scores."""

    document: Document
    similarity: float
    semantic_score: float = 0.0
    combined_score: float = 0.0
    doc_concepts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.document.text,
            "metadata": dict(self.document.metadata),
            "similarity": self.similarity,
            "semantic_score": self.semantic_score,
            "combined_score": self.combined_score,
            "doc_concepts": list(self.doc_concepts),
        }


class Reranker:
    """Blend vector similarity with semantic relevance from the ontology."""

    def __init__(
        self,
        graph: ConceptGraph,
        extractor: ConceptExtractor,
        *,
        similarity_weight: float = SIMILARITY_WEIGHT,
        semantic_weight: float = SEMANTIC_WEIGHT,
        exact_match_score: float = EXACT_MATCH_SCORE,
        related_match_score: float = RELATED_MATCH_SCORE,
        relation_depth: int = RELATION_DEPTH,
    ) -> None:
        self.graph = graph
        self.extractor = extractor
        self.similarity_weight = similarity_weight
        self.semantic_weight = semantic_weight
        self.exact_match_score = exact_match_score
        self.related_match_score = related_match_score
        self.relation_depth = relation_depth

    def semantic_relevance(
        self,
        query_concepts: Sequence[str],
        doc_concepts: Sequence[str],
        *,
        related_cache: dict[str, set[str]] | None = None,
    ) -> float:
        """Score how closely *doc_concepts* relate to *query_concepts* (0..1)."""
        if related_cache is None:
            related_cache = {}

        score = 0.0
        for query_concept in query_concepts:
            for doc_concept in doc_concepts:
                if query_concept == doc_concept:
                    score += self.exact_match_score
                    continue
                related = related_cache.get(query_concept)
                if related is None:
                    related = set(self.graph.find_related(query_concept, self.relation_depth))
                    related_cache[query_concept] = related
                if doc_concept in related:
                    score += self.related_match_score

        return min(1.0, score / max(len(query_concepts), 1))

    def rerank(
        self,
        candidates: Sequence[Candidate],
        query_concepts: Sequence[str],
    ) -> list[RankedCandidate]:
        """Return *candidates* rescored and sorted by combined score (desc, stable)."""
        related_cache: dict[str, set[str]] = {}
        ranked: list[RankedCandidate] = []

        for candidate in candidates:
            doc_concepts = self.extractor.extract(candidate.document.text)
            semantic_score = self.semantic_relevance(
                query_concepts, doc_concepts, related_cache=related_cache
            )
            combined = (
                candidate.similarity * self.similarity_weight
                + semantic_score * self.semantic_weight
            )
            ranked.append(
                RankedCandidate(
                    document=candidate.document,
                    similarity=candidate.similarity,
                    semantic_score=semantic_score,
                    combined_score=combined,
                    doc_concepts=doc_concepts,
                )
            )
            logger.debug(
                "Rerank '{}': similarity={:.3f} semantic={:.3f} combined={:.3f}",
                candidate.document.title or candidate.document.text[:30],
                candidate.similarity,
                semantic_score,
                combined,
            )

        # sorted() is stable with reverse=True
        return sorted(ranked, key=lambda r: r.combined_score, reverse=True)
