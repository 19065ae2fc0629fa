"""Semantic RAG query engine — main orchestrator.

Coordinates query expansion, retrieval, ontology reranking, prompt
assembly and answer generation.

Flow:
    User question
        → Query expansion      (query_expander → concept graph)
        → Vector retrieval     (retriever, with the expanded query)
        → Reranking            (reranker → concept graph)
        → Prompt assembly      (top documents + their concepts)
        → Completion service   (llm)
        → AnswerBundle

If retrieval yields nothing, the original question goes to the completion
service as-is.

Usage:
    from ontorag.engine.query_engine import SemanticRetrievalOrchestrator
    engine = SemanticRetrievalOrchestrator(retrieval=store, completion=llm)
    engine.initialize(documents, ontology_definition)
    bundle = engine.answer("for文について教えて")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol

from loguru import logger

from ontorag.config import Settings, get_settings
from ontorag.engine.concept_extractor import ConceptExtractor
from ontorag.engine.query_expander import ExpansionResult, QueryExpander
from ontorag.engine.reranker import RankedCandidate, Reranker
from ontorag.engine.retriever import (
    DEFAULT_SEARCH_WORKERS,
    Document,
    RetrievalService,
    SearchPool,
    retrieve_candidates,
)
from ontorag.errors import UninitializedStateError
from ontorag.llm.client import LLMResponse
from ontorag.ontology.graph import ConceptGraph
from ontorag.ontology.loader import OntologyDefinition, build_graph

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are a learning-support tutor. Answer the student's question using the "
    "reference documents and the relationships between the concepts involved.\n\n"
    "Rules:\n"
    "1. Base the answer on the reference documents when they are relevant.\n"
    "2. Explain how the related concepts connect to each other (prerequisites, "
    "related ideas).\n"
    "3. Answer in the same language as the question.\n"
)

DOCUMENT_TEMPLATE = "[Document {index}]\n{text}\n(Related concepts: {concepts})\n"

CONTEXT_TEMPLATE = "REFERENCE DOCUMENTS:\n\n{documents}\nConcepts used for retrieval: {concepts}"

USER_TEMPLATE = (
    "{context}\n\n"
    "QUESTION: {question}\n\n"
    "When answering, also explain how the related concepts connect.\n"
    "ANSWER:"
)

DEFAULT_RETRIEVE_COUNT = 5
DEFAULT_MAX_SOURCES = 3


class CompletionService(Protocol):
    """Contract the core needs from a text-completion backend.

    Implementations raise :class:`~ontorag.errors.UpstreamFailure` on failure.
    """

    def complete(self, prompt: str, *, system_prompt: str = "") -> LLMResponse: ...


# ---------------------------------------------------------------------------
# Result data class
# ---------------------------------------------------------------------------


@dataclass
class AnswerBundle:
    """Everything produced while answering one question."""

    answer: str
    """Generated answer text."""

    original_query: str
    """The question as asked."""

    expansion: ExpansionResult
    """Query expansion details."""

    sources: list[RankedCandidate] = field(default_factory=list)
    """Top reranked documents used as context (empty when none were found)."""

    usage: dict[str, int] = field(default_factory=dict)
    """Token usage reported by the completion service."""

    @property
    def concepts_used(self) -> list[str]:
        """Expanded concept ids that shaped retrieval."""
        return list(self.expansion.expanded_concepts)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a dictionary (for API responses)."""
        return {
            "answer": self.answer,
            "original_query": self.original_query,
            "expansion": self.expansion.to_dict(),
            "sources": [s.to_dict() for s in self.sources],
            "concepts_used": self.concepts_used,
            "usage": dict(self.usage),
        }


class _OntologyState(NamedTuple):
    """Graph plus the components bound to it, published as one reference."""

    graph: ConceptGraph
    extractor: ConceptExtractor
    expander: QueryExpander
    reranker: Reranker


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------


def build_semantic_context(sources: Sequence[RankedCandidate], expansion: ExpansionResult) -> str:
    """List each source's text and concepts, then the expanded concepts."""
    documents = "\n".join(
        DOCUMENT_TEMPLATE.format(
            index=i,
            text=source.document.text,
            concepts=", ".join(source.doc_concepts),
        )
        for i, source in enumerate(sources, 1)
    )
    return CONTEXT_TEMPLATE.format(
        documents=documents,
        concepts=", ".join(expansion.expanded_concepts),
    )


def build_semantic_prompt(question: str, context: str) -> str:
    return USER_TEMPLATE.format(context=context, question=question)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class SemanticRetrievalOrchestrator:
    """Answer questions with ontology-expanded retrieval and reranking.

    One instance serves concurrent requests: the ontology state is only
    replaced wholesale (:meth:`initialize`, :meth:`reload_ontology`), never
    mutated while queries read it.
    """

    def __init__(
        self,
        retrieval: RetrievalService,
        completion: CompletionService,
        *,
        extractor: ConceptExtractor | None = None,
        expansion_depth: int = 1,
        similarity_weight: float = 0.6,
        semantic_weight: float = 0.4,
        exact_match_score: float = 1.0,
        related_match_score: float = 0.5,
        rerank_relation_depth: int = 1,
        retrieve_count: int = DEFAULT_RETRIEVE_COUNT,
        max_sources: int = DEFAULT_MAX_SOURCES,
        retrieval_timeout_s: float | None = None,
        search_workers: int = DEFAULT_SEARCH_WORKERS,
    ) -> None:
        self.retrieval = retrieval
        self.completion = completion
        self.extractor = extractor or ConceptExtractor()
        self.expansion_depth = expansion_depth
        self.similarity_weight = similarity_weight
        self.semantic_weight = semantic_weight
        self.exact_match_score = exact_match_score
        self.related_match_score = related_match_score
        self.rerank_relation_depth = rerank_relation_depth
        self.retrieve_count = retrieve_count
        self.max_sources = max_sources
        self.retrieval_timeout_s = retrieval_timeout_s
        self._search_pool = SearchPool(search_workers)
        self._state: _OntologyState | None = None
        self._documents_indexed = False

    @classmethod
    def from_settings(
        cls,
        retrieval: RetrievalService,
        completion: CompletionService,
        settings: Settings | None = None,
    ) -> SemanticRetrievalOrchestrator:
        """Build an orchestrator with policy values taken from settings."""
        settings = settings or get_settings()
        return cls(
            retrieval,
            completion,
            extractor=ConceptExtractor(
                fuzzy=settings.fuzzy_keywords,
                fuzzy_threshold=settings.fuzzy_threshold,
            ),
            expansion_depth=settings.expansion_depth,
            similarity_weight=settings.similarity_weight,
            semantic_weight=settings.semantic_weight,
            exact_match_score=settings.exact_match_score,
            related_match_score=settings.related_match_score,
            rerank_relation_depth=settings.rerank_relation_depth,
            retrieve_count=settings.retrieve_count,
            max_sources=settings.max_sources,
            retrieval_timeout_s=settings.retrieval_timeout_s,
            search_workers=settings.search_workers,
        )

    # -------------------- Lifecycle --------------------

    @property
    def initialized(self) -> bool:
        return self._state is not None and self._documents_indexed

    @property
    def graph(self) -> ConceptGraph:
        return self._require_state().graph

    @property
    def expander(self) -> QueryExpander:
        return self._require_state().expander

    @property
    def reranker(self) -> Reranker:
        return self._require_state().reranker

    def _require_state(self) -> _OntologyState:
        state = self._state
        if state is None or not self._documents_indexed:
            raise UninitializedStateError("Semantic RAG system is not initialized")
        return state

    def initialize(self, documents: Sequence[Document], ontology: OntologyDefinition) -> None:
        """Load the ontology and index the document corpus.

        Must complete before any call to :meth:`answer`.
        """
        logger.info("Initializing semantic RAG system...")

        self.reload_ontology(ontology)

        logger.info("Indexing {} documents...", len(documents))
        for document in documents:
            self.retrieval.add_document(document)
        self._documents_indexed = True

        logger.info("Semantic RAG system ready ({} documents)", len(documents))

    def reload_ontology(self, ontology: OntologyDefinition) -> None:
        """Build a fresh graph from *ontology* and publish it atomically."""
        graph = build_graph(ontology)

        # Ontology keywords extend a copy; the base table stays untouched
        extractor = self.extractor.copy()
        for concept_id, phrases in ontology.keywords().items():
            extractor.add_keywords(concept_id, phrases)

        self._state = _OntologyState(
            graph=graph,
            extractor=extractor,
            expander=QueryExpander(graph, extractor, depth=self.expansion_depth),
            reranker=Reranker(
                graph,
                extractor,
                similarity_weight=self.similarity_weight,
                semantic_weight=self.semantic_weight,
                exact_match_score=self.exact_match_score,
                related_match_score=self.related_match_score,
                relation_depth=self.rerank_relation_depth,
            ),
        )

    # -------------------- Query --------------------

    def expand_query(self, question: str) -> ExpansionResult:
        return self._require_state().expander.expand(question)

    def answer(self, question: str, *, retrieve_count: int | None = None) -> AnswerBundle:
        """Answer *question* through the full semantic RAG pipeline.

        Raises:
            UninitializedStateError: If :meth:`initialize` has not run.
            UpstreamFailure: If the completion service fails.
        """
        # Bind once so a concurrent reload cannot mix two ontologies
        state = self._require_state()
        if retrieve_count is None:
            retrieve_count = self.retrieve_count

        logger.info("Processing question: '{}'", question[:100])

        # 1. Query expansion
        expansion = state.expander.expand(question)
        logger.info("Expanded query: '{}'", expansion.expanded_query[:200])

        # 2. Retrieval with the expanded query
        candidates = retrieve_candidates(
            self.retrieval,
            expansion.expanded_query,
            retrieve_count,
            timeout_s=self.retrieval_timeout_s,
            pool=self._search_pool,
        )

        if not candidates:
            logger.warning("No relevant documents found, answering without context")
            response = self.completion.complete(question)
            return AnswerBundle(
                answer=response.text,
                original_query=question,
                expansion=expansion,
                usage=dict(response.usage),
            )

        # 3. Ontology reranking
        reranked = state.reranker.rerank(candidates, expansion.query_concepts)
        sources = reranked[: self.max_sources]

        # 4-5. Context + prompt
        context = build_semantic_context(sources, expansion)
        prompt = build_semantic_prompt(question, context)

        # 6. Answer generation
        logger.info("Generating answer from {} sources...", len(sources))
        response = self.completion.complete(prompt, system_prompt=SYSTEM_PROMPT)

        logger.info("Answer generated: {} chars", len(response.text))

        return AnswerBundle(
            answer=response.text,
            original_query=question,
            expansion=expansion,
            sources=sources,
            usage=dict(response.usage),
        )
