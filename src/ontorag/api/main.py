"""FastAPI application — routes for the semantic RAG API.

Endpoints:
    POST /query               — Ask a question, get an ontology-aware RAG answer.
    GET  /concept/{concept_id} — Inspect a concept and its neighbourhood.
    GET  /health              — Health check.

Usage:
    uvicorn ontorag.api.main:app --reload
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import FastAPI, HTTPException
from loguru import logger

from ontorag import __version__
from ontorag.api.models import (
    ConceptResponse,
    HealthResponse,
    QueryRequest,
    QueryResponse,
    SourceInfo,
)
from ontorag.config import get_settings
from ontorag.engine.query_engine import SemanticRetrievalOrchestrator
from ontorag.errors import UninitializedStateError, UpstreamFailure

app = FastAPI(
    title="OntoRAG",
    description=(
        "Semantic RAG API that expands questions with a learning ontology "
        "and reranks retrieved passages by concept relevance."
    ),
    version=__version__,
)


@lru_cache(maxsize=1)
def get_engine() -> SemanticRetrievalOrchestrator:
    """Build and initialize the shared engine from settings (once)."""
    from ontorag.llm.client import LLMCompletionService
    from ontorag.ontology.loader import load_ontology_file
    from ontorag.vectorstore.corpus import load_documents
    from ontorag.vectorstore.store import ChromaRetrievalService

    settings = get_settings()
    engine = SemanticRetrievalOrchestrator.from_settings(
        ChromaRetrievalService(),
        LLMCompletionService(timeout_s=settings.completion_timeout_s),
        settings,
    )
    engine.initialize(
        load_documents(settings.documents_path),
        load_ontology_file(settings.ontology_path),
    )
    return engine


# ---------------------------------------------------------------------------
# POST /query
# ---------------------------------------------------------------------------


@app.post("/query", response_model=QueryResponse)
def query(req: QueryRequest) -> QueryResponse:
    """Answer a question through the semantic RAG pipeline.

    1. Expand the question with related and prerequisite concepts.
    2. Retrieve with the expanded query and rerank by concept relevance.
    3. Generate an LLM answer from the top documents.
    """
    try:
        bundle = get_engine().answer(req.question, retrieve_count=req.retrieve_count)
    except UninitializedStateError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except UpstreamFailure as exc:
        logger.error("Completion failed ({}): {}", exc.provider or "unknown", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    sources = [
        SourceInfo(
            title=s.document.title,
            subject=s.document.subject,
            level=s.document.level,
            snippet=s.document.text[:200],
            similarity=s.similarity,
            semantic_score=s.semantic_score,
            combined_score=s.combined_score,
            concepts=s.doc_concepts,
        )
        for s in bundle.sources
    ]

    return QueryResponse(
        question=req.question,
        answer=bundle.answer,
        expanded_query=bundle.expansion.expanded_query,
        query_concepts=bundle.expansion.query_concepts,
        expanded_concepts=bundle.concepts_used,
        sources=sources,
        usage=bundle.usage,
    )


# ---------------------------------------------------------------------------
# GET /concept/{concept_id}
# ---------------------------------------------------------------------------


@app.get("/concept/{concept_id}", response_model=ConceptResponse)
def get_concept(concept_id: str) -> ConceptResponse:
    """Return a concept with its related concepts and prerequisite chain."""
    try:
        graph = get_engine().graph
    except UninitializedStateError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    concept = graph.get_concept(concept_id)
    if concept is None:
        raise HTTPException(
            status_code=404,
            detail=f"Concept '{concept_id}' not found in the ontology.",
        )

    return ConceptResponse(
        id=concept.id,
        label=concept.display_label,
        level=concept.level or "",
        prerequisites=list(concept.prerequisites or ()),
        properties=concept.extra,
        related=graph.find_related(concept_id, get_settings().related_default_depth),
        prerequisite_chain=graph.get_prerequisite_chain(concept_id),
    )


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Health check — reports ontology size and vector store status."""
    ontology_status = "unknown"
    chroma_status = "unknown"

    try:
        graph = get_engine().graph
        ontology_status = f"ok ({len(graph)} concepts, {graph.relation_count} relations)"
    except Exception as exc:  # noqa: BLE001
        ontology_status = f"error: {exc}"

    try:
        from ontorag.vectorstore.store import get_collection

        count = get_collection().count()
        chroma_status = f"ok ({count} docs)"
    except Exception as exc:  # noqa: BLE001
        chroma_status = f"error: {exc}"

    return HealthResponse(
        status="ok",
        version=__version__,
        ontology=ontology_status,
        chromadb=chroma_status,
    )
