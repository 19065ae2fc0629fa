"""Pydantic models for the FastAPI layer.

Defines request and response schemas for the REST API.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class QueryRequest(BaseModel):
    """Body for POST /query."""

    question: str = Field(
        ...,
        min_length=2,
        max_length=2000,
        description="Natural-language question about a learning topic.",
        examples=["for文について教えて"],
    )
    retrieve_count: int = Field(5, ge=1, le=20, description="Documents to retrieve before reranking.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SourceInfo(BaseModel):
    """A reranked document used to build the answer."""

    title: str = ""
    subject: str = ""
    level: str = ""
    snippet: str = Field("", description="Short text excerpt.")
    similarity: float = 0.0
    semantic_score: float = 0.0
    combined_score: float = 0.0
    concepts: list[str] = Field(default_factory=list)


class QueryResponse(BaseModel):
    """Response for POST /query."""

    question: str
    answer: str = ""
    expanded_query: str = ""
    query_concepts: list[str] = Field(default_factory=list)
    expanded_concepts: list[str] = Field(default_factory=list)
    sources: list[SourceInfo] = Field(default_factory=list)
    usage: dict[str, int] = Field(default_factory=dict)


class ConceptResponse(BaseModel):
    """Response for GET /concept/{concept_id}."""

    id: str
    label: str = ""
    level: str = ""
    prerequisites: list[str] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)
    related: list[str] = Field(default_factory=list)
    prerequisite_chain: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "ok"
    version: str = ""
    ontology: str = "unknown"
    chromadb: str = "unknown"
