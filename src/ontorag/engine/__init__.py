"""Semantic query engine — concept extraction, expansion, reranking, orchestration."""

from ontorag.engine.concept_extractor import ConceptExtractor
from ontorag.engine.query_engine import AnswerBundle, SemanticRetrievalOrchestrator
from ontorag.engine.query_expander import ExpansionResult, QueryExpander
from ontorag.engine.reranker import RankedCandidate, Reranker
from ontorag.engine.retriever import Candidate, Document, RetrievalService, retrieve_candidates

__all__ = [
    "AnswerBundle",
    "Candidate",
    "ConceptExtractor",
    "Document",
    "ExpansionResult",
    "QueryExpander",
    "RankedCandidate",
    "Reranker",
    "RetrievalService",
    "SemanticRetrievalOrchestrator",
    "retrieve_candidates",
]
