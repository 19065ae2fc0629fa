"""Centralized configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- LLM ---
    gemini_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"
    llm_provider: str = "gemini"  # "gemini" or "ollama"
    llm_model: str = ""  # empty = provider default
    completion_timeout_s: float = 60.0

    # --- Embeddings / vector store ---
    embedding_model: str = "paraphrase-multilingual-MiniLM-L12-v2"
    chroma_dir: Path = DATA_DIR / "chroma"

    # --- Inputs ---
    ontology_path: Path = DATA_DIR / "ontology.json"
    documents_path: Path = DATA_DIR / "documents.json"

    # --- Expansion / reranking policy ---
    similarity_weight: float = 0.6
    semantic_weight: float = 0.4
    exact_match_score: float = 1.0
    related_match_score: float = 0.5
    expansion_depth: int = 1
    rerank_relation_depth: int = 1
    related_default_depth: int = 2
    max_sources: int = 3
    retrieve_count: int = 5
    retrieval_timeout_s: float = 10.0  # 0 disables the timeout
    search_workers: int = 8  # concurrent timed searches per orchestrator

    # --- Concept extraction ---
    fuzzy_keywords: bool = False
    fuzzy_threshold: int = 85

    # --- App ---
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
