"""Sentence-transformers embeddings for corpus passages and queries.

Passages and queries go through the same model so they share one space
(the default multilingual MiniLM handles Japanese and English side by side).
A passage is embedded together with its title, since short learning notes
often name their topic only in the heading.

Models are cached per name, so changing ``embedding_model`` loads the new
model without touching one already in use.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence

from loguru import logger
from sentence_transformers import SentenceTransformer

from ontorag.config import get_settings
from ontorag.engine.retriever import Document

_models: dict[str, SentenceTransformer] = {}
_models_lock = threading.Lock()


def get_model(model_name: str | None = None) -> SentenceTransformer:
    """Return the cached model for *model_name* (settings default if None)."""
    name = model_name or get_settings().embedding_model

    with _models_lock:
        model = _models.get(name)
        if model is None:
            logger.info("Loading embedding model '{}'", name)
            model = _models[name] = SentenceTransformer(name)
            logger.info("'{}' ready ({} dimensions)", name, model.get_sentence_embedding_dimension())

    return model


def passage_text(document: Document) -> str:
    """Text embedded for a document: title line, then body."""
    if document.title:
        return f"{document.title}\n{document.text}"
    return document.text


def embed_documents(
    documents: Sequence[Document],
    model_name: str | None = None,
    batch_size: int = 64,
) -> list[list[float]]:
    """Embed corpus passages as L2-normalised vectors (plain lists for ChromaDB)."""
    if not documents:
        return []

    logger.debug("Embedding {} passages (batch_size={})", len(documents), batch_size)
    vectors = get_model(model_name).encode(
        [passage_text(d) for d in documents],
        batch_size=batch_size,
        show_progress_bar=False,
        normalize_embeddings=True,
    )
    return vectors.tolist()


def embed_query(query: str, model_name: str | None = None) -> list[float]:
    """Embed a single (usually expanded) query."""
    vectors = get_model(model_name).encode(
        [query],
        show_progress_bar=False,
        normalize_embeddings=True,
    )
    return vectors.tolist()[0]
