"""ChromaDB vector store operations.

Manages the ChromaDB collection that stores learning-document embeddings.
Provides functions to create/reset the collection, add documents, and
perform similarity search, plus :class:`ChromaRetrievalService`, the
retrieval backend used by the query engine.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import chromadb
from chromadb.config import Settings as ChromaSettings
from loguru import logger

from ontorag.config import get_settings
from ontorag.engine.retriever import Candidate, Document
from ontorag.vectorstore.embedder import embed_documents, embed_query

COLLECTION_NAME = "learning_documents"

# ---------------------------------------------------------------------------
# Client management
# ---------------------------------------------------------------------------

_client: chromadb.ClientAPI | None = None


def get_client(persist_dir: Path | None = None) -> chromadb.ClientAPI:
    """Return a persistent ChromaDB client (cached).

    Args:
        persist_dir: Directory for ChromaDB storage.
            Defaults to the ``chroma_dir`` setting.
    """
    global _client  # noqa: PLW0603

    if persist_dir is None:
        persist_dir = get_settings().chroma_dir

    if _client is None:
        persist_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Initialising ChromaDB at {}", persist_dir)
        _client = chromadb.PersistentClient(
            path=str(persist_dir),
            settings=ChromaSettings(anonymized_telemetry=False),
        )

    return _client


def get_collection(
    client: chromadb.ClientAPI | None = None,
    collection_name: str = COLLECTION_NAME,
) -> chromadb.Collection:
    """Get or create the learning-documents collection (cosine space)."""
    if client is None:
        client = get_client()

    collection = client.get_or_create_collection(
        name=collection_name,
        metadata={"hnsw:space": "cosine"},
    )
    logger.debug(
        "Collection '{}' — {} documents",
        collection_name,
        collection.count(),
    )
    return collection


def reset_collection(
    client: chromadb.ClientAPI | None = None,
    collection_name: str = COLLECTION_NAME,
) -> chromadb.Collection:
    """Delete and recreate the collection (fresh start)."""
    if client is None:
        client = get_client()

    try:
        client.delete_collection(collection_name)
        logger.info("Deleted existing collection '{}'", collection_name)
    except (ValueError, Exception) as exc:
        # ChromaDB raises NotFoundError (or ValueError in older versions)
        if "not found" in str(exc).lower() or "does not exist" in str(exc).lower():
            pass
        else:
            raise

    return get_collection(client, collection_name)


# ---------------------------------------------------------------------------
# Add documents
# ---------------------------------------------------------------------------


def _document_id(document: Document) -> str:
    return document.doc_id or hashlib.sha1(document.text.encode("utf-8")).hexdigest()[:16]


def _clean_metadata(metadata: Mapping[str, Any]) -> dict[str, str | int | float | bool]:
    """Coerce metadata to the scalar types ChromaDB accepts."""
    clean: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            clean[key] = value
        elif isinstance(value, (list, tuple, set)):
            clean[key] = ", ".join(str(v) for v in value)
        else:
            clean[key] = str(value)
    return clean


def add_documents(
    documents: list[Document],
    collection: chromadb.Collection | None = None,
    batch_size: int = 100,
) -> int:
    """Embed and upsert documents into ChromaDB.

    Returns:
        Number of documents added.
    """
    if not documents:
        return 0

    if collection is None:
        collection = get_collection()

    total_added = 0

    for i in range(0, len(documents), batch_size):
        batch = documents[i : i + batch_size]

        texts = [d.text for d in batch]
        ids = [_document_id(d) for d in batch]
        collection.upsert(
            ids=ids,
            embeddings=embed_documents(batch),
            documents=texts,
            metadatas=[{**_clean_metadata(d.metadata), "doc_id": doc_id} for d, doc_id in zip(batch, ids)],
        )

        total_added += len(batch)
        logger.debug(
            "  Added batch {}/{} ({} documents)",
            i // batch_size + 1,
            (len(documents) + batch_size - 1) // batch_size,
            len(batch),
        )

    logger.info("Total documents in collection: {}", collection.count())
    return total_added


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def search(
    query: str,
    n_results: int = 5,
    collection: chromadb.Collection | None = None,
    where: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Perform similarity search on the vector store.

    Args:
        query: Natural language query string.
        n_results: Number of results to return.
        collection: Target collection (uses default if None).
        where: Optional metadata filter (e.g., {"subject": "programming"}).

    Returns:
        List of dicts with keys: id, text, metadata, distance.
    """
    if collection is None:
        collection = get_collection()

    doc_count = collection.count()
    if doc_count == 0 or n_results <= 0:
        return []

    query_embedding = embed_query(query)

    query_kwargs: dict[str, Any] = {
        "query_embeddings": [query_embedding],
        "n_results": min(n_results, doc_count),
        "include": ["documents", "metadatas", "distances"],
    }
    if where is not None:
        query_kwargs["where"] = where

    results = collection.query(**query_kwargs)

    output: list[dict[str, Any]] = []
    if results["ids"] and results["ids"][0]:
        for idx in range(len(results["ids"][0])):
            output.append(
                {
                    "id": results["ids"][0][idx],
                    "text": results["documents"][0][idx] if results["documents"] else "",
                    "metadata": (results["metadatas"][0][idx] if results["metadatas"] else None) or {},
                    "distance": results["distances"][0][idx] if results["distances"] else None,
                }
            )

    return output


def distance_to_similarity(distance: float | None) -> float:
    """Convert a cosine distance to a similarity clamped to [0, 1]."""
    if distance is None:
        return 0.0
    return max(0.0, min(1.0, 1.0 - float(distance)))


class ChromaRetrievalService:
    """Retrieval backend over a ChromaDB collection."""

    def __init__(self, collection: chromadb.Collection | None = None) -> None:
        self._collection = collection

    @property
    def collection(self) -> chromadb.Collection:
        if self._collection is None:
            self._collection = get_collection()
        return self._collection

    def add_document(self, document: Document) -> None:
        add_documents([document], collection=self.collection)

    def search(self, query: str, top_k: int) -> list[Candidate]:
        results = search(query, n_results=top_k, collection=self.collection)
        candidates = [
            Candidate(
                document=Document(
                    text=r["text"] or "",
                    metadata={k: v for k, v in r["metadata"].items() if k != "doc_id"},
                    doc_id=r["id"],
                ),
                similarity=distance_to_similarity(r["distance"]),
            )
            for r in results
        ]
        candidates.sort(key=lambda c: c.similarity, reverse=True)
        return candidates

    def count(self) -> int:
        return self.collection.count()
