"""Load the learning-document corpus into the ChromaDB vector store.

Usage:
    python scripts/load_vectorstore.py
"""

from __future__ import annotations

from loguru import logger

from ontorag.config import get_settings
from ontorag.vectorstore.corpus import load_documents
from ontorag.vectorstore.store import add_documents, reset_collection


def main() -> None:
    """Embed every corpus document and load it into ChromaDB."""
    settings = get_settings()
    logger.info("=== Loading {} into ChromaDB ===", settings.documents_path)

    documents = load_documents(settings.documents_path)
    if not documents:
        logger.error("No documents loaded — check {}", settings.documents_path)
        return

    collection = reset_collection()
    added = add_documents(documents, collection=collection, batch_size=50)

    logger.info("=== Done! Added {} documents to ChromaDB ===", added)

    subjects = {d.subject for d in documents}
    levels = {d.level for d in documents}
    logger.info("Subjects: {}", subjects)
    logger.info("Levels: {}", levels)


if __name__ == "__main__":
    main()
