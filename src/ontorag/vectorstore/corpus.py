"""Learning-document corpus loading.

The corpus is a JSON list of passages:

    [
      {"id": "loops-basics", "content": "ループは...", "title": "ループの基本",
       "subject": "programming", "level": "beginner"},
      ...
    ]

``content`` (or ``text``) becomes the document text; every other field
except ``id`` is kept as metadata.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from ontorag.engine.retriever import Document

TEXT_FIELDS: tuple[str, ...] = ("content", "text")


def parse_document(raw: Mapping[str, Any], index: int = 0) -> Document | None:
    """Build a Document from one corpus entry (None if it has no text)."""
    text = next((raw[f] for f in TEXT_FIELDS if raw.get(f)), "")
    if not str(text).strip():
        return None

    metadata = {k: v for k, v in raw.items() if k not in TEXT_FIELDS and k != "id"}
    doc_id = str(raw.get("id") or f"doc-{index}")
    return Document(text=str(text).strip(), metadata=metadata, doc_id=doc_id)


def load_documents(path: Path | str) -> list[Document]:
    """Load the corpus JSON file, skipping entries without text."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        entries = json.load(f)

    documents: list[Document] = []
    for i, raw in enumerate(entries):
        doc = parse_document(raw, index=i)
        if doc is None:
            logger.warning("Skipping corpus entry #{} without text", i)
            continue
        documents.append(doc)

    logger.info("Loaded {} documents from {}", len(documents), path)
    return documents
