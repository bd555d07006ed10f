"""
Document ingestion: clean, split, embed and persist raw text for retrieval.

Responsibility: orchestrate text processing, embeddings and the vector store.
Called by the API layer; no HTTP or FastAPI here.
"""

import logging
from typing import Any

from chat_starter.core.errors import InvalidRequestError
from chat_starter.services.embeddings import Embeddings
from chat_starter.services.text_processing import chunk_text, clean_text
from chat_starter.services.vector_store import DocumentChunk, VectorStore

logger = logging.getLogger(__name__)


async def ingest_text(
    text: str,
    embeddings: Embeddings,
    store: VectorStore,
    metadata: dict[str, Any] | None = None,
    chunk_size: int = 500,
    overlap: int = 50,
) -> list[Any]:
    """
    Split text into overlapping windows, embed each window and insert it.

    Every stored chunk gets a copy of `metadata` plus its `chunk_index`.
    Returns the store ids of the inserted chunks, in window order.

    Raises:
        InvalidRequestError: If the text is empty after cleaning.
    """
    cleaned = clean_text(text or "")
    if not cleaned:
        raise InvalidRequestError("text is required")
    windows = chunk_text(cleaned, chunk_size=chunk_size, overlap=overlap)
    logger.info("[ingestion:ingest_text] IN  text_len=%d chunks=%d metadata=%s", len(cleaned), len(windows), metadata)

    vectors = await embeddings.embed_documents(windows)
    base = dict(metadata or {})
    chunks = [
        DocumentChunk(content=window, embedding=vec, metadata={**base, "chunk_index": i})
        for i, (window, vec) in enumerate(zip(windows, vectors))
    ]
    ids = await store.add(chunks)
    logger.info("[ingestion:ingest_text] OUT stored=%d", len(chunks))
    return ids
