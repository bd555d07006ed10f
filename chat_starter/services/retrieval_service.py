"""
Retrieval: embed a standalone question and run a similarity search.

Responsibility: return the store's top-k chunks for a question, in store order
(non-increasing similarity). No deduplication and no re-ranking.
"""

import logging
from typing import Any

from chat_starter.services.embeddings import Embeddings
from chat_starter.services.vector_store import RetrievalResult, VectorStore

logger = logging.getLogger(__name__)

DEFAULT_K = 6


def combine_documents(results: list[RetrievalResult]) -> str:
    """Join retrieved chunk contents with blank-line separators."""
    return "\n\n".join(r.content for r in results)


class Retriever:
    """Embedding provider + vector store, queried with one question at a time."""

    def __init__(
        self,
        embeddings: Embeddings,
        store: VectorStore,
        k: int = DEFAULT_K,
        filter: dict[str, Any] | None = None,
    ) -> None:
        self.embeddings = embeddings
        self.store = store
        self.k = k
        self.filter = filter

    async def retrieve(self, question: str) -> list[RetrievalResult]:
        logger.info("[retrieval:retrieve] IN  query=%r k=%d", question, self.k)
        if not question or not question.strip():
            logger.info("[retrieval:retrieve] OUT empty query, returning []")
            return []
        vector = await self.embeddings.embed_query(question)
        results = await self.store.similarity_search(vector, self.k, filter=self.filter)
        logger.info("[retrieval:retrieve] OUT results=%d first_sources=%s first_scores=%s",
                    len(results),
                    [r.metadata.get("source") for r in results[:5]],
                    [round(r.similarity, 4) for r in results[:5]])
        for i, r in enumerate(results):
            logger.debug("[retrieval:retrieve] result_%d id=%s text_preview=%r", i + 1, r.id, r.content[:200])
        return results
