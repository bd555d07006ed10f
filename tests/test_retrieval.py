"""
Tests for vector stores and the retriever: ordering, limits, filters, dimensions.
"""

import asyncio
from typing import Any

import pytest

from chat_starter.core.config import Settings
from chat_starter.core.errors import EmbeddingDimensionError
from chat_starter.services.ingestion_service import ingest_text
from chat_starter.services.retrieval_service import Retriever, combine_documents
from chat_starter.services.vector_store import (
    DocumentChunk,
    InMemoryVectorStore,
    MilvusVectorStore,
    RetrievalResult,
    build_filter_expression,
)

from conftest import DIM

CORPUS = [
    "The sky is blue.",
    "Grass is green and soft.",
    "Milvus stores vectors for similarity search.",
    "Puppies like to chase balls in the park.",
    "The ocean is blue and deep.",
    "Robots answer questions about documents.",
    "Parrots can repeat words.",
    "Bread is baked in an oven.",
]


def _seed(embeddings, store, texts=CORPUS, metadata=None) -> list[Any]:
    async def run() -> list[Any]:
        vectors = await embeddings.embed_documents(texts)
        chunks = [DocumentChunk(content=t, embedding=v, metadata=dict(metadata or {})) for t, v in zip(texts, vectors)]
        return await store.add(chunks)

    return asyncio.run(run())


class TestInMemoryVectorStore:
    def test_results_are_non_increasing_and_bounded(self, embeddings, store) -> None:
        _seed(embeddings, store)
        results = asyncio.run(Retriever(embeddings, store, k=6).retrieve("Is the sky blue?"))
        assert 0 < len(results) <= 6
        scores = [r.similarity for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_exact_text_is_top_match(self, embeddings, store) -> None:
        _seed(embeddings, store)
        results = asyncio.run(Retriever(embeddings, store, k=3).retrieve("The sky is blue."))
        assert results[0].content == "The sky is blue."
        assert results[0].similarity == pytest.approx(1.0)

    def test_k_zero_returns_nothing(self, embeddings, store) -> None:
        _seed(embeddings, store)
        vec = asyncio.run(embeddings.embed_query("sky"))
        assert asyncio.run(store.similarity_search(vec, 0)) == []

    def test_filter_restricts_by_metadata(self, embeddings, store) -> None:
        _seed(embeddings, store, ["The sky is blue."], {"source": "a.txt"})
        _seed(embeddings, store, ["The sky is grey."], {"source": "b.txt"})
        retriever = Retriever(embeddings, store, k=6, filter={"source": "b.txt"})
        results = asyncio.run(retriever.retrieve("The sky is blue."))
        assert [r.content for r in results] == ["The sky is grey."]
        assert results[0].metadata == {"source": "b.txt"}

    def test_wrong_dimension_is_rejected(self, store) -> None:
        with pytest.raises(EmbeddingDimensionError):
            asyncio.run(store.similarity_search([1.0] * (DIM + 1), 3))
        with pytest.raises(EmbeddingDimensionError):
            asyncio.run(store.add([DocumentChunk(content="x", embedding=[1.0, 0.0])]))

    def test_ids_are_unique(self, embeddings, store) -> None:
        ids = _seed(embeddings, store)
        assert len(set(ids)) == len(CORPUS)


class TestRetriever:
    def test_blank_question_skips_embedding(self, embeddings, store) -> None:
        assert asyncio.run(Retriever(embeddings, store).retrieve("   ")) == []
        assert embeddings.queries == []

    def test_combine_documents_joins_with_blank_lines(self) -> None:
        results = [
            RetrievalResult(id=1, content="first", metadata={}, similarity=0.9),
            RetrievalResult(id=2, content="second", metadata={}, similarity=0.5),
        ]
        assert combine_documents(results) == "first\n\nsecond"


class TestIngestion:
    def test_ingest_adds_chunk_index_metadata(self, embeddings, store) -> None:
        text = " ".join(f"Sentence number {i} is here." for i in range(30))
        ids = asyncio.run(ingest_text(text, embeddings, store, metadata={"source": "doc"}, chunk_size=120, overlap=10))
        assert len(ids) >= 2
        vec = asyncio.run(embeddings.embed_query("Sentence number"))
        results = asyncio.run(store.similarity_search(vec, len(ids)))
        assert {r.metadata["source"] for r in results} == {"doc"}
        assert sorted(r.metadata["chunk_index"] for r in results) == list(range(len(ids)))


class TestMilvusFilterExpression:
    def test_empty_filter(self) -> None:
        assert build_filter_expression(None) == ""
        assert build_filter_expression({}) == ""

    def test_scalar_values_are_quoted(self) -> None:
        expr = build_filter_expression({"source": "a.txt", "page": 2})
        assert expr == 'metadata["source"] == "a.txt" and metadata["page"] == 2'

    def test_non_scalar_values_raise(self) -> None:
        with pytest.raises(ValueError):
            build_filter_expression({"tags": ["a", "b"]})


class FakeMilvusClient:
    """Records calls; search returns canned hits (one list per query vector)."""

    def __init__(self, dim: int = DIM, hits: list[dict] | None = None) -> None:
        self.dim = dim
        self.hits = hits or []
        self.inserted: list[dict] = []
        self.search_kwargs: dict[str, Any] = {}
        self.loaded = False

    def has_collection(self, name: str) -> bool:
        return True

    def describe_collection(self, name: str) -> dict:
        return {"fields": [{"name": "id", "params": {}}, {"name": "embedding", "params": {"dim": self.dim}}]}

    def load_collection(self, name: str) -> None:
        self.loaded = True

    def insert(self, collection_name: str, data: list[dict]) -> dict:
        start = len(self.inserted)
        self.inserted.extend(data)
        return {"insert_count": len(data), "ids": list(range(start + 100, start + 100 + len(data)))}

    def flush(self, collection_name: str) -> None:
        pass

    def search(self, **kwargs: Any) -> list[list[dict]]:
        self.search_kwargs = kwargs
        return [self.hits]


class TestMilvusVectorStore:
    def _store(self, client: FakeMilvusClient) -> MilvusVectorStore:
        settings = Settings(embedding_dimensions=DIM, milvus_uri="http://localhost:19530", collection_name="docs")
        return MilvusVectorStore(settings, client=client)

    def test_add_inserts_rows_and_returns_ids(self) -> None:
        client = FakeMilvusClient()
        store = self._store(client)
        ids = asyncio.run(store.add([DocumentChunk(content="hello", embedding=[0.1] * DIM, metadata={"a": 1})]))
        assert ids == [100]
        assert client.loaded
        row = client.inserted[0]
        assert row["content"] == "hello"
        assert row["metadata"] == {"a": 1}
        assert row["created_at"] == row["updated_at"]

    def test_search_maps_hits_in_similarity_order(self) -> None:
        hits = [
            {"id": 2, "distance": 0.4, "entity": {"content": "low", "metadata": {}}},
            {"id": 1, "distance": 0.9, "entity": {"content": "high", "metadata": {"source": "x"}}},
        ]
        client = FakeMilvusClient(hits=hits)
        store = self._store(client)
        results = asyncio.run(store.similarity_search([0.1] * DIM, 5, filter={"source": "x"}))
        assert [r.content for r in results] == ["high", "low"]
        assert results[0].id == 1
        assert results[0].metadata == {"source": "x"}
        assert client.search_kwargs["limit"] == 5
        assert client.search_kwargs["filter"] == 'metadata["source"] == "x"'

    def test_existing_collection_with_other_dimension_is_rejected(self) -> None:
        store = self._store(FakeMilvusClient(dim=DIM * 2))
        with pytest.raises(EmbeddingDimensionError):
            asyncio.run(store.similarity_search([0.1] * DIM, 3))


def test_empty_store_returns_nothing() -> None:
    assert asyncio.run(InMemoryVectorStore(DIM).similarity_search([0.0] * DIM, 3)) == []
