"""
Vector store adapters: Milvus (hosted) and an in-process store for local development.

Responsibility: insert (content, embedding, metadata) rows and run a cosine
similarity search with an optional metadata-equality filter. Results come back
ordered by descending similarity and never exceed the requested limit.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from chat_starter.core.config import Settings
from chat_starter.core.errors import EmbeddingDimensionError, ServiceUnavailableError

logger = logging.getLogger(__name__)

# Milvus VARCHAR upper bound
MAX_CONTENT_LENGTH = 65_535


@dataclass
class DocumentChunk:
    """A text span with metadata and its embedding, ready to persist."""

    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievalResult:
    """A stored chunk returned by a similarity search."""

    id: Any
    content: str
    metadata: dict[str, Any]
    similarity: float


class VectorStore(Protocol):
    dimensions: int

    async def add(self, chunks: list[DocumentChunk]) -> list[Any]: ...

    async def similarity_search(
        self, vector: list[float], k: int, filter: dict[str, Any] | None = None
    ) -> list[RetrievalResult]: ...


def _check_dimensions(expected: int, vector: list[float]) -> None:
    if len(vector) != expected:
        raise EmbeddingDimensionError(expected, len(vector))


def build_filter_expression(filter: dict[str, Any] | None) -> str:
    """
    Translate a metadata-equality mapping into a Milvus boolean expression.

    {"source": "a.txt", "page": 2} -> 'metadata["source"] == "a.txt" and metadata["page"] == 2'
    """
    if not filter:
        return ""
    clauses = []
    for key, value in filter.items():
        if not isinstance(value, (str, int, float, bool)):
            raise ValueError(f"Unsupported filter value for {key!r}: {value!r}")
        clauses.append(f"metadata[{json.dumps(str(key))}] == {json.dumps(value)}")
    return " and ".join(clauses)


def _sorted_top_k(results: list[RetrievalResult], k: int) -> list[RetrievalResult]:
    # sorted() is stable, so results already in store order keep it
    return sorted(results, key=lambda r: -r.similarity)[:k]


class MilvusVectorStore:
    """Milvus collection of (id, content, embedding, metadata, created_at, updated_at)."""

    def __init__(self, settings: Settings, client: Any = None) -> None:
        self.collection_name = settings.collection_name
        self.dimensions = settings.embedding_dimensions
        self._uri = settings.milvus_uri
        self._token = settings.milvus_token
        self._client = client
        self._ready = False

    def _get_client(self) -> Any:
        """
        Connect to Milvus and return a client. Creates the collection if it does
        not exist and checks an existing one has the configured dimensionality.
        """
        if self._client is None:
            if not self._uri:
                raise ServiceUnavailableError("MILVUS_URI (and MILVUS_TOKEN for Zilliz Cloud) must be set in .env")
            from pymilvus import MilvusClient

            self._client = MilvusClient(uri=self._uri, token=self._token)
            logger.info("Milvus connection established")
        if not self._ready:
            self._ensure_collection(self._client)
            self._ready = True
        return self._client

    def _ensure_collection(self, client: Any) -> None:
        from pymilvus import DataType, MilvusClient

        if client.has_collection(self.collection_name):
            info = client.describe_collection(self.collection_name)
            for f in info.get("fields", []):
                dim = (f.get("params") or {}).get("dim")
                if f.get("name") == "embedding" and dim is not None and int(dim) != self.dimensions:
                    raise EmbeddingDimensionError(self.dimensions, int(dim))
            client.load_collection(self.collection_name)
            return

        schema = MilvusClient.create_schema(auto_id=True, enable_dynamic_field=False)
        schema.add_field(field_name="id", datatype=DataType.INT64, is_primary=True)
        schema.add_field(field_name="content", datatype=DataType.VARCHAR, max_length=MAX_CONTENT_LENGTH)
        schema.add_field(field_name="embedding", datatype=DataType.FLOAT_VECTOR, dim=self.dimensions)
        schema.add_field(field_name="metadata", datatype=DataType.JSON)
        schema.add_field(field_name="created_at", datatype=DataType.INT64)
        schema.add_field(field_name="updated_at", datatype=DataType.INT64)

        index_params = client.prepare_index_params()
        index_params.add_index(field_name="embedding", index_type="AUTOINDEX", metric_type="COSINE")
        client.create_collection(
            collection_name=self.collection_name,
            schema=schema,
            index_params=index_params,
        )
        logger.info("Collection %s created (dim=%s)", self.collection_name, self.dimensions)

    def _add_sync(self, chunks: list[DocumentChunk]) -> list[Any]:
        client = self._get_client()
        now = int(time.time() * 1000)
        rows = []
        for c in chunks:
            _check_dimensions(self.dimensions, c.embedding)
            rows.append({
                "content": c.content,
                "embedding": c.embedding,
                "metadata": c.metadata,
                "created_at": now,
                "updated_at": now,
            })
        result = client.insert(collection_name=self.collection_name, data=rows)
        client.flush(collection_name=self.collection_name)
        ids = list(result.get("ids", [])) if isinstance(result, dict) else []
        logger.info("Stored %d chunks in %s", len(rows), self.collection_name)
        return ids

    def _search_sync(self, vector: list[float], k: int, filter: dict[str, Any] | None) -> list[RetrievalResult]:
        client = self._get_client()
        expr = build_filter_expression(filter)
        results = client.search(
            collection_name=self.collection_name,
            data=[vector],
            limit=k,
            filter=expr,
            output_fields=["content", "metadata"],
            search_params={"metric_type": "COSINE"},
        )
        # results: list of list of hits (one list per query vector)
        hits = results[0] if results else []
        out = []
        for h in hits:
            # With COSINE, Milvus reports the similarity itself as "distance"
            entity = h.get("entity") or h
            out.append(RetrievalResult(
                id=h.get("id", entity.get("id")),
                content=entity.get("content", ""),
                metadata=dict(entity.get("metadata") or {}),
                similarity=float(h.get("distance", h.get("score", 0.0))),
            ))
        return _sorted_top_k(out, k)

    async def add(self, chunks: list[DocumentChunk]) -> list[Any]:
        """Insert chunks; returns their Milvus primary keys."""
        if not chunks:
            return []
        return await asyncio.to_thread(self._add_sync, chunks)

    async def similarity_search(
        self, vector: list[float], k: int, filter: dict[str, Any] | None = None
    ) -> list[RetrievalResult]:
        """Top-k rows by cosine similarity, optionally restricted by metadata equality."""
        _check_dimensions(self.dimensions, vector)
        if k <= 0:
            return []
        logger.info("[vector_store:similarity_search] IN  k=%d filter=%s", k, filter)
        out = await asyncio.to_thread(self._search_sync, vector, k, filter)
        logger.info("[vector_store:similarity_search] OUT hits=%d top_scores=%s",
                    len(out), [round(r.similarity, 4) for r in out[:5]])
        return out


class InMemoryVectorStore:
    """Brute-force cosine search over a Python list. Local development and tests only."""

    def __init__(self, dimensions: int) -> None:
        self.dimensions = dimensions
        self._rows: list[tuple[int, DocumentChunk]] = []
        self._next_id = 1

    @staticmethod
    def _cosine(a: list[float], b: list[float]) -> float:
        dot = sum(x * y for x, y in zip(a, b))
        na = sum(x * x for x in a) ** 0.5
        nb = sum(y * y for y in b) ** 0.5
        if na == 0 or nb == 0:
            return 0.0
        return dot / (na * nb)

    async def add(self, chunks: list[DocumentChunk]) -> list[Any]:
        ids = []
        for c in chunks:
            _check_dimensions(self.dimensions, c.embedding)
            row_id = self._next_id
            self._next_id += 1
            self._rows.append((row_id, c))
            ids.append(row_id)
        return ids

    async def similarity_search(
        self, vector: list[float], k: int, filter: dict[str, Any] | None = None
    ) -> list[RetrievalResult]:
        _check_dimensions(self.dimensions, vector)
        if k <= 0:
            return []
        out = []
        for row_id, chunk in self._rows:
            if filter and any(chunk.metadata.get(key) != value for key, value in filter.items()):
                continue
            out.append(RetrievalResult(
                id=row_id,
                content=chunk.content,
                metadata=dict(chunk.metadata),
                similarity=self._cosine(vector, chunk.embedding),
            ))
        return _sorted_top_k(out, k)


def build_vector_store(settings: Settings) -> VectorStore:
    """Select the backend named by VECTOR_STORE_BACKEND."""
    if settings.vector_store_backend == "milvus":
        return MilvusVectorStore(settings)
    if settings.vector_store_backend == "memory":
        return InMemoryVectorStore(settings.embedding_dimensions)
    raise ValueError(f"Unknown VECTOR_STORE_BACKEND: {settings.vector_store_backend!r}")
