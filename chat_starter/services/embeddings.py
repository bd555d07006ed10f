"""
Embedding provider clients: OpenAI-compatible embeddings API or Hugging Face Inference API.

Responsibility: turn text into fixed-length vectors, normalized for cosine similarity,
and enforce the configured dimensionality so query and stored vectors always match.
"""

import logging

import httpx
from openai import AsyncOpenAI

from chat_starter.core.config import Settings
from chat_starter.core.errors import EmbeddingDimensionError, ServiceUnavailableError

logger = logging.getLogger(__name__)


def normalize(vec: list[float]) -> list[float]:
    """L2-normalize a vector (zero vectors are returned unchanged)."""
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


class Embeddings:
    """Shared batching, normalization and dimension checks; subclasses call the provider."""

    def __init__(self, dimensions: int, batch_size: int) -> None:
        self.dimensions = dimensions
        self.batch_size = max(1, batch_size)

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        raise NotImplementedError

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Batch embed texts. Returns one normalized vector per input, in order."""
        if not texts:
            return []
        logger.info("[embeddings:embed_documents] IN  texts=%d batch_size=%d", len(texts), self.batch_size)
        out: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            vectors = await self._embed_batch(batch)
            if len(vectors) != len(batch):
                raise RuntimeError(f"Embeddings API returned {len(vectors)} vectors for {len(batch)} inputs")
            for vec in vectors:
                if len(vec) != self.dimensions:
                    raise EmbeddingDimensionError(self.dimensions, len(vec))
                out.append(normalize(vec))
        logger.info("[embeddings:embed_documents] OUT vectors=%d dim=%d", len(out), self.dimensions)
        return out

    async def embed_query(self, text: str) -> list[float]:
        return (await self.embed_documents([text]))[0]


class OpenAIEmbeddings(Embeddings):
    """Embeddings from any OpenAI-compatible /embeddings endpoint."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        super().__init__(settings.embedding_dimensions, settings.embed_batch_size)
        self.model = settings.embedding_model
        self._settings = settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._settings.embeddings_api_key:
                raise ServiceUnavailableError("EMBEDDINGS_API_KEY (or OPENAI_API_KEY) must be set in .env")
            self._client = AsyncOpenAI(
                api_key=self._settings.embeddings_api_key,
                base_url=self._settings.embeddings_base_url,
                timeout=self._settings.embed_api_timeout,
            )
        return self._client

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        response = await self.client.embeddings.create(
            model=self.model,
            input=batch,
            dimensions=self.dimensions,
        )
        data = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]


class HuggingFaceEmbeddings(Embeddings):
    """Embeddings from the Hugging Face Inference API (feature-extraction pipeline)."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        super().__init__(settings.embedding_dimensions, settings.embed_batch_size)
        self.model = settings.embedding_model
        self._api_key = settings.hf_api_key
        self._timeout = settings.embed_api_timeout
        self._transport = transport
        self.router_url = (
            "https://router.huggingface.co/hf-inference/models/"
            f"{self.model}/pipeline/feature-extraction"
        )
        self.standard_url = f"https://api-inference.huggingface.co/models/{self.model}"

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        if not self._api_key:
            raise ServiceUnavailableError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens"
            )
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {"inputs": batch, "options": {"wait_for_model": True}}
        response: httpx.Response | None = None
        last_error: str | None = None

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            api_urls = [self.router_url, self.standard_url]
            for api_url in api_urls:
                try:
                    response = await client.post(api_url, json=payload, headers=headers)
                except httpx.HTTPError as e:
                    last_error = str(e)
                    if api_url == api_urls[-1]:
                        raise
                    continue
                # Router rejects some tokens with 403; the standard endpoint may still accept them
                if response.status_code == 403 and api_url == self.router_url:
                    last_error = response.text
                    continue
                break

        if response is None or response.status_code != 200:
            msg = response.text if response is not None else last_error
            status = response.status_code if response is not None else None
            if status == 503:
                raise ServiceUnavailableError(f"HF model is loading. Retry later. {msg}")
            if status == 401:
                raise ServiceUnavailableError(
                    "Invalid HF API key. Check HF_API_KEY at https://huggingface.co/settings/tokens"
                )
            if status == 403:
                raise ServiceUnavailableError(
                    f"HF token lacks Inference API permission. Create a token with read access. {msg}"
                )
            raise RuntimeError(f"HF API error: {msg}")

        result = response.json()
        if isinstance(result, list) and result and isinstance(result[0], list):
            return result
        # A single input may come back as one flat vector
        if isinstance(result, list) and result and isinstance(result[0], (int, float)):
            return [result]
        raise RuntimeError(f"HF API returned an unexpected payload: {str(result)[:200]}")


def build_embeddings(settings: Settings) -> Embeddings:
    """Select the embedding provider named by EMBEDDINGS_PROVIDER."""
    if settings.embeddings_provider in ("huggingface", "hf"):
        return HuggingFaceEmbeddings(settings)
    if settings.embeddings_provider == "openai":
        return OpenAIEmbeddings(settings)
    raise ValueError(f"Unknown EMBEDDINGS_PROVIDER: {settings.embeddings_provider!r}")
