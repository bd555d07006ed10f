"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading and environment variables into one
explicit Settings value. Components receive Settings at construction; nothing
else in the package reads os.environ.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Embedding dims for common models: text-embedding-3-small = 1536,
# sentence-transformers/all-MiniLM-L6-v2 = 384
DEFAULT_EMBEDDING_DIMENSIONS: int = 1536


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip() or default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Provider keys, model names and tuning knobs for one running app."""

    # Chat model (any OpenAI-compatible endpoint)
    openai_api_key: str = ""
    openai_base_url: str | None = None
    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.2
    agent_temperature: float = 0.0
    llm_api_timeout: float = 60.0

    # Embeddings
    embeddings_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS
    embeddings_api_key: str = ""
    embeddings_base_url: str | None = None
    hf_api_key: str = ""
    embed_batch_size: int = 32
    embed_api_timeout: float = 30.0

    # Vector store
    vector_store_backend: str = "milvus"
    milvus_uri: str = ""
    milvus_token: str = ""
    collection_name: str = "documents"

    # Retrieval and ingestion (tuning these affects retrieval quality)
    retrieval_k: int = 6
    source_preview_chars: int = 50
    chunk_size: int = 500
    chunk_overlap: int = 50

    # Agent graph
    agent_max_iterations: int = 12
    web_search_enabled: bool = True
    web_search_max_results: int = 5
    tools_http_timeout: float = 15.0

    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from the process environment (and a .env file if present)."""
    load_dotenv()
    openai_key = _env_str("OPENAI_API_KEY")
    openai_base = _env_str("OPENAI_BASE_URL") or None
    return Settings(
        openai_api_key=openai_key,
        openai_base_url=openai_base,
        chat_model=_env_str("CHAT_MODEL", "gpt-4o-mini"),
        chat_temperature=_env_float("CHAT_TEMPERATURE", 0.2),
        agent_temperature=_env_float("AGENT_TEMPERATURE", 0.0),
        llm_api_timeout=_env_float("LLM_API_TIMEOUT", 60.0),
        embeddings_provider=_env_str("EMBEDDINGS_PROVIDER", "openai").lower(),
        embedding_model=_env_str("EMBEDDING_MODEL", "text-embedding-3-small"),
        embedding_dimensions=_env_int("EMBEDDING_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS),
        # Embeddings default to the chat provider's credentials
        embeddings_api_key=_env_str("EMBEDDINGS_API_KEY") or openai_key,
        embeddings_base_url=_env_str("EMBEDDINGS_BASE_URL") or openai_base,
        hf_api_key=_env_str("HF_API_KEY"),
        embed_batch_size=_env_int("EMBED_BATCH_SIZE", 32),
        embed_api_timeout=_env_float("EMBED_API_TIMEOUT", 30.0),
        vector_store_backend=_env_str("VECTOR_STORE_BACKEND", "milvus").lower(),
        milvus_uri=_env_str("MILVUS_URI"),
        milvus_token=_env_str("MILVUS_TOKEN"),
        collection_name=_env_str("COLLECTION_NAME", "documents"),
        retrieval_k=_env_int("RETRIEVAL_K", 6),
        source_preview_chars=_env_int("SOURCE_PREVIEW_CHARS", 50),
        chunk_size=_env_int("CHUNK_SIZE", 500),
        chunk_overlap=_env_int("CHUNK_OVERLAP", 50),
        agent_max_iterations=_env_int("AGENT_MAX_ITERATIONS", 12),
        web_search_enabled=_env_bool("WEB_SEARCH_ENABLED", True),
        web_search_max_results=_env_int("WEB_SEARCH_MAX_RESULTS", 5),
        tools_http_timeout=_env_float("TOOLS_HTTP_TIMEOUT", 15.0),
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )
