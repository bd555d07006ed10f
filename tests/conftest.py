"""
Shared stub providers so tests need no OpenAI, Hugging Face or Milvus access.
"""

import re
import zlib
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from chat_starter.agent.tools import calculator_tool
from chat_starter.core.config import Settings
from chat_starter.core.dependencies import Services
from chat_starter.main import create_app
from chat_starter.services.embeddings import Embeddings
from chat_starter.services.vector_store import InMemoryVectorStore

DIM = 64


class HashingEmbeddings(Embeddings):
    """Deterministic bag-of-words vectors: each lowercase word bumps one hashed slot."""

    def __init__(self, dimensions: int = DIM) -> None:
        super().__init__(dimensions, batch_size=8)
        self.queries: list[list[str]] = []

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        self.queries.append(list(batch))
        out = []
        for text in batch:
            vec = [0.0] * self.dimensions
            for word in re.findall(r"[a-z0-9]+", text.lower()):
                vec[zlib.crc32(word.encode()) % self.dimensions] += 1.0
            out.append(vec)
        return out


class FakeChatModel:
    """
    Scripted stand-in for ChatModel.

    - complete() returns `completion` (or completion(messages) if callable).
    - stream() yields `stream_tokens`.
    - stream_with_tools() asks `agent_script(messages)` for the next turn:
      {"content": str} or {"tool_calls": [...], "content": str}.
    """

    def __init__(
        self,
        completion: str | Callable[[list[dict]], str] = "",
        stream_tokens: list[str] | None = None,
        agent_script: Callable[[list[dict]], dict] | None = None,
        extraction: dict[str, Any] | None = None,
    ) -> None:
        self.completion = completion
        self.stream_tokens = stream_tokens if stream_tokens is not None else ["Hello", ", ", "world"]
        self.agent_script = agent_script or (lambda messages: {"content": "Squawk!"})
        self.extraction = extraction or {}
        self.calls: list[tuple[str, list[dict]]] = []
        self.fail_stream: Exception | None = None

    async def complete(self, messages, temperature=0.0):
        self.calls.append(("complete", messages))
        if callable(self.completion):
            return self.completion(messages)
        return self.completion

    async def stream(self, messages, temperature=0.0):
        self.calls.append(("stream", messages))
        if self.fail_stream is not None:
            raise self.fail_stream
        for token in self.stream_tokens:
            yield token

    async def stream_with_tools(self, messages, tools, temperature=0.0):
        self.calls.append(("stream_with_tools", messages))
        turn = self.agent_script(messages)
        content = turn.get("content", "")
        # Split content into word-ish deltas the way providers do
        for piece in re.findall(r"\S+\s*", content):
            yield ("content_delta", piece)
        if turn.get("tool_calls"):
            yield ("tool_calls", turn["tool_calls"], content)
        else:
            yield ("content_done", content)

    async def extract(self, messages, schema, name="output_formatter", temperature=0.0):
        self.calls.append(("extract", messages))
        return schema.model_validate(self.extraction).model_dump()


def _calculator_script(messages: list[dict]) -> dict:
    last = messages[-1]
    if last["role"] == "tool":
        return {"content": f"Squawk! The answer is {last['content']}!"}
    return {
        "content": "",
        "tool_calls": [{"id": "call_1", "name": "calculator", "args": {"expression": "2+2"}}],
    }


@pytest.fixture
def calculator_script() -> Callable[[list[dict]], dict]:
    """Agent script: call the calculator once, then answer with its observation."""
    return _calculator_script


@pytest.fixture
def settings() -> Settings:
    return Settings(
        vector_store_backend="memory",
        embedding_dimensions=DIM,
        retrieval_k=6,
        chunk_size=200,
        chunk_overlap=20,
        agent_max_iterations=4,
        web_search_enabled=False,
    )


@pytest.fixture
def llm() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def embeddings() -> HashingEmbeddings:
    return HashingEmbeddings(DIM)


@pytest.fixture
def store() -> InMemoryVectorStore:
    return InMemoryVectorStore(DIM)


@pytest.fixture
def services(settings, llm, embeddings, store) -> Services:
    return Services(
        settings=settings,
        llm=llm,
        embeddings=embeddings,
        vector_store=store,
        agent_tools=[calculator_tool()],
    )


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(create_app(services=services))
