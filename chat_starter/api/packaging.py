"""
Response packaging: streamed text bodies plus the sources side channel.

Responsibility: encode retrieved chunks into the x-sources header, compute
x-message-index, and start a text stream so failures before the first byte
still become JSON errors.
"""

import base64
import json
import logging
from typing import AsyncIterator

from fastapi.responses import StreamingResponse

from chat_starter.services.vector_store import RetrievalResult

logger = logging.getLogger(__name__)

TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


def serialize_sources(results: list[RetrievalResult], preview_chars: int = 50) -> str:
    """Base64 of a JSON array of {pageContent, metadata}, content truncated to a preview."""
    payload = [
        {"pageContent": r.content[:preview_chars] + "...", "metadata": r.metadata}
        for r in results
    ]
    return base64.b64encode(json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")).decode("ascii")


def source_headers(results: list[RetrievalResult], history_len: int, preview_chars: int = 50) -> dict[str, str]:
    """x-message-index is the number of prior turns (the request's messages minus the latest)."""
    return {
        "x-message-index": str(history_len),
        "x-sources": serialize_sources(results, preview_chars),
    }


async def prime_stream(stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Pull the first delta now, then return an iterator over the whole stream.

    Errors raised before the first delta propagate to the caller (and become a
    JSON error response). Errors after it can only truncate the body: they are
    logged and the stream ends.
    """
    try:
        first: str | None = await stream.__anext__()
    except StopAsyncIteration:
        first = None

    async def body() -> AsyncIterator[str]:
        if first is None:
            return
        yield first
        try:
            async for delta in stream:
                yield delta
        except Exception:
            logger.exception("[packaging:prime_stream] stream failed after first byte; response truncated")

    return body()


def text_stream_response(body: AsyncIterator[str], headers: dict[str, str] | None = None) -> StreamingResponse:
    return StreamingResponse(body, media_type=TEXT_MEDIA_TYPE, headers=headers)
