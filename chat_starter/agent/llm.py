"""
Chat model client over any OpenAI-compatible chat completions API.

Internal messages are plain dicts: {"role", "content"} plus, on assistant turns,
"tool_calls": [{"id", "name", "args"}] and, on tool turns, "tool_call_id" and "name".
This module converts them to the provider wire format.
"""

import json
import logging
from typing import Any, AsyncIterator

from openai import AsyncOpenAI
from pydantic import BaseModel

from chat_starter.core.config import Settings
from chat_starter.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


def to_openai_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert internal message dicts to chat-completions wire messages."""
    out: list[dict[str, Any]] = []
    for m in messages:
        role = m.get("role", "user")
        content = m.get("content") or ""
        if role == "tool":
            out.append({"role": "tool", "tool_call_id": m.get("tool_call_id", ""), "content": content})
            continue
        msg: dict[str, Any] = {"role": role, "content": content}
        if role == "assistant" and m.get("tool_calls"):
            msg["tool_calls"] = [
                {
                    "id": tc.get("id", ""),
                    "type": "function",
                    "function": {"name": tc.get("name", ""), "arguments": json.dumps(tc.get("args") or {})},
                }
                for tc in m["tool_calls"]
            ]
        out.append(msg)
    return out


def _parse_arguments(raw: str) -> dict[str, Any]:
    try:
        args = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.warning("[llm] tool call arguments are not valid JSON: %r", raw[:200])
        return {}
    return args if isinstance(args, dict) else {}


class ChatModel:
    """Thin async client; one instance is shared by every workflow."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        self.model = settings.chat_model
        self._api_key = settings.openai_api_key
        self._client = client
        self._base_url = settings.openai_base_url
        self._timeout = settings.llm_api_timeout

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise ServiceUnavailableError("OPENAI_API_KEY must be set in .env to use the chat model")
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url, timeout=self._timeout)
        return self._client

    async def complete(self, messages: list[dict[str, Any]], temperature: float = 0.0) -> str:
        """Single non-streamed completion. Returns the generated text."""
        logger.info("[llm:complete] IN  model=%s messages=%d", self.model, len(messages))
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(messages),
            temperature=temperature,
        )
        msg = response.choices[0].message if response.choices else None
        out = ((msg.content if msg else None) or "").strip()
        logger.info("[llm:complete] OUT response_len=%d", len(out))
        return out

    async def stream(self, messages: list[dict[str, Any]], temperature: float = 0.0) -> AsyncIterator[str]:
        """Yield text deltas in the order the provider produces them."""
        logger.info("[llm:stream] IN  model=%s messages=%d", self.model, len(messages))
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(messages),
            temperature=temperature,
            stream=True,
        )
        total = 0
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta is not None and delta.content:
                total += len(delta.content)
                yield delta.content
        logger.info("[llm:stream] OUT streamed_len=%d", total)

    async def stream_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        temperature: float = 0.0,
    ) -> AsyncIterator[tuple]:
        """
        Call chat with tools and stream the response. Yields:
        - ('content_delta', str) for each text token;
        - then ('tool_calls', list[dict], content_str) when the model called tools,
          or ('content_done', content_str) when it answered without tools.
        Tool-call-only deltas are accumulated by index and never yielded as text.
        """
        kwargs: dict[str, Any] = {}
        if tools:
            kwargs["tools"] = tools
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(messages),
            temperature=temperature,
            stream=True,
            **kwargs,
        )
        content_parts: list[str] = []
        tool_calls_accum: dict[int, dict[str, str]] = {}
        async for chunk in stream:
            if not chunk.choices:
                continue
            d = chunk.choices[0].delta
            if d is None:
                continue
            if d.content:
                content_parts.append(d.content)
                yield ("content_delta", d.content)
            for tc in d.tool_calls or []:
                idx = tc.index if tc.index is not None else 0
                acc = tool_calls_accum.setdefault(idx, {"id": "", "name": "", "arguments": ""})
                if tc.id:
                    acc["id"] = tc.id
                if tc.function is not None:
                    if tc.function.name:
                        acc["name"] = tc.function.name
                    if tc.function.arguments:
                        acc["arguments"] += tc.function.arguments
        full_content = "".join(content_parts)
        if tool_calls_accum:
            calls = [
                {"id": t["id"], "name": t["name"], "args": _parse_arguments(t["arguments"])}
                for t in (tool_calls_accum[i] for i in sorted(tool_calls_accum))
            ]
            logger.info("[llm:stream_with_tools] OUT tool_calls=%s", [c["name"] for c in calls])
            yield ("tool_calls", calls, full_content)
        else:
            logger.info("[llm:stream_with_tools] OUT content_done len=%d", len(full_content))
            yield ("content_done", full_content)

    async def extract(
        self,
        messages: list[dict[str, Any]],
        schema: type[BaseModel],
        name: str = "output_formatter",
        temperature: float = 0.0,
    ) -> dict[str, Any]:
        """Ask for JSON matching `schema` and return it validated as a dict."""
        logger.info("[llm:extract] IN  schema=%s", schema.__name__)
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(messages),
            temperature=temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": name, "schema": schema.model_json_schema()},
            },
        )
        msg = response.choices[0].message if response.choices else None
        raw = ((msg.content if msg else None) or "{}").strip()
        result = schema.model_validate_json(raw).model_dump()
        logger.info("[llm:extract] OUT keys=%s", sorted(result))
        return result
