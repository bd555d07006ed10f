"""
Plain chat and structured-output extraction workflows.

Both are a single prompt template filled from the request, sent to the chat model.
"""

import logging
from typing import Any, AsyncIterator

from chat_starter.agent.llm import ChatModel
from chat_starter.agent.prompts import CHAT_TEMPLATE, EXTRACTION_TEMPLATE
from chat_starter.schemas.extraction import Extraction

logger = logging.getLogger(__name__)


def format_message(message: dict[str, Any]) -> str:
    return f"{message.get('role', 'user')}: {message.get('content') or ''}"


def stream_chat(
    llm: ChatModel,
    history: list[dict[str, Any]],
    question: str,
    temperature: float = 0.2,
) -> AsyncIterator[str]:
    """Stream the persona's reply to `question` given the prior turns."""
    prompt = CHAT_TEMPLATE.format(
        chat_history="\n".join(format_message(m) for m in history),
        input=question,
    )
    logger.info("[chat:stream_chat] IN  history_len=%d prompt_len=%d", len(history), len(prompt))
    return llm.stream([{"role": "user", "content": prompt}], temperature=temperature)


async def extract_structured(llm: ChatModel, text: str) -> dict[str, Any]:
    """Extract tone, entity, word count, a reply and final punctuation from `text`."""
    prompt = EXTRACTION_TEMPLATE.format(input=text)
    logger.info("[chat:extract_structured] IN  text_len=%d", len(text))
    return await llm.extract([{"role": "user", "content": prompt}], Extraction)
