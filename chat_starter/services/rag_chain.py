"""
Conversational retrieval chain: condense question -> retrieve -> answer (streamed).

The chain reports retrieved chunks through `on_retrieved` as soon as retrieval
finishes, before the first answer token, so the HTTP layer can send the sources
header alongside the streamed body.
"""

import logging
from typing import Any, AsyncIterator, Callable

from chat_starter.agent.llm import ChatModel
from chat_starter.agent.prompts import ANSWER_TEMPLATE, CONDENSE_QUESTION_TEMPLATE
from chat_starter.services.retrieval_service import Retriever, combine_documents
from chat_starter.services.vector_store import RetrievalResult

logger = logging.getLogger(__name__)


def format_chat_history(messages: list[dict[str, Any]]) -> str:
    """Render prior turns as 'Human: ...' / 'Assistant: ...' lines."""
    lines = []
    for m in messages:
        role = m.get("role", "user")
        content = m.get("content") or ""
        if role == "user":
            lines.append(f"Human: {content}")
        elif role == "assistant":
            lines.append(f"Assistant: {content}")
        else:
            lines.append(f"{role}: {content}")
    return "\n".join(lines)


async def condense_question(llm: ChatModel, history: list[dict[str, Any]], question: str) -> str:
    """
    Rewrite a follow-up into a standalone question, in its original language.

    Without history the question is already standalone and is returned as-is,
    with no model call.
    """
    if not history:
        return question
    prompt = CONDENSE_QUESTION_TEMPLATE.format(chat_history=format_chat_history(history), question=question)
    logger.info("[rag:condense_question] IN  question=%r history_len=%d", question, len(history))
    standalone = (await llm.complete([{"role": "user", "content": prompt}])).strip() or question
    logger.info("[rag:condense_question] OUT standalone=%r", standalone)
    return standalone


class ConversationalRetrievalChain:
    """One linear pipeline per request; holds no per-request state."""

    def __init__(self, llm: ChatModel, retriever: Retriever, temperature: float = 0.2) -> None:
        self.llm = llm
        self.retriever = retriever
        self.temperature = temperature

    async def astream(
        self,
        question: str,
        history: list[dict[str, Any]],
        on_retrieved: Callable[[list[RetrievalResult]], None] | None = None,
    ) -> AsyncIterator[str]:
        """Yield answer deltas as the model produces them."""
        standalone = await condense_question(self.llm, history, question)
        results = await self.retriever.retrieve(standalone)
        if on_retrieved is not None:
            on_retrieved(results)
        prompt = ANSWER_TEMPLATE.format(
            context=combine_documents(results),
            chat_history=format_chat_history(history),
            question=standalone,
        )
        logger.info("[rag:astream] prompt_len=%d chunks=%d", len(prompt), len(results))
        async for delta in self.llm.stream([{"role": "user", "content": prompt}], temperature=self.temperature):
            yield delta
