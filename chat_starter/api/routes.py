"""
API routes: register endpoints; no logic beyond wiring requests to services.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from chat_starter.agent.graph import Agent, pair_tool_steps
from chat_starter.api.handlers import ErrorJSONRoute, chat_turns, split_messages, to_message
from chat_starter.api.packaging import prime_stream, source_headers, text_stream_response
from chat_starter.core.dependencies import Services, get_services
from chat_starter.schemas.chat import AgentTraceResponse, ChatRequest, IntermediateStep
from chat_starter.schemas.ingest import IngestRequest, IngestResponse
from chat_starter.services.chat_service import extract_structured, stream_chat
from chat_starter.services.ingestion_service import ingest_text
from chat_starter.services.vector_store import RetrievalResult

logger = logging.getLogger(__name__)
router = APIRouter(route_class=ErrorJSONRoute)


# --- System ---

@router.get("/", tags=["system"])
async def root():
    return {"status": "chat starter backend running"}


@router.get("/health", tags=["system"])
async def health():
    return {"ok": True}


# --- Chat workflows ---

@router.post(
    "/api/chat",
    tags=["chat"],
    summary="Plain chat (streamed text)",
    response_class=Response,
)
async def post_chat(body: ChatRequest, services: Services = Depends(get_services)) -> Response:
    history, question = split_messages(body)
    logger.info("[api:post_chat] IN  history_len=%d question=%r", len(history), question)
    stream = stream_chat(services.llm, history, question, temperature=services.settings.chat_temperature)
    return text_stream_response(await prime_stream(stream))


@router.post(
    "/api/chat/structured_output",
    tags=["chat"],
    summary="Structured-output extraction (JSON)",
)
async def post_structured_output(body: ChatRequest, services: Services = Depends(get_services)) -> JSONResponse:
    _, text = split_messages(body)
    logger.info("[api:post_structured_output] IN  text_len=%d", len(text))
    result = await extract_structured(services.llm, text)
    return JSONResponse(result, status_code=200)


async def _run_agent(agent: Agent, body: ChatRequest) -> Response:
    messages = chat_turns(body)
    if body.show_intermediate_steps:
        trace = await agent.ainvoke_trace(messages)
        response = AgentTraceResponse(
            messages=[to_message(m) for m in trace],
            intermediate_steps=[IntermediateStep(**step) for step in pair_tool_steps(trace)],
        )
        return JSONResponse(response.model_dump(exclude_none=True), status_code=200)
    return text_stream_response(await prime_stream(agent.astream_text(messages)))


@router.post(
    "/api/chat/agents",
    tags=["chat"],
    summary="Tool-using agent (streamed text, or JSON trace with show_intermediate_steps)",
    response_class=Response,
)
async def post_agents(body: ChatRequest, services: Services = Depends(get_services)) -> Response:
    logger.info("[api:post_agents] IN  messages=%d trace=%s", len(body.messages), body.show_intermediate_steps)
    return await _run_agent(services.agent(), body)


@router.post(
    "/api/chat/retrieval",
    tags=["chat"],
    summary="Retrieval-augmented answer (streamed text; sources in x-sources)",
    response_class=Response,
)
async def post_retrieval(body: ChatRequest, services: Services = Depends(get_services)) -> Response:
    history, question = split_messages(body)
    logger.info("[api:post_retrieval] IN  history_len=%d question=%r", len(history), question)
    sources: asyncio.Future[list[RetrievalResult]] = asyncio.get_running_loop().create_future()
    stream = services.retrieval_chain().astream(question, history, on_retrieved=sources.set_result)
    answer = await prime_stream(stream)
    # Retrieval always completes before the first answer delta
    results = await sources
    headers = source_headers(results, len(history), services.settings.source_preview_chars)
    logger.info("[api:post_retrieval] OUT sources=%d message_index=%s", len(results), headers["x-message-index"])
    return text_stream_response(answer, headers=headers)


@router.post(
    "/api/chat/retrieval_agents",
    tags=["chat"],
    summary="Retrieval-augmented agent (streamed text, or JSON trace with show_intermediate_steps)",
    response_class=Response,
)
async def post_retrieval_agents(body: ChatRequest, services: Services = Depends(get_services)) -> Response:
    logger.info("[api:post_retrieval_agents] IN  messages=%d trace=%s", len(body.messages), body.show_intermediate_steps)
    return await _run_agent(services.retrieval_agent(), body)


# --- Ingestion ---

@router.post(
    "/api/retrieval/ingest",
    response_model=IngestResponse,
    tags=["ingestion"],
    summary="Split, embed and store a document",
)
async def post_ingest(body: IngestRequest, services: Services = Depends(get_services)) -> IngestResponse:
    settings = services.settings
    ids = await ingest_text(
        body.text,
        services.embeddings,
        services.vector_store,
        metadata=body.metadata,
        chunk_size=settings.chunk_size,
        overlap=settings.chunk_overlap,
    )
    return IngestResponse(chunks_ingested=len(ids), ids=ids)
