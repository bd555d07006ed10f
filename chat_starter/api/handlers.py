"""
API handlers: convert between HTTP schemas and internal message dicts, and map
every failure to a JSON error body.

Responsibility: bridge HTTP types and services. Lives in the API layer so
services stay free of FastAPI/HTTP types.
"""

import logging
from typing import Any, Callable, Coroutine

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute

from chat_starter.core.errors import ChatStarterError, InvalidRequestError, status_for
from chat_starter.schemas.chat import ChatRequest, Message, ToolCall

logger = logging.getLogger(__name__)


def to_internal(message: Message) -> dict[str, Any]:
    out: dict[str, Any] = {"role": message.role, "content": message.content}
    if message.tool_calls:
        out["tool_calls"] = [tc.model_dump() for tc in message.tool_calls]
    if message.tool_call_id:
        out["tool_call_id"] = message.tool_call_id
    if message.name:
        out["name"] = message.name
    return out


def to_message(message: dict[str, Any]) -> Message:
    return Message(
        role=message.get("role", "assistant"),
        content=message.get("content") or "",
        tool_calls=[ToolCall(**tc) for tc in message["tool_calls"]] if message.get("tool_calls") else None,
        tool_call_id=message.get("tool_call_id"),
        name=message.get("name"),
    )


def split_messages(body: ChatRequest) -> tuple[list[dict[str, Any]], str]:
    """
    Return (history, latest content). History is every message but the last.

    Raises:
        InvalidRequestError: If the message list is empty.
    """
    if not body.messages:
        raise InvalidRequestError("messages must contain at least one message")
    messages = [to_internal(m) for m in body.messages]
    return messages[:-1], messages[-1]["content"]


def chat_turns(body: ChatRequest) -> list[dict[str, Any]]:
    """
    Conversation turns for an agent run. System entries in the UI hold rendered
    intermediate steps and are dropped. A replayed trace keeps its tool turns, but
    only where they answer a call on an earlier assistant turn; calls left without
    an answer are removed from their assistant turn, and a turn left empty is dropped.
    """
    if not body.messages:
        raise InvalidRequestError("messages must contain at least one message")
    answered = {m.tool_call_id for m in body.messages if m.role == "tool" and m.tool_call_id}
    called: set[str] = set()
    turns = []
    for m in body.messages:
        if m.role == "tool":
            if m.tool_call_id in called:
                turns.append(to_internal(m))
            continue
        if m.role not in ("user", "assistant"):
            continue
        turn = to_internal(m)
        calls = [tc for tc in turn.pop("tool_calls", []) if tc["id"] in answered]
        if calls:
            turn["tool_calls"] = calls
            called.update(tc["id"] for tc in calls)
        elif m.role == "assistant" and not turn["content"]:
            continue
        turns.append(turn)
    if not turns:
        raise InvalidRequestError("messages must contain at least one user or assistant message")
    return turns


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _handle_app_error(request: Request, exc: ChatStarterError) -> JSONResponse:
    logger.warning("[api] %s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return error_response(exc.message, exc.status_code)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg', 'invalid request')}" if loc else first.get("msg", "invalid request")
    return error_response(message, 400)


class ErrorJSONRoute(APIRoute):
    """
    Outermost request boundary: any exception escaping an endpoint becomes
    {"error": message} with the exception's own status if it has one, else 500.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original = super().get_route_handler()

        async def handler(request: Request) -> Response:
            try:
                return await original(request)
            except (RequestValidationError, HTTPException):
                raise
            except ChatStarterError as exc:
                return await _handle_app_error(request, exc)
            except Exception as exc:
                logger.exception("[api] %s %s failed", request.method, request.url.path)
                return error_response(str(exc) or exc.__class__.__name__, status_for(exc))

        return handler


def register_exception_handlers(app: FastAPI) -> None:
    """Errors raised outside ErrorJSONRoute endpoints (e.g. body validation) also answer {"error": ...}."""
    app.add_exception_handler(ChatStarterError, _handle_app_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
