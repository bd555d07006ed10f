"""Schemas for the chat endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "system", "tool"]


class ToolCall(BaseModel):
    """A structured request from the model to invoke a named tool."""

    id: str = Field("", description="Provider-assigned call id; observations reference it.")
    name: str = Field(..., description="Tool name.")
    args: dict[str, Any] = Field(default_factory=dict, description="Model-supplied arguments.")


class Message(BaseModel):
    """One chat turn, in the shape the chat UI sends and receives."""

    role: Role = Field(..., description="Author of the turn.")
    content: str = Field("", description="Text content.")
    tool_calls: list[ToolCall] | None = Field(None, description="Tool calls requested by an assistant turn.")
    tool_call_id: str | None = Field(None, description="Id of the call a tool turn answers.")
    name: str | None = Field(None, description="Tool name on tool turns.")


class ChatRequest(BaseModel):
    """Request body shared by every /api/chat workflow."""

    messages: list[Message] = Field(default_factory=list, description="Conversation so far; the last entry is the new user turn.")
    show_intermediate_steps: bool = Field(False, description="Agents only: return the full message trace as JSON instead of streaming.")


class IntermediateStep(BaseModel):
    """A tool call paired with its observation by call id."""

    action: ToolCall
    observation: str | None = None


class AgentTraceResponse(BaseModel):
    """Response for agent endpoints in full-trace mode."""

    messages: list[Message] = Field(..., description="Input turns followed by the appended assistant/tool turns.")
    intermediate_steps: list[IntermediateStep] = Field(default_factory=list)
