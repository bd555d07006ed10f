"""
LangGraph tool-calling agent: model -> (tools -> model)* -> END.

The model node decides: answer (no tool calls -> END) or request tools.
The tools node runs every requested call and appends one observation per call,
tagged with the call id. The loop is bounded by max_iterations model calls;
exceeding it raises AgentDidNotConvergeError.

Streaming mode forwards the model's text deltas through LangGraph's custom
stream channel; tool-call deltas never reach it. Trace mode runs to completion
and returns the whole message list.
"""

import logging
from typing import Any, AsyncIterator, Literal, TypedDict

from langgraph.graph import END, StateGraph
from langgraph.types import StreamWriter

from chat_starter.agent.llm import ChatModel
from chat_starter.agent.tools import Tool, execute_tool
from chat_starter.core.errors import AgentDidNotConvergeError

logger = logging.getLogger(__name__)


class AgentState(TypedDict):
    messages: list  # list of internal message dicts, see chat_starter.agent.llm
    iterations: int


def pair_tool_steps(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Pair each tool call with its observation by call id.

    Returns [{"action": {"id", "name", "args"}, "observation": str | None}] in call
    order; a call with no matching observation gets None.
    """
    observations = {
        m.get("tool_call_id"): m.get("content")
        for m in messages
        if m.get("role") == "tool" and m.get("tool_call_id")
    }
    steps = []
    for m in messages:
        if m.get("role") != "assistant":
            continue
        for tc in m.get("tool_calls") or []:
            steps.append({"action": tc, "observation": observations.get(tc.get("id"))})
    return steps


def build_agent_graph(
    llm: ChatModel,
    tools: list[Tool],
    system_prompt: str = "",
    max_iterations: int = 12,
    temperature: float = 0.0,
):
    """Build and compile the model/tools graph."""
    tools_by_name = {t.name: t for t in tools}
    tool_defs = [t.to_openai() for t in tools]

    async def model_node(state: AgentState, writer: StreamWriter) -> dict:
        it = state.get("iterations", 0) + 1
        history = state["messages"]
        prompt_messages = ([{"role": "system", "content": system_prompt}] if system_prompt else []) + history
        logger.info("[graph:model] IN  iteration=%d messages=%d", it, len(history))
        message: dict[str, Any] = {"role": "assistant", "content": ""}
        async for item in llm.stream_with_tools(prompt_messages, tool_defs, temperature=temperature):
            if item[0] == "content_delta":
                writer({"type": "token", "content": item[1]})
            elif item[0] == "tool_calls":
                message = {"role": "assistant", "content": item[2] or "", "tool_calls": item[1]}
            elif item[0] == "content_done":
                message = {"role": "assistant", "content": item[1] or ""}
        logger.info("[graph:model] OUT iteration=%d tool_calls=%s content_len=%d",
                    it, [tc["name"] for tc in message.get("tool_calls", [])], len(message["content"]))
        return {"messages": history + [message], "iterations": it}

    async def tools_node(state: AgentState) -> dict:
        history = state["messages"]
        calls = history[-1].get("tool_calls") or []
        observations = []
        for tc in calls:
            result = await execute_tool(tools_by_name, tc.get("name", ""), tc.get("args") or {})
            logger.info("[graph:tools] name=%s id=%s result_len=%d", tc.get("name"), tc.get("id"), len(result))
            observations.append({
                "role": "tool",
                "tool_call_id": tc.get("id", ""),
                "name": tc.get("name", ""),
                "content": result,
            })
        return {"messages": history + observations}

    def route_after_model(state: AgentState) -> Literal["tools", "__end__"]:
        last = state["messages"][-1]
        if not last.get("tool_calls"):
            return END
        if state.get("iterations", 0) >= max_iterations:
            logger.warning("[graph:route_after_model] iteration budget exhausted max=%d", max_iterations)
            raise AgentDidNotConvergeError(max_iterations)
        return "tools"

    graph = StateGraph(AgentState)
    graph.add_node("model", model_node)
    graph.add_node("tools", tools_node)
    graph.set_entry_point("model")
    graph.add_conditional_edges("model", route_after_model)
    graph.add_edge("tools", "model")
    return graph.compile()


class Agent:
    """A compiled agent graph plus its run configuration."""

    def __init__(
        self,
        llm: ChatModel,
        tools: list[Tool],
        system_prompt: str = "",
        max_iterations: int = 12,
        temperature: float = 0.0,
    ) -> None:
        self.max_iterations = max_iterations
        self.graph = build_agent_graph(llm, tools, system_prompt, max_iterations, temperature)

    def _config(self) -> dict:
        # Two graph steps per iteration; our own budget must trip first
        return {"recursion_limit": 2 * self.max_iterations + 5}

    async def astream_text(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        """Yield the model's text deltas across every model call, in arrival order."""
        initial: AgentState = {"messages": list(messages), "iterations": 0}
        logger.info("[agent:astream_text] START messages=%d", len(messages))
        async for chunk in self.graph.astream(initial, self._config(), stream_mode="custom"):
            if isinstance(chunk, dict) and chunk.get("type") == "token" and chunk.get("content"):
                yield chunk["content"]
        logger.info("[agent:astream_text] END")

    async def ainvoke_trace(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run to completion; return the input messages followed by every appended turn."""
        initial: AgentState = {"messages": list(messages), "iterations": 0}
        logger.info("[agent:ainvoke_trace] START messages=%d", len(messages))
        final = await self.graph.ainvoke(initial, self._config())
        out = final["messages"]
        logger.info("[agent:ainvoke_trace] END iterations=%d messages=%d", final.get("iterations", 0), len(out))
        return out
