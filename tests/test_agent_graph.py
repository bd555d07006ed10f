"""
Tests for the LangGraph tool-calling agent: loop, streaming, trace, iteration budget.
"""

import asyncio

import pytest

from chat_starter.agent.graph import Agent, pair_tool_steps
from chat_starter.agent.tools import calculator_tool
from chat_starter.core.errors import AgentDidNotConvergeError

from conftest import FakeChatModel


def _stream(agent: Agent, messages: list[dict]) -> str:
    async def run() -> str:
        return "".join([delta async for delta in agent.astream_text(messages)])

    return asyncio.run(run())


def test_agent_answers_without_tools() -> None:
    llm = FakeChatModel(agent_script=lambda messages: {"content": "Squawk! Hello!"})
    agent = Agent(llm, [calculator_tool()], system_prompt="You are Polly.")
    assert _stream(agent, [{"role": "user", "content": "Hi"}]) == "Squawk! Hello!"
    # System prompt is sent to the model but not stored in the conversation
    _, sent = llm.calls[0]
    assert sent[0] == {"role": "system", "content": "You are Polly."}


def test_agent_calls_calculator_then_answers(calculator_script) -> None:
    llm = FakeChatModel(agent_script=calculator_script)
    agent = Agent(llm, [calculator_tool()])
    text = _stream(agent, [{"role": "user", "content": "What is 2+2?"}])
    assert "4" in text
    assert [kind for kind, _ in llm.calls] == ["stream_with_tools", "stream_with_tools"]
    # Second model call sees the tool observation tagged with the call id
    _, second = llm.calls[1]
    assert second[-1] == {"role": "tool", "tool_call_id": "call_1", "name": "calculator", "content": "4"}


def test_trace_contains_assistant_and_tool_turns(calculator_script) -> None:
    agent = Agent(FakeChatModel(agent_script=calculator_script), [calculator_tool()], system_prompt="sys")
    trace = asyncio.run(agent.ainvoke_trace([{"role": "user", "content": "What is 2+2?"}]))

    assert [m["role"] for m in trace] == ["user", "assistant", "tool", "assistant"]
    assert trace[1]["tool_calls"][0]["name"] == "calculator"
    assert trace[2]["content"] == "4"
    assert "4" in trace[3]["content"]
    assert all(m["role"] != "system" for m in trace)


def test_agent_stops_at_iteration_budget() -> None:
    def always_call_tools(messages):
        n = sum(1 for m in messages if m["role"] == "assistant")
        return {"content": "", "tool_calls": [{"id": f"call_{n}", "name": "calculator", "args": {"expression": "1+1"}}]}

    llm = FakeChatModel(agent_script=always_call_tools)
    agent = Agent(llm, [calculator_tool()], max_iterations=3)
    with pytest.raises(AgentDidNotConvergeError):
        asyncio.run(agent.ainvoke_trace([{"role": "user", "content": "loop forever"}]))
    assert len(llm.calls) == 3


def test_unknown_tool_observation_is_returned_to_model() -> None:
    def script(messages):
        if messages[-1]["role"] == "tool":
            return {"content": messages[-1]["content"]}
        return {"content": "", "tool_calls": [{"id": "x", "name": "teleport", "args": {}}]}

    agent = Agent(FakeChatModel(agent_script=script), [calculator_tool()])
    assert _stream(agent, [{"role": "user", "content": "go"}]) == "Unknown tool: teleport"


class TestPairToolSteps:
    def test_pairs_by_call_id_not_position(self) -> None:
        messages = [
            {"role": "user", "content": "q"},
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {"id": "a", "name": "calculator", "args": {"expression": "1+1"}},
                    {"id": "b", "name": "calculator", "args": {"expression": "2+2"}},
                ],
            },
            {"role": "tool", "tool_call_id": "b", "name": "calculator", "content": "4"},
            {"role": "tool", "tool_call_id": "a", "name": "calculator", "content": "2"},
        ]
        steps = pair_tool_steps(messages)
        assert [(s["action"]["id"], s["observation"]) for s in steps] == [("a", "2"), ("b", "4")]

    def test_missing_observation_is_none(self) -> None:
        messages = [{"role": "assistant", "content": "", "tool_calls": [{"id": "a", "name": "calculator", "args": {}}]}]
        assert pair_tool_steps(messages) == [{"action": messages[0]["tool_calls"][0], "observation": None}]

    def test_no_tool_calls(self) -> None:
        assert pair_tool_steps([{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hey"}]) == []
