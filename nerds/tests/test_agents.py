from __future__ import annotations

import pytest

from nerds.agents import (
    ReActAgent,
    SimpleAgent,
    ToolCallingAgent,
    parse_action,
    parse_final_answer,
    select_agent,
)
from nerds.errors import AgentIterationLimitError, ParseError, ToolExecutionError
from nerds.prompts.prompt_builder import PromptTemplate
from nerds.provider.base import ChatTurn
from nerds.provider.mock import tool_turn
from nerds.tools import NerdToolInput, make_tool


class FakeCall:
    def __init__(self, *turns):
        self.turns = list(turns)
        self.calls = []

    def __call__(self, messages, *, tools=None, stop=()):
        self.calls.append({"messages": list(messages), "tools": tools, "stop": stop})
        turn = self.turns.pop(0)
        return turn if isinstance(turn, ChatTurn) else ChatTurn(text=turn)


def _echo_tool(record=None):
    def _run(input: str, runtime_instructions=None) -> str:
        if record is not None:
            record.append(input)
        return f"echo:{input}"

    return make_tool("echo", "Echo the input back.", _run, NerdToolInput)


def _boom_tool():
    def _run(input: str, runtime_instructions=None) -> str:
        raise RuntimeError("kaboom")

    return make_tool("boom", "Always fails.", _run, NerdToolInput)


TEMPLATE = PromptTemplate(system="system", has_scratchpad=True)


def test_select_agent_union():
    tool = _echo_tool()
    assert isinstance(select_agent((), native_tools=True), SimpleAgent)
    assert isinstance(select_agent((tool,), native_tools=True), ToolCallingAgent)
    react = select_agent((tool,), native_tools=False, max_iterations=4)
    assert isinstance(react, ReActAgent)
    assert react.max_iterations == 4
    assert react.tools == (tool,)


def test_simple_agent_single_call():
    call = FakeCall("done")
    assert SimpleAgent().run(PromptTemplate(system="s"), call, "in", "") == "done"
    assert len(call.calls) == 1
    assert call.calls[0]["tools"] is None


def test_tool_calling_loop_executes_tools_sequentially():
    seen: list[str] = []
    agent = ToolCallingAgent((_echo_tool(seen),), max_iterations=5)
    call = FakeCall(
        tool_turn(("echo", {"input": "one"}), ("echo", {"input": "two"})),
        ChatTurn(text='{"findings": []}'),
    )
    assert agent.run(TEMPLATE, call, "text") == '{"findings": []}'
    assert seen == ["one", "two"]
    second = call.calls[1]["messages"]
    tool_messages = [m for m in second if m.role == "tool"]
    assert [m.content for m in tool_messages] == ["echo:one", "echo:two"]
    assert [m.tool_call_id for m in tool_messages] == ["call_0", "call_1"]
    assert call.calls[0]["tools"] == agent.tools


def test_tool_calling_loop_is_bounded():
    agent = ToolCallingAgent((_echo_tool(),), max_iterations=2)
    call = FakeCall(tool_turn(("echo", {"input": "a"})), tool_turn(("echo", {"input": "b"})))
    with pytest.raises(AgentIterationLimitError):
        agent.run(TEMPLATE, call, "text")
    assert len(call.calls) == 2


def test_tool_failure_aborts_invocation():
    agent = ToolCallingAgent((_boom_tool(),), max_iterations=3)
    with pytest.raises(ToolExecutionError) as excinfo:
        agent.run(TEMPLATE, FakeCall(tool_turn(("boom", {"input": "x"}))), "text")
    assert excinfo.value.tool_name == "boom"


def test_unknown_tool_aborts_invocation():
    agent = ToolCallingAgent((_echo_tool(),), max_iterations=3)
    with pytest.raises(ToolExecutionError):
        agent.run(TEMPLATE, FakeCall(tool_turn(("missing", {}))), "text")


def test_react_loop_runs_action_then_returns_final_answer():
    seen: list[str] = []
    agent = ReActAgent((_echo_tool(seen),), max_iterations=5)
    call = FakeCall(
        'Thought: look it up\nAction: echo\nAction Input: {"input": "fox"}',
        'Thought: done\nFinal Answer: {"thought_log": [], "findings": ["fox"]}',
    )
    answer = agent.run(TEMPLATE, call, "text")
    assert answer == '{"thought_log": [], "findings": ["fox"]}'
    assert seen == ["fox"]
    assert call.calls[0]["stop"] == ("\nObservation:",)
    scratch = call.calls[1]["messages"][-1].content
    assert "Observation: echo:fox" in scratch


def test_react_step_without_action_or_sentinel_is_a_parse_error():
    agent = ReActAgent((_echo_tool(),), max_iterations=3)
    with pytest.raises(ParseError) as excinfo:
        agent.run(TEMPLATE, FakeCall('{"findings": []}'), "text")
    assert excinfo.value.raw_text == '{"findings": []}'


def test_react_loop_is_bounded():
    agent = ReActAgent((_echo_tool(),), max_iterations=2)
    step = "Action: echo\nAction Input: again"
    with pytest.raises(AgentIterationLimitError):
        agent.run(TEMPLATE, FakeCall(step, step, step), "text")


def test_parse_helpers():
    assert parse_final_answer("Thought: x\nFinal Answer:  hello ") == "hello"
    assert parse_final_answer("no sentinel") is None
    assert parse_action("Action: `echo`\nAction Input: ```json\n{\"input\": 1}\n```") == ("echo", '{"input": 1}')
    assert parse_action("Action: echo\nAction Input: plain text\nObservation: made up") == ("echo", "plain text")
    assert parse_action("Thought only") is None


def test_final_answer_must_start_a_line():
    step = 'Thought: before my Final Answer: I need data\nAction: echo\nAction Input: {"input": "x"}'
    assert parse_final_answer(step) is None
    assert parse_final_answer("Thought: ok\n  Final Answer: done") == "done"


def test_react_mid_line_sentinel_does_not_end_the_loop():
    seen: list[str] = []
    agent = ReActAgent((_echo_tool(seen),), max_iterations=3)
    call = FakeCall(
        'Thought: before my Final Answer: I need data\nAction: echo\nAction Input: {"input": "x"}',
        "Final Answer: all done",
    )
    assert agent.run(TEMPLATE, call, "text") == "all done"
    assert seen == ["x"]
