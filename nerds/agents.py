"""Agent kinds a bound nerd can run as, chosen once at bind time.

``SimpleAgent`` makes one model call. ``ToolCallingAgent`` loops over native
tool calls. ``ReActAgent`` simulates tool use with a text protocol that ends
at the ``Final Answer:`` sentinel.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple, Union

from nerds.errors import AgentIterationLimitError, ParseError
from nerds.prompts.prompt_builder import (
    PromptTemplate,
    build_react_instructions,
    build_tool_calling_instructions,
)
from nerds.provider.base import ChatMessage, ChatTurn
from nerds.tools import Tool, find_tool

_LOGGER = logging.getLogger(__name__)

FINAL_ANSWER = "Final Answer:"
OBSERVATION_STOP = "\nObservation:"
DEFAULT_MAX_ITERATIONS = 15

_ACTION_RE = re.compile(
    r"Action\s*:\s*(?P<name>[^\n]*?)\s*\n\s*Action\s*Input\s*:\s*(?P<input>.*)",
    re.DOTALL,
)
_FINAL_ANSWER_RE = re.compile(r"^[ \t]*" + re.escape(FINAL_ANSWER), re.MULTILINE)
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class ModelCall(Protocol):
    def __call__(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Optional[Sequence[Tool]] = None,
        stop: Tuple[str, ...] = (),
    ) -> ChatTurn:  # pragma: no cover - Protocol stub
        ...


@dataclass(frozen=True)
class SimpleAgent:
    kind = "simple"

    def tool_instructions(self) -> Optional[str]:
        return None

    def run(self, template: PromptTemplate, call: ModelCall, input_text: str, querytime: str = "") -> str:
        return call(template.render(input_text, querytime)).text


@dataclass(frozen=True)
class ToolCallingAgent:
    tools: Tuple[Tool, ...]
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    kind = "tool_calling"

    def tool_instructions(self) -> Optional[str]:
        return build_tool_calling_instructions(self.tools)

    def run(self, template: PromptTemplate, call: ModelCall, input_text: str, querytime: str = "") -> str:
        scratchpad: list[ChatMessage] = []
        for step in range(self.max_iterations):
            turn = call(template.render(input_text, querytime, scratchpad), tools=self.tools)
            if not turn.tool_calls:
                return turn.text
            scratchpad.append(ChatMessage(role="assistant", content=turn.text, tool_calls=turn.tool_calls))
            # Tool calls run one after another; each blocks on its result.
            for tool_call in turn.tool_calls:
                tool = find_tool(self.tools, tool_call.name)
                _LOGGER.debug("step %d: calling %s", step + 1, tool.name)
                observation = tool.invoke(tool_call.arguments)
                scratchpad.append(
                    ChatMessage(role="tool", content=observation, tool_call_id=tool_call.id, name=tool.name)
                )
        raise AgentIterationLimitError(self.max_iterations)


def parse_final_answer(text: str) -> Optional[str]:
    """Text after a ``Final Answer:`` sentinel that starts a line, if any."""

    match = _FINAL_ANSWER_RE.search(text)
    if not match:
        return None
    return text[match.end():].strip()


def parse_action(text: str) -> Optional[Tuple[str, str]]:
    """Return (tool name, raw action input) from one ReAct step, if present."""

    match = _ACTION_RE.search(text)
    if not match:
        return None
    name = match.group("name").strip().strip("`'\"[]")
    raw_input = match.group("input")
    cut = raw_input.find(OBSERVATION_STOP.strip())
    if cut != -1:
        raw_input = raw_input[:cut]
    raw_input = raw_input.strip()
    fenced = _FENCE_RE.match(raw_input)
    if fenced:
        raw_input = fenced.group(1).strip()
    return name, raw_input


@dataclass(frozen=True)
class ReActAgent:
    tools: Tuple[Tool, ...]
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    kind = "react"

    def tool_instructions(self) -> Optional[str]:
        return build_react_instructions(self.tools)

    def run(self, template: PromptTemplate, call: ModelCall, input_text: str, querytime: str = "") -> str:
        transcript: list[str] = []
        for step in range(self.max_iterations):
            scratchpad = [_scratchpad_message(transcript)] if transcript else []
            text = call(template.render(input_text, querytime, scratchpad), stop=(OBSERVATION_STOP,)).text
            answer = parse_final_answer(text)
            if answer is not None:
                return answer
            action = parse_action(text)
            if action is None:
                raise ParseError(
                    f"ReAct step {step + 1} contained neither an action nor a '{FINAL_ANSWER}' sentinel",
                    raw_text=text,
                )
            name, action_input = action
            tool = find_tool(self.tools, name)
            _LOGGER.debug("step %d: calling %s", step + 1, tool.name)
            observation = tool.invoke(action_input)
            transcript.append(f"{text.strip()}\nObservation: {observation}")
        raise AgentIterationLimitError(self.max_iterations)


def _scratchpad_message(transcript: Sequence[str]) -> ChatMessage:
    body = "\n\n".join(transcript)
    return ChatMessage(
        role="user",
        content=(
            "Agent scratchpad (your previous steps and their observations):\n\n"
            f"{body}\n\n"
            "Continue with your next Thought, or give your Final Answer."
        ),
    )


Agent = Union[SimpleAgent, ToolCallingAgent, ReActAgent]


def select_agent(
    tools: Sequence[Tool],
    *,
    native_tools: bool,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> Agent:
    """No tools: Simple. Native tool support: ToolCalling. Otherwise: ReAct."""

    if not tools:
        return SimpleAgent()
    if native_tools:
        return ToolCallingAgent(tuple(tools), max_iterations)
    return ReActAgent(tuple(tools), max_iterations)


__all__ = [
    "Agent",
    "SimpleAgent",
    "ToolCallingAgent",
    "ReActAgent",
    "ModelCall",
    "FINAL_ANSWER",
    "OBSERVATION_STOP",
    "parse_action",
    "parse_final_answer",
    "select_agent",
]
