from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from nerds.provider.base import ChatMessage

if TYPE_CHECKING:  # pragma: no cover
    from nerds.nerd import NerdSpec
    from nerds.tools import Tool

__all__ = [
    "MessageTemplate",
    "PromptTemplate",
    "PromptTemplateError",
    "build_nerd_prompt",
    "build_react_instructions",
    "build_tool_calling_instructions",
    "load_prompt_text",
]

INPUT_PLACEHOLDER = "{input}"
QUERYTIME_PLACEHOLDER = "{querytime_instructions}"

_QUERYTIME_TEMPLATE = (
    "When invoking your orders against the input in the next message, please add the following "
    "constraints to your behavior if anything is specified below:\n" + QUERYTIME_PLACEHOLDER
)
_INPUT_TEMPLATE = "Please execute your instructions against the following input:\n" + INPUT_PLACEHOLDER


class PromptTemplateError(RuntimeError):
    """Raised when a requested prompt resource cannot be located."""


@lru_cache(maxsize=None)
def _load_text(relative_path: str) -> str:
    """Read and cache prompt text from the package resources."""

    base = resources.files("nerds.prompts")
    target = base.joinpath(relative_path)
    if not target.is_file():
        raise PromptTemplateError(f"Missing prompt template: {relative_path}")
    return target.read_text(encoding="utf-8").strip()


def load_prompt_text(name: str) -> str:
    return _load_text(name)


@dataclass(frozen=True)
class MessageTemplate:
    """One message slot. ``placeholder`` names the single runtime value it takes."""

    role: str
    template: str
    placeholder: Optional[str] = None

    def render(self, value: str) -> str:
        if self.placeholder is None:
            return self.template
        return self.template.replace(self.placeholder, value)


@dataclass(frozen=True)
class PromptTemplate:
    """Compiled message sequence for one bound nerd.

    The system text is final at compile time. Runtime values are substituted
    with plain string replacement, so braces in schemas and inputs pass
    through untouched.
    """

    system: str
    querytime: MessageTemplate = MessageTemplate("user", _QUERYTIME_TEMPLATE, QUERYTIME_PLACEHOLDER)
    input: MessageTemplate = MessageTemplate("user", _INPUT_TEMPLATE, INPUT_PLACEHOLDER)
    has_scratchpad: bool = False

    def render(
        self,
        input_text: str,
        querytime_instructions: str = "",
        scratchpad: Sequence[ChatMessage] = (),
    ) -> List[ChatMessage]:
        messages = [ChatMessage(role="system", content=self.system)]
        instructions = (querytime_instructions or "").strip()
        if instructions:
            messages.append(ChatMessage(role=self.querytime.role, content=self.querytime.render(instructions)))
        messages.append(ChatMessage(role=self.input.role, content=self.input.render(input_text)))
        if self.has_scratchpad:
            messages.extend(scratchpad)
        return messages


def _bullets(items: Iterable[str]) -> List[str]:
    return [f"- {item.strip()}" for item in items if item and item.strip()]


def _identity(spec: "NerdSpec") -> str:
    return (
        f"You are {spec.name}, a NERD (which is a type of automated LLM-driven assistant).\n\n"
        f"Your purpose: {spec.purpose.strip()}"
    )


def _directive_section(items: Iterable[str], *, negated: bool) -> Optional[str]:
    lines = _bullets(items)
    if not lines:
        return None
    tail = "do not do" if negated else "do"
    header = f"**IMPORTANT** As you carry out your tasks, here is a list of things you should make sure you {tail}:"
    return "\n".join([header, *lines])


def _optional_section(header: str, body: Optional[str]) -> Optional[str]:
    text = (body or "").strip()
    if not text:
        return None
    return f"{header}\n{text}"


def build_nerd_prompt(
    spec: "NerdSpec",
    *,
    tool_instructions: Optional[str] = None,
    format_instructions: str = "",
    has_scratchpad: bool = False,
) -> PromptTemplate:
    """Compile identity, directives, notes, strategy, tool and output instructions."""

    sections: List[Optional[str]] = [
        _identity(spec),
        _directive_section(spec.do_list, negated=False),
        _directive_section(spec.do_not_list, negated=True),
        _optional_section("**Additional Notes**:", spec.additional_notes),
        _optional_section(
            "**Strategy** Please use the following strategy as you carry out your task:",
            spec.strategy,
        ),
        _optional_section("**Specific Additional Instructions**:", tool_instructions),
        _optional_section("**Output Instructions**:", format_instructions),
    ]
    system = "\n\n".join(section for section in sections if section)
    return PromptTemplate(system=system, has_scratchpad=has_scratchpad)


def _tool_lines(tools: Sequence["Tool"]) -> Tuple[str, str]:
    described = "\n".join(f"{tool.name}: {tool.description.strip()}" for tool in tools)
    names = ", ".join(tool.name for tool in tools)
    return described, names


def build_react_instructions(tools: Sequence["Tool"]) -> str:
    described, names = _tool_lines(tools)
    return _load_text("react_v1.md").replace("{tools}", described).replace("{tool_names}", names)


def build_tool_calling_instructions(tools: Sequence["Tool"]) -> str:
    _, names = _tool_lines(tools)
    return _load_text("tool_calling_v1.md").replace("{tool_names}", names)
