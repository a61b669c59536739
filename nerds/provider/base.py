from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple, TYPE_CHECKING, runtime_checkable

from .telemetry import LLMTelemetry

if TYPE_CHECKING:  # pragma: no cover
    from nerds.tools import Tool
    from .context import ProviderContext


@dataclass(frozen=True)
class ToolCall:
    """A single native tool invocation requested by the model."""

    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatMessage:
    """Provider-neutral chat message.

    ``role`` is one of system, user, assistant or tool. Assistant messages may
    carry ``tool_calls``; tool messages answer one call via ``tool_call_id``.
    """

    role: str
    content: str
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class GenerationOptions:
    model_name: str
    temperature: float = 0.0
    max_output_tokens: int = 4096
    # Gemini JSON-mode hint; other adapters ignore it.
    response_mime_type: Optional[str] = None
    stop: Tuple[str, ...] = ()


@dataclass
class ChatTurn:
    """Result of one round-trip: raw text plus any requested tool calls."""

    text: str
    tool_calls: Tuple[ToolCall, ...] = ()
    telemetry: Optional[LLMTelemetry] = None
    response_id: Optional[str] = None


@runtime_checkable
class ChatAdapter(Protocol):
    """The model-invocation boundary: ``(messages, options) -> raw text``."""

    def __call__(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        *,
        tools: Optional[Sequence["Tool"]] = None,
        context: Optional["ProviderContext"] = None,
    ) -> ChatTurn:  # pragma: no cover - Protocol stub
        ...


def split_system(messages: Sequence[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Separate system text from the conversation for APIs that take it apart."""

    system_parts = [m.content for m in messages if m.role == "system"]
    rest = [m for m in messages if m.role != "system"]
    return "\n\n".join(system_parts), rest
