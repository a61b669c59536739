from __future__ import annotations

import hashlib
import json
import re
from collections import deque
from typing import Any, Deque, Iterable, List, Optional, Sequence, Union

from .base import ChatMessage, ChatTurn, GenerationOptions, ToolCall
from .context import ProviderContext
from .registry import register_chat_fn
from .telemetry import LLMTelemetry

PROVIDER = "mock"

_SCHEMA_MARKER = "Output Schema:"
_SENTINEL_MARKER = "Final Answer:"
_TOP_LEVEL_KEY_RE = re.compile(r'^ {2}"?([A-Za-z_][A-Za-z0-9_]*)"?\??\s*:', re.MULTILINE)


def _schema_keys(messages: Sequence[ChatMessage]) -> Optional[List[str]]:
    for msg in messages:
        idx = msg.content.find(_SCHEMA_MARKER)
        if idx == -1:
            continue
        schema_text = msg.content[idx + len(_SCHEMA_MARKER):]
        keys: List[str] = []
        for key in _TOP_LEVEL_KEY_RE.findall(schema_text):
            if key not in keys:
                keys.append(key)
        return keys
    return None


def chat_mock(
    messages: Sequence[ChatMessage],
    options: GenerationOptions,
    *,
    tools: Optional[Sequence[Any]] = None,
    context: Optional[ProviderContext] = None,
) -> ChatTurn:
    """Deterministic mock provider output for smoke tests (no network).

    Structured prompts get a JSON object with an empty list for every
    top-level schema key; freeform prompts get a short Markdown stub. Prompts
    that ask for the ReAct sentinel get it.
    """

    joined = "\n\n".join(m.content for m in messages)
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    keys = _schema_keys(messages)
    if keys is not None:
        payload: dict[str, Any] = {key: [] for key in keys}
        payload["thought_log"] = [f"mock run {digest[:12]}"]
        text = json.dumps(payload)
    else:
        text = f"# Mock output\n\nDeterministic mock response {digest[:12]}."
    if _SENTINEL_MARKER in joined:
        text = f"{_SENTINEL_MARKER} {text}"
    telemetry = LLMTelemetry(
        provider=PROVIDER,
        logical_model=options.model_name,
        api_model=f"{options.model_name}-MOCK",
        tokens_in=len(joined) // 4,
        tokens_out=len(text) // 4,
        latency_ms=5,
    )
    return ChatTurn(text=text, telemetry=telemetry, response_id=f"mock_{digest[:12]}")


chat_mock.__provider__ = PROVIDER

register_chat_fn(aliases=("mock",), fn=chat_mock)


ScriptedReply = Union[str, ChatTurn, Exception]


class ScriptedChat:
    """Adapter that replays queued replies and records every call.

    Each reply may be a string (raw text), a ChatTurn (e.g. with tool calls),
    or an exception instance to raise.
    """

    def __init__(self, replies: Iterable[ScriptedReply] = ()) -> None:
        self._replies: Deque[ScriptedReply] = deque(replies)
        self.calls: List[dict[str, Any]] = []

    def queue(self, *replies: ScriptedReply) -> "ScriptedChat":
        self._replies.extend(replies)
        return self

    def __call__(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        *,
        tools: Optional[Sequence[Any]] = None,
        context: Optional[ProviderContext] = None,
    ) -> ChatTurn:
        self.calls.append({"messages": list(messages), "options": options, "tools": list(tools or [])})
        if not self._replies:
            raise AssertionError("ScriptedChat ran out of replies")
        reply = self._replies.popleft()
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, ChatTurn):
            return reply
        return ChatTurn(text=str(reply))


def tool_turn(*calls: tuple[str, dict[str, Any]], text: str = "") -> ChatTurn:
    """Build a ChatTurn that requests the given (name, arguments) tool calls."""

    return ChatTurn(
        text=text,
        tool_calls=tuple(ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)),
    )


__all__ = ["chat_mock", "ScriptedChat", "tool_turn"]
