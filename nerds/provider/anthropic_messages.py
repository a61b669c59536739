from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from anthropic import Anthropic, AnthropicError

from nerds.errors import UpstreamProviderError

from .base import ChatMessage, ChatTurn, GenerationOptions, ToolCall, split_system
from .context import ProviderContext, default_context
from .registry import register_chat_fn
from .telemetry import LLMTelemetry

_LOGGER = logging.getLogger(__name__)

PROVIDER = "anthropic"


def _blocks_for(msg: ChatMessage) -> tuple[str, List[Dict[str, Any]]]:
    if msg.role == "tool":
        return "user", [{"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}]
    blocks: List[Dict[str, Any]] = []
    if msg.content:
        blocks.append({"type": "text", "text": msg.content})
    for call in msg.tool_calls:
        blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
    role = "assistant" if msg.role == "assistant" else "user"
    return role, blocks


def _to_anthropic_messages(messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
    """Convert to Messages API turns, merging consecutive same-role turns."""

    out: List[Dict[str, Any]] = []
    for msg in messages:
        role, blocks = _blocks_for(msg)
        if not blocks:
            continue
        if out and out[-1]["role"] == role:
            out[-1]["content"].extend(blocks)
        else:
            out.append({"role": role, "content": blocks})
    return out


def _to_anthropic_tools(tools: Sequence[Any]) -> List[Dict[str, Any]]:
    return [
        {"name": tool.name, "description": tool.description, "input_schema": tool.input_schema}
        for tool in tools
    ]


def _collect_output(resp: Any) -> tuple[str, tuple[ToolCall, ...]]:
    texts: List[str] = []
    calls: List[ToolCall] = []
    for block in getattr(resp, "content", None) or []:
        block_type = getattr(block, "type", None)
        if block_type == "text" and getattr(block, "text", None):
            texts.append(str(block.text))
        elif block_type == "tool_use":
            calls.append(
                ToolCall(
                    id=str(getattr(block, "id", "")),
                    name=str(getattr(block, "name", "")),
                    arguments=dict(getattr(block, "input", None) or {}),
                )
            )
    return "".join(texts), tuple(calls)


def _usage_counts(resp: Any) -> tuple[int, int]:
    usage = getattr(resp, "usage", None)
    if not usage:
        return 0, 0
    return int(getattr(usage, "input_tokens", 0) or 0), int(getattr(usage, "output_tokens", 0) or 0)


def chat(
    messages: Sequence[ChatMessage],
    options: GenerationOptions,
    *,
    tools: Optional[Sequence[Any]] = None,
    context: Optional[ProviderContext] = None,
) -> ChatTurn:
    """One Anthropic Messages API round-trip."""

    ctx = context or default_context()
    ctx.limiter(PROVIDER, options.model_name).acquire()
    client = ctx.client(PROVIDER, Anthropic)

    system_text, conversation = split_system(messages)
    kwargs: Dict[str, Any] = {
        "model": options.model_name,
        "messages": _to_anthropic_messages(conversation),
        "max_tokens": options.max_output_tokens,
        "temperature": options.temperature,
    }
    if system_text:
        kwargs["system"] = system_text
    if options.stop:
        kwargs["stop_sequences"] = list(options.stop)
    if tools:
        kwargs["tools"] = _to_anthropic_tools(tools)

    t0 = time.time()
    try:
        resp = client.messages.create(**kwargs)
    except AnthropicError as exc:
        raise UpstreamProviderError(PROVIDER, str(exc)) from exc
    latency_ms = int((time.time() - t0) * 1000)

    text, calls = _collect_output(resp)
    if not text and not calls:
        _LOGGER.warning(
            "anthropic_messages: empty completion (resp_id=%s stop_reason=%s)",
            getattr(resp, "id", None),
            getattr(resp, "stop_reason", None),
        )
    tokens_in, tokens_out = _usage_counts(resp)
    telemetry = LLMTelemetry(
        provider=PROVIDER,
        logical_model=str(options.model_name),
        api_model=str(getattr(resp, "model", None) or options.model_name),
        tokens_in=tokens_in,
        tokens_out=tokens_out,
        latency_ms=latency_ms,
        tool_calls=len(calls),
    )
    return ChatTurn(text=text, tool_calls=calls, telemetry=telemetry, response_id=getattr(resp, "id", None))


chat.__provider__ = PROVIDER

register_chat_fn(aliases=("anthropic", "claude"), fn=chat)
