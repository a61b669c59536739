from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI, OpenAIError

from nerds.errors import ProviderNotFoundError, UpstreamProviderError

from .base import ChatMessage, ChatTurn, GenerationOptions, ToolCall
from .config import get_capabilities
from .context import ProviderContext, default_context
from .registry import register_chat_fn
from .telemetry import LLMTelemetry

logger = logging.getLogger(__name__)

PROVIDER = "openai"


def _extract_usage(resp: Any) -> tuple[int, int]:
    tokens_in = 0
    tokens_out = 0
    usage = getattr(resp, "usage", None)
    if usage:
        tokens_in = int(
            getattr(usage, "input_tokens", getattr(usage, "prompt_tokens", 0)) or 0
        )
        tokens_out = int(
            getattr(usage, "output_tokens", getattr(usage, "completion_tokens", 0)) or 0
        )
    return tokens_in, tokens_out


def _message_text(message: Any) -> str:
    content = getattr(message, "content", None)
    if isinstance(content, list):
        # Newer SDK returns content parts
        texts = []
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text" and part.get("text"):
                texts.append(str(part["text"]))
            elif getattr(part, "type", None) == "text" and getattr(part, "text", None):
                texts.append(str(part.text))
        return "".join(texts)
    return str(content) if content else ""


def _parse_tool_calls(message: Any) -> tuple[ToolCall, ...]:
    calls: List[ToolCall] = []
    for raw in getattr(message, "tool_calls", None) or []:
        function = getattr(raw, "function", None)
        name = getattr(function, "name", None)
        if not name:
            continue
        raw_args = getattr(function, "arguments", None) or "{}"
        try:
            arguments = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
        except json.JSONDecodeError:
            arguments = {"input": raw_args}
        calls.append(ToolCall(id=str(getattr(raw, "id", "") or name), name=str(name), arguments=arguments))
    return tuple(calls)


def _to_openai_messages(messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            out.append({"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content})
            continue
        entry: Dict[str, Any] = {"role": msg.role, "content": msg.content}
        if msg.tool_calls:
            entry["content"] = msg.content or None
            entry["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in msg.tool_calls
            ]
        out.append(entry)
    return out


def _to_openai_tools(tools: Sequence[Any]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


def _flatten_prompt(messages: Sequence[ChatMessage]) -> str:
    labels = {"system": "System", "user": "Human", "assistant": "AI", "tool": "Tool"}
    lines = [f"{labels.get(m.role, m.role.title())}: {m.content}" for m in messages]
    return "\n\n".join(lines) + "\n\nAI:"


def _is_text_only(api_model: str) -> bool:
    try:
        caps = get_capabilities(PROVIDER)
    except ProviderNotFoundError:
        return False
    return api_model.lower() in {m.lower() for m in caps.text_only_models}


def chat(
    messages: Sequence[ChatMessage],
    options: GenerationOptions,
    *,
    tools: Optional[Sequence[Any]] = None,
    context: Optional[ProviderContext] = None,
) -> ChatTurn:
    """One OpenAI round-trip (chat completions, or completions for instruct models)."""

    ctx = context or default_context()
    api_model = options.model_name
    ctx.limiter(PROVIDER, api_model).acquire()
    client = ctx.client(PROVIDER, OpenAI)

    t0 = time.time()
    try:
        if not _is_text_only(api_model):
            kwargs: Dict[str, Any] = {
                "model": api_model,
                "messages": _to_openai_messages(messages),
                "temperature": options.temperature,
                "max_tokens": options.max_output_tokens,
            }
            if options.stop:
                kwargs["stop"] = list(options.stop)
            if tools:
                kwargs["tools"] = _to_openai_tools(tools)
            resp = client.chat.completions.create(**kwargs)
            choices = getattr(resp, "choices", None) or []
            message = getattr(choices[0], "message", None) if choices else None
            text = _message_text(message) if message is not None else ""
            calls = _parse_tool_calls(message) if message is not None else ()
        else:
            kwargs = {
                "model": api_model,
                "prompt": _flatten_prompt(messages),
                "temperature": options.temperature,
                "max_tokens": options.max_output_tokens,
            }
            if options.stop:
                kwargs["stop"] = list(options.stop)
            resp = client.completions.create(**kwargs)
            choices = getattr(resp, "choices", None) or []
            text = str(getattr(choices[0], "text", "") or "") if choices else ""
            calls = ()
    except OpenAIError as exc:
        raise UpstreamProviderError(PROVIDER, str(exc)) from exc
    latency_ms = int((time.time() - t0) * 1000)

    if not text and not calls:
        logger.warning("openai_chat: empty completion (resp_id=%s)", getattr(resp, "id", None))

    tokens_in, tokens_out = _extract_usage(resp)
    provider_model_id = getattr(resp, "model", None) or api_model
    telemetry = LLMTelemetry(
        provider=PROVIDER,
        logical_model=str(options.model_name),
        api_model=str(provider_model_id),
        tokens_in=tokens_in,
        tokens_out=tokens_out,
        latency_ms=latency_ms,
        tool_calls=len(calls),
    )
    return ChatTurn(text=text, tool_calls=calls, telemetry=telemetry, response_id=getattr(resp, "id", None))


chat.__provider__ = PROVIDER

register_chat_fn(aliases=("openai", "open_ai", "gpt"), fn=chat)
