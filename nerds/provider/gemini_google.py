from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from nerds.errors import UpstreamProviderError

from .base import ChatMessage, ChatTurn, GenerationOptions, split_system
from .context import ProviderContext, default_context
from .registry import register_chat_fn
from .telemetry import LLMTelemetry


_LOGGER = logging.getLogger(__name__)
_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
_MAX_OUTPUT_CAP = 8192

PROVIDER = "google"


def _resolve_api_key() -> str:
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise UpstreamProviderError(PROVIDER, "Set GEMINI_API_KEY (or GOOGLE_API_KEY) to call Gemini.")
    return api_key


def _extract_text(payload: Dict[str, Any]) -> Optional[str]:
    candidates = payload.get("candidates") or []
    for candidate in candidates:
        content = candidate.get("content")
        parts: Iterable[Any]
        if isinstance(content, dict):
            parts = content.get("parts", []) or []
        elif isinstance(content, list):
            parts = content
        else:
            parts = []
        texts = [
            part.get("text")
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        if any(t.strip() for t in texts):
            return "".join(texts)
        # Some variants return `candidate["text"]`
        text_val = candidate.get("text")
        if isinstance(text_val, str) and text_val.strip():
            return text_val
    return None


def _usage_counts(data: Dict[str, Any]) -> tuple[int, int]:
    usage = data.get("usageMetadata") or {}
    tokens_in = int(usage.get("promptTokenCount") or 0)
    tokens_out = int(usage.get("candidatesTokenCount") or usage.get("totalTokenCount") or 0)
    return tokens_in, tokens_out


def _format_http_error(response: Optional[requests.Response]) -> str:
    if response is None:
        return "no response payload"
    detail: Optional[str] = None
    try:
        data = response.json()
        if isinstance(data, dict):
            error_obj = data.get("error")
            if isinstance(error_obj, dict):
                message = error_obj.get("message")
                status = error_obj.get("status")
                detail = str(message or status)
            if not detail:
                detail = json.dumps(data)[:500]
    except ValueError:
        pass
    if not detail:
        text = (response.text or "").strip()
        detail = text[:500] if text else "no body"
    return detail


def _to_contents(messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
    contents: List[Dict[str, Any]] = []
    for msg in messages:
        role = "model" if msg.role == "assistant" else "user"
        text = msg.content
        if msg.role == "tool":
            text = f"Observation from {msg.name or 'tool'}: {msg.content}"
        if not text:
            continue
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].append({"text": text})
        else:
            contents.append({"role": role, "parts": [{"text": text}]})
    return contents


def chat(
    messages: Sequence[ChatMessage],
    options: GenerationOptions,
    *,
    tools: Optional[Sequence[Any]] = None,
    context: Optional[ProviderContext] = None,
) -> ChatTurn:
    """Call Google Gemini generateContent over REST."""

    if tools:
        _LOGGER.debug("gemini_google: native tools are not wired; %d tools ignored", len(tools))
    ctx = context or default_context()
    api_model = options.model_name
    api_key = _resolve_api_key()
    system_text, conversation = split_system(messages)

    generation_config: Dict[str, Any] = {
        "temperature": options.temperature,
        "max_output_tokens": min(max(int(options.max_output_tokens), 1), _MAX_OUTPUT_CAP),
    }
    if options.response_mime_type:
        generation_config["response_mime_type"] = options.response_mime_type
    if options.stop:
        generation_config["stop_sequences"] = list(options.stop)
    payload: Dict[str, Any] = {
        "contents": _to_contents(conversation),
        "generationConfig": generation_config,
    }
    if system_text:
        payload["system_instruction"] = {"role": "system", "parts": [{"text": system_text}]}

    url = f"{_API_BASE}/models/{api_model}:generateContent"
    params = {"key": api_key}

    ctx.limiter(PROVIDER, api_model).acquire()
    t0 = time.time()
    try:
        response = requests.post(url, params=params, json=payload, timeout=60)
    except requests.RequestException as exc:
        raise UpstreamProviderError(PROVIDER, f"HTTP request failed: {exc}") from exc

    try:
        response.raise_for_status()
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else response.status_code
        detail = _format_http_error(exc.response or response)
        raise UpstreamProviderError(PROVIDER, f"HTTP {status}: {detail}") from exc

    try:
        data = response.json()
    except ValueError as exc:
        snippet = (response.text or "").strip()[:500]
        raise UpstreamProviderError(PROVIDER, f"non-JSON payload: {snippet}") from exc

    latency_ms = int((time.time() - t0) * 1000)
    text = _extract_text(data) or ""
    if not text:
        _LOGGER.warning("gemini_google: empty completion (resp_id=%s)", data.get("responseId"))

    tokens_in, tokens_out = _usage_counts(data)
    telemetry = LLMTelemetry(
        provider=PROVIDER,
        logical_model=str(options.model_name),
        api_model=str(data.get("modelVersion") or api_model),
        tokens_in=tokens_in,
        tokens_out=tokens_out,
        latency_ms=latency_ms,
    )
    return ChatTurn(text=text, telemetry=telemetry, response_id=data.get("responseId"))


chat.__provider__ = PROVIDER

register_chat_fn(aliases=("google", "gemini"), fn=chat)
