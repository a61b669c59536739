from __future__ import annotations

_PROVIDER_ALIASES = {
    "openai": "openai",
    "open_ai": "openai",
    "gpt": "openai",
    "anthropic": "anthropic",
    "claude": "anthropic",
    "google": "google",
    "gemini": "google",
}


def normalize_provider(name: str | None) -> str | None:
    """Map platform spellings (OPEN_AI, GEMINI, claude...) onto provider ids."""

    key = (name or "").strip().lower()
    if not key:
        return None
    return _PROVIDER_ALIASES.get(key, key)


def infer_provider_from_model(model: str | None) -> str | None:
    """Best-effort mapping from logical model id to provider id."""

    text = (model or "").strip().lower()
    if not text:
        return None
    if ":" in text:
        prefix = text.split(":", 1)[0]
        provider = normalize_provider(prefix)
        if provider in {"openai", "anthropic", "google"}:
            return provider
    if text.startswith("claude") or "anthropic" in text:
        return "anthropic"
    if "gemini" in text or "google" in text:
        return "google"
    if "gpt" in text or "openai" in text or text.startswith("o1"):
        return "openai"
    return None


def strip_provider_prefix(model: str) -> str:
    """Turn 'openai:gpt-4o' into 'gpt-4o'; plain names pass through."""

    text = (model or "").strip()
    if ":" in text:
        prefix, rest = text.split(":", 1)
        if normalize_provider(prefix) in {"openai", "anthropic", "google"}:
            return rest.strip()
    return text


__all__ = ["infer_provider_from_model", "normalize_provider", "strip_provider_prefix"]
