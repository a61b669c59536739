from __future__ import annotations

from typing import Callable, Iterable, Dict

from nerds.errors import ProviderNotFoundError

from . import ensure_adapters_loaded

__all__ = ["register_chat_fn", "get_chat_fn", "list_registered_providers", "list_registered_aliases"]

_CHAT_REGISTRY: Dict[str, Callable] = {}


def _normalize(name: str) -> str:
    return (name or "").strip().lower()


def register_chat_fn(*, aliases: Iterable[str], fn: Callable) -> None:
    """Register a chat adapter for one or more provider aliases.

    Adapter modules call this at import time so a new provider only needs a module.
    """

    if not callable(fn):
        raise TypeError("fn must be callable")

    alias_list = [_normalize(alias) for alias in aliases if _normalize(alias)]
    if not alias_list:
        raise ValueError("At least one non-empty alias is required")

    for alias in alias_list:
        existing = _CHAT_REGISTRY.get(alias)
        if existing is not None and existing is not fn:
            raise ValueError(f"Alias '{alias}' already registered to a different adapter")
        _CHAT_REGISTRY[alias] = fn


def get_chat_fn(provider: str) -> Callable:
    """Return the chat adapter registered for a provider alias."""

    ensure_adapters_loaded()
    key = _normalize(provider)
    if not key:
        raise ValueError("provider must be a non-empty string")
    try:
        return _CHAT_REGISTRY[key]
    except KeyError as exc:
        raise ProviderNotFoundError(f"No chat adapter registered for provider='{provider}'") from exc


def list_registered_aliases() -> list[str]:
    ensure_adapters_loaded()
    return sorted(_CHAT_REGISTRY.keys())


def list_registered_providers() -> Dict[str, list[str]]:
    """Map each adapter's provider id to the aliases it answers to."""

    ensure_adapters_loaded()
    grouped: Dict[str, list[str]] = {}
    for alias, fn in sorted(_CHAT_REGISTRY.items()):
        provider = getattr(fn, "__provider__", alias)
        grouped.setdefault(provider, []).append(alias)
    return grouped
