from __future__ import annotations

from .base import ChatAdapter
from . import mock as _mock
from .registry import get_chat_fn


def get_chat_adapter(*, provider: str, provider_mode: str = "LIVE") -> ChatAdapter:
    """Return the adapter for a provider, or the deterministic mock."""

    if (provider_mode or "").upper() == "MOCK":
        return _mock.chat_mock  # type: ignore[return-value]
    return get_chat_fn(provider)  # type: ignore[return-value]
