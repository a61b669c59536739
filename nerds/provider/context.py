from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, Callable, Dict, Optional

from nerds.ratelimit import RateLimiter

_LOGGER = logging.getLogger(__name__)


class ProviderContext:
    """Owns SDK clients and rate limiters for the providers a process talks to.

    Clients are opened lazily on first use and closed by ``close()``, which is
    registered as an ``atexit`` hook when the context is created with
    ``register_shutdown=True``; ``close()`` unregisters that hook. Pass one
    context explicitly to every bound nerd that should share connections.
    """

    def __init__(self, *, register_shutdown: bool = True) -> None:
        self._lock = threading.Lock()
        self._clients: Dict[str, Any] = {}
        self._limiters: Dict[str, RateLimiter] = {}
        self._closed = False
        self._shutdown_hook = register_shutdown
        if register_shutdown:
            atexit.register(self.close)

    def client(self, provider: str, factory: Callable[[], Any]) -> Any:
        with self._lock:
            if self._closed:
                raise RuntimeError("ProviderContext is closed")
            existing = self._clients.get(provider)
            if existing is None:
                existing = factory()
                self._clients[provider] = existing
                _LOGGER.debug("opened %s client", provider)
            return existing

    def limiter(self, provider: str, model: Optional[str] = None) -> RateLimiter:
        with self._lock:
            limiter = self._limiters.get(provider)
            if limiter is None:
                limiter = RateLimiter.for_provider(provider, model)
                self._limiters[provider] = limiter
            return limiter

    def set_limiter(self, provider: str, limiter: Any) -> None:
        with self._lock:
            self._limiters[provider] = limiter

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.items())
            self._clients.clear()
            self._closed = True
        if self._shutdown_hook:
            atexit.unregister(self.close)
            self._shutdown_hook = False
        for provider, client in clients:
            closer = getattr(client, "close", None)
            if not callable(closer):
                continue
            try:
                closer()
            except Exception as exc:
                _LOGGER.debug("error closing %s client: %s", provider, exc)

    @property
    def closed(self) -> bool:
        return self._closed


_DEFAULT_CONTEXT: Optional[ProviderContext] = None
_DEFAULT_LOCK = threading.Lock()


def default_context() -> ProviderContext:
    """Process-wide context used when callers do not pass their own."""

    global _DEFAULT_CONTEXT
    with _DEFAULT_LOCK:
        if _DEFAULT_CONTEXT is None or _DEFAULT_CONTEXT.closed:
            _DEFAULT_CONTEXT = ProviderContext()
        return _DEFAULT_CONTEXT


__all__ = ["ProviderContext", "default_context"]
