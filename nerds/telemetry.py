from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable

log = logging.getLogger("nerds.telemetry")


@contextmanager
def timed(stage: str, ctx: Dict[str, Any] | None = None):
    """Context manager that logs elapsed ms for the given stage."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        payload = {"stage": stage, "ms": elapsed_ms}
        if ctx:
            payload.update(ctx)
        log.info("timing", extra=payload)


def prompt_sha256(parts: Iterable[str]) -> str:
    """Stable hash of the rendered prompt text, used to correlate log lines."""
    return hashlib.sha256("\n\n".join(parts).encode("utf-8")).hexdigest()
