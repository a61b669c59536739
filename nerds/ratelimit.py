from __future__ import annotations

import os
import threading
import time
from typing import Optional


class RateLimiter:
    """Token-bucket limiter shared by every thread calling one provider."""

    def __init__(self, rate_per_sec: float, burst: int = 1) -> None:
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be positive")
        if burst <= 0:
            raise ValueError("burst must be positive")
        self._rate = rate_per_sec
        self._capacity = float(burst)
        self._tokens = float(burst)
        self._last = time.monotonic()
        self._lock = threading.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return int(self._capacity)

    @classmethod
    def for_provider(cls, provider: str, model: Optional[str] = None) -> "RateLimiter":
        """Build a limiter from provider YAML, overridden by NERDS_<PROVIDER>_RPS/_BURST."""

        from nerds.provider.config import get_rate_limits

        try:
            rps, burst = get_rate_limits(provider, model)
        except Exception:
            rps, burst = 1.0, 2
        prefix = f"NERDS_{provider.upper()}"
        rps_env = os.getenv(f"{prefix}_RPS")
        burst_env = os.getenv(f"{prefix}_BURST")
        if rps_env:
            try:
                rps = float(rps_env)
            except ValueError:
                pass
        if burst_env:
            try:
                burst = int(burst_env)
            except ValueError:
                pass
        if rps <= 0:
            rps = 1.0
        if burst <= 0:
            burst = 1
        return cls(rate_per_sec=float(rps), burst=int(burst))

    def acquire(self, timeout: Optional[float] = None) -> None:
        """Block until a token is available (timeout=None means wait indefinitely)."""
        end_time = None if timeout is None else (time.monotonic() + timeout)
        while True:
            with self._lock:
                now = time.monotonic()
                elapsed = now - self._last
                if elapsed > 0:
                    self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
                    self._last = now
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait_time = (1.0 - self._tokens) / self._rate
            if end_time is not None:
                remaining = end_time - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError("RateLimiter acquire timed out")
                wait_time = min(wait_time, remaining)
            time.sleep(wait_time)
