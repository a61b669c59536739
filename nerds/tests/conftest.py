from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nerds.provider.config import reset_provider_capabilities_cache, reset_rate_limit_cache  # noqa: E402
from nerds.provider.context import ProviderContext  # noqa: E402


_ENV_VARS = (
    "NERDS_MOCK",
    "NERDS_REPAIR_MODEL",
    "NERDS_MAX_ITERATIONS",
    "NERDS_BATCH_WORKERS",
    "NERDS_TEMPERATURE",
    "NERDS_PROVIDER_CONFIG",
    "NERDS_PROVIDER_CAPABILITIES_PATH",
)


@pytest.fixture(autouse=True)
def _clean_nerds_env(monkeypatch: pytest.MonkeyPatch):
    """Keep developer settings and cached capability files out of each test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_provider_capabilities_cache()
    reset_rate_limit_cache()
    yield
    reset_provider_capabilities_cache()
    reset_rate_limit_cache()


class CountingLimiter:
    def __init__(self) -> None:
        self.count = 0

    def acquire(self, timeout=None) -> None:
        self.count += 1


@pytest.fixture()
def limiter() -> CountingLimiter:
    return CountingLimiter()


@pytest.fixture()
def context(limiter: CountingLimiter) -> ProviderContext:
    ctx = ProviderContext(register_shutdown=False)
    for provider in ("openai", "anthropic", "google"):
        ctx.set_limiter(provider, limiter)
    yield ctx
    ctx.close()
