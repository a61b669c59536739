from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from nerds.errors import ProviderNotFoundError
from nerds.provider.config import (
    PROVIDER_CAPABILITIES_ENV,
    get_capabilities,
    get_rate_limits,
    load_provider_capabilities,
)
from nerds.ratelimit import RateLimiter


def test_bundled_capability_files_load():
    caps = load_provider_capabilities(refresh=True)
    assert set(caps) == {"openai", "anthropic", "google"}

    openai = caps["openai"]
    assert openai.supports_native_tools("gpt-4o")
    assert not openai.supports_native_tools("gpt-3.5-turbo-instruct")
    assert caps["anthropic"].resolve_api_model("claude-3-opus") == "claude-3-opus-20240229"
    google = caps["google"]
    assert google.supports_json_mode
    assert not google.supports_native_tools("gemini-1.5-pro-latest")
    assert google.resolve_api_model("") == google.api_model_map[google.default_model]


def test_capability_override_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "provider": "openai",
                "default_model": "house",
                "api_model_map": {"house": "gpt-4o-mini"},
                "supports_tools": False,
                "supports_json_mode": False,
                "max_output_tokens": 512,
            }
        )
    )
    monkeypatch.setenv(PROVIDER_CAPABILITIES_ENV, str(path))

    caps = load_provider_capabilities(refresh=True)
    assert list(caps) == ["openai"]
    assert caps["openai"].resolve_api_model("house") == "gpt-4o-mini"
    with pytest.raises(ProviderNotFoundError):
        get_capabilities("anthropic")


def test_invalid_capability_file_raises(monkeypatch, tmp_path: Path):
    path = tmp_path / "bad.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "provider": "openai",
                "default_model": "missing",
                "api_model_map": {"gpt-4o": "gpt-4o"},
                "supports_tools": True,
                "supports_json_mode": False,
                "max_output_tokens": 512,
            }
        )
    )
    monkeypatch.setenv(PROVIDER_CAPABILITIES_ENV, str(path))

    with pytest.raises(ValueError, match="default_model"):
        load_provider_capabilities(refresh=True)


def test_rate_limits_from_provider_config(monkeypatch, tmp_path: Path):
    path = tmp_path / "providers.yaml"
    path.write_text(
        yaml.safe_dump(
            {"openai": {"defaults": {"rps": 5, "burst": 4}, "models": {"gpt-4o": {"rps": 1, "burst": 1}}}}
        )
    )
    monkeypatch.setenv("NERDS_PROVIDER_CONFIG", str(path))

    assert get_rate_limits("openai") == (5.0, 4)
    assert get_rate_limits("openai", "gpt-4o") == (1.0, 1)
    assert get_rate_limits("anthropic") == (2.0, 2)


def test_rate_limiter_env_override(monkeypatch):
    monkeypatch.setenv("NERDS_ANTHROPIC_RPS", "7.5")
    monkeypatch.setenv("NERDS_ANTHROPIC_BURST", "3")

    limiter = RateLimiter.for_provider("anthropic")
    assert limiter.rate == 7.5
    assert limiter.burst == 3
    limiter.acquire(timeout=1)
