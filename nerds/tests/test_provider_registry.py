from __future__ import annotations

import pytest

from nerds.errors import ProviderNotFoundError
from nerds.provider import anthropic_messages, gemini_google, mock, openai_chat, registry
from nerds.provider.factory import get_chat_adapter
from nerds.provider.utils import infer_provider_from_model, normalize_provider, strip_provider_prefix


def test_registry_maps_aliases_case_insensitively():
    assert registry.get_chat_fn("openai") is openai_chat.chat
    assert registry.get_chat_fn("OPEN_AI") is openai_chat.chat
    assert registry.get_chat_fn("claude") is anthropic_messages.chat
    assert registry.get_chat_fn("Gemini") is gemini_google.chat


def test_registry_lists_providers_and_errors_on_unknown():
    providers = registry.list_registered_providers()
    assert set(providers) >= {"openai", "anthropic", "google", "mock"}
    assert "gpt" in providers["openai"]
    assert "open_ai" in registry.list_registered_aliases()

    with pytest.raises(ProviderNotFoundError):
        registry.get_chat_fn("totally-unknown")
    with pytest.raises(ValueError):
        registry.get_chat_fn("  ")


def test_registry_rejects_conflicting_alias():
    with pytest.raises(ValueError, match="already registered"):
        registry.register_chat_fn(aliases=("openai",), fn=lambda *a, **k: None)


def test_factory_switches_to_mock():
    assert get_chat_adapter(provider="anthropic", provider_mode="MOCK") is mock.chat_mock
    assert get_chat_adapter(provider="anthropic") is anthropic_messages.chat


@pytest.mark.parametrize(
    "model, provider",
    [
        ("gpt-4o", "openai"),
        ("gpt-3.5-turbo-instruct", "openai"),
        ("claude-3-opus-20240229", "anthropic"),
        ("gemini-1.5-pro", "google"),
        ("anthropic:my-finetune", "anthropic"),
        ("llama-3", None),
    ],
)
def test_infer_provider_from_model(model, provider):
    assert infer_provider_from_model(model) == provider


def test_platform_spellings_normalize():
    assert normalize_provider("OPEN_AI") == "openai"
    assert normalize_provider("GEMINI") == "google"
    assert normalize_provider("") is None
    assert strip_provider_prefix("openai:gpt-4o") == "gpt-4o"
    assert strip_provider_prefix("gpt-4o") == "gpt-4o"
