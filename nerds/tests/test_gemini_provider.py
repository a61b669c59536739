from __future__ import annotations

import json

import pytest
import requests

from nerds.errors import UpstreamProviderError
from nerds.provider import gemini_google
from nerds.provider.base import ChatMessage, GenerationOptions


class _FakeResponse:
    status_code = 200

    def __init__(self, text: str = '{"findings": []}'):
        self._payload = {
            "modelVersion": "gemini-1.5-pro-002",
            "responseId": "resp-123",
            "candidates": [{"content": {"parts": [{"text": text}]}}],
            "usageMetadata": {"promptTokenCount": 200, "candidatesTokenCount": 80, "totalTokenCount": 280},
        }

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _ErrorResponse:
    def __init__(self, *, status: int = 403, message: str = "permission denied"):
        self.status_code = status
        self._body = json.dumps({"error": {"message": message, "status": "PERMISSION_DENIED"}})

    def raise_for_status(self):
        raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return json.loads(self._body)

    @property
    def text(self):
        return self._body


def test_gemini_payload_and_telemetry(monkeypatch: pytest.MonkeyPatch, context, limiter):
    monkeypatch.setenv("GEMINI_API_KEY", "secret-key")
    called = {}

    def fake_post(url, params=None, json=None, timeout=None):
        called.update(url=url, params=params, json=json)
        return _FakeResponse()

    monkeypatch.setattr(gemini_google.requests, "post", fake_post)

    turn = gemini_google.chat(
        [ChatMessage("system", "sys"), ChatMessage("user", "hello")],
        GenerationOptions(model_name="gemini-1.5-pro-latest", response_mime_type="application/json"),
        context=context,
    )

    assert limiter.count == 1
    assert called["url"].endswith("/models/gemini-1.5-pro-latest:generateContent")
    assert called["params"]["key"] == "secret-key"
    assert called["json"]["system_instruction"]["parts"] == [{"text": "sys"}]
    assert called["json"]["contents"] == [{"role": "user", "parts": [{"text": "hello"}]}]
    assert called["json"]["generationConfig"]["response_mime_type"] == "application/json"
    assert turn.text == '{"findings": []}'
    assert turn.telemetry.api_model == "gemini-1.5-pro-002"
    assert turn.telemetry.tokens_in == 200
    assert turn.telemetry.tokens_out == 80


def test_gemini_omits_mime_type_for_freeform(monkeypatch, context):
    monkeypatch.setenv("GEMINI_API_KEY", "secret-key")
    called = {}

    def fake_post(url, params=None, json=None, timeout=None):
        called["json"] = json
        return _FakeResponse("# Notes")

    monkeypatch.setattr(gemini_google.requests, "post", fake_post)
    gemini_google.chat([ChatMessage("user", "hi")], GenerationOptions(model_name="gemini-1.5-pro-latest"), context=context)

    assert "response_mime_type" not in called["json"]["generationConfig"]
    assert "system_instruction" not in called["json"]


def test_gemini_http_error_is_surfaced(monkeypatch, context):
    monkeypatch.setenv("GEMINI_API_KEY", "secret-key")
    resp = _ErrorResponse(status=403, message="Permission denied for this model")
    monkeypatch.setattr(gemini_google.requests, "post", lambda *a, **k: resp)

    with pytest.raises(UpstreamProviderError) as excinfo:
        gemini_google.chat([ChatMessage("user", "hi")], GenerationOptions(model_name="gemini-1.5-pro-latest"), context=context)

    message = str(excinfo.value)
    assert "HTTP 403" in message
    assert "Permission denied for this model" in message


def test_gemini_requires_api_key(monkeypatch, context):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    with pytest.raises(UpstreamProviderError, match="GEMINI_API_KEY"):
        gemini_google.chat([ChatMessage("user", "hi")], GenerationOptions(model_name="gemini-1.5-pro-latest"), context=context)
