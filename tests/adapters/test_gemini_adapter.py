"""Unit tests for GeminiAdapter."""

from unittest.mock import patch

import aiohttp
import pytest

from smarthome.adapters.llm.gemini_adapter import GeminiAdapter
from smarthome.config import GeminiConfig
from smarthome.domain.models import ConversationTurn
from smarthome.errors import UpstreamError


@pytest.fixture
def adapter():
    return GeminiAdapter(GeminiConfig(api_key="key123", model="gemini-test"))


def _gemini_text(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _mock_aiohttp_session(status=200, data=None, text="", raise_exc=None, captured=None):
    """Return a stand-in for aiohttp.ClientSession that serves one response."""

    class FakeResponse:
        reason = "Bad"

        def __init__(self):
            self.status = status

        async def json(self, content_type="application/json"):
            return data

        async def text(self):
            return text

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    class FakeSession:
        def __init__(self, **kwargs):
            pass

        def post(self, url, **kwargs):
            if captured is not None:
                captured["url"] = url
                captured.update(kwargs)
            if raise_exc:
                raise raise_exc
            return FakeResponse()

        async def __aenter__(self):
            return self

        async def __aexit__(self, *args):
            pass

    return FakeSession


class TestBuildBody:
    def test_history_roles_mapped(self, adapter):
        history = [
            ConversationTurn(role="user", content="hi"),
            ConversationTurn(role="assistant", content="hello"),
        ]
        body = adapter.build_body("PROMPT", history)
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["contents"][-1]["parts"] == [{"text": "PROMPT"}]
        assert body["generationConfig"] == {
            "temperature": 0.6,
            "topP": 0.9,
            "maxOutputTokens": 256,
        }


class TestResponseText:
    def test_extracts_first_part(self):
        assert GeminiAdapter.response_text(_gemini_text("hi")) == "hi"

    @pytest.mark.parametrize(
        "data",
        [{}, {"candidates": []}, {"candidates": [{"content": {}}]}, _gemini_text(""), None],
    )
    def test_missing_text(self, data):
        with pytest.raises(UpstreamError, match="No response from Gemini"):
            GeminiAdapter.response_text(data)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_success(self, adapter):
        captured = {}
        session = _mock_aiohttp_session(data=_gemini_text("Sure."), captured=captured)
        with patch("smarthome.adapters.llm.gemini_adapter.aiohttp.ClientSession", session):
            text = await adapter.generate("prompt", [])
        assert text == "Sure."
        assert captured["url"].endswith("/gemini-test:generateContent")
        assert captured["params"] == {"key": "key123"}
        assert captured["json"]["contents"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        adapter = GeminiAdapter(GeminiConfig(api_key=""))
        assert adapter.is_configured is False
        with pytest.raises(UpstreamError, match="not configured"):
            await adapter.generate("prompt", [])

    @pytest.mark.asyncio
    async def test_http_error(self, adapter):
        session = _mock_aiohttp_session(status=429, text="quota exceeded")
        with patch("smarthome.adapters.llm.gemini_adapter.aiohttp.ClientSession", session):
            with pytest.raises(UpstreamError) as exc_info:
                await adapter.generate("prompt", [])
        assert str(exc_info.value) == "Gemini error 429: quota exceeded"
        assert exc_info.value.status == 429

    @pytest.mark.asyncio
    async def test_http_error_empty_body_uses_reason(self, adapter):
        session = _mock_aiohttp_session(status=500, text="")
        with patch("smarthome.adapters.llm.gemini_adapter.aiohttp.ClientSession", session):
            with pytest.raises(UpstreamError, match="Gemini error 500: Bad"):
                await adapter.generate("prompt", [])

    @pytest.mark.asyncio
    async def test_network_error_wrapped(self, adapter):
        session = _mock_aiohttp_session(raise_exc=aiohttp.ClientConnectionError("refused"))
        with patch("smarthome.adapters.llm.gemini_adapter.aiohttp.ClientSession", session):
            with pytest.raises(UpstreamError, match="refused"):
                await adapter.generate("prompt", [])

    @pytest.mark.asyncio
    async def test_empty_candidates(self, adapter):
        session = _mock_aiohttp_session(data={"candidates": []})
        with patch("smarthome.adapters.llm.gemini_adapter.aiohttp.ClientSession", session):
            with pytest.raises(UpstreamError, match="No response"):
                await adapter.generate("prompt", [])
