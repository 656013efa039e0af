"""Tests for llm.py chat-completions wrapper."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import APIConnectionError, APIStatusError

from careahead.baseline import BaselineSettings
from careahead.config import DEFAULT_BASE_URL, Config
from careahead.exceptions import ConfigurationError, GenerationError
from careahead.llm import LLM, make_llm

REQUEST = httpx.Request("POST", "https://example.test/v1/chat/completions")


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _llm(create: AsyncMock) -> LLM:
    client = MagicMock()
    client.chat.completions.create = create
    return LLM(client=client, model="test-model")


def _config(**overrides) -> Config:
    values = dict(
        base_url=DEFAULT_BASE_URL,
        api_key="test-key",
        model_id="test-model",
        temperature=0.4,
        max_tokens=2048,
        timeout=30.0,
        history_path=Path("vitals.csv"),
        response_format="json",
        history_window=60,
        prompt_days=30,
        reveal_steps=0,
        baseline=BaselineSettings(),
    )
    values.update(overrides)
    return Config(**values)


@pytest.mark.asyncio
class TestLLMCall:
    """Tests for LLM.__call__()."""

    async def test_returns_trimmed_text(self):
        create = AsyncMock(return_value=_completion("  {\"introduction\": \"Hi\"}\n"))
        text = await _llm(create)("prompt")
        assert text == '{"introduction": "Hi"}'
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["max_tokens"] == 2048

    async def test_empty_content_raises(self):
        with pytest.raises(GenerationError, match="empty response"):
            await _llm(AsyncMock(return_value=_completion("   ")))("prompt")

    async def test_no_choices_raises(self):
        with pytest.raises(GenerationError, match="empty response"):
            await _llm(AsyncMock(return_value=SimpleNamespace(choices=[])))("prompt")

    async def test_http_error_maps_status(self):
        response = httpx.Response(503, request=REQUEST)
        error = APIStatusError("Service unavailable", response=response, body=None)
        with pytest.raises(GenerationError) as exc_info:
            await _llm(AsyncMock(side_effect=error))("prompt")
        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "Language model HTTP 503: Service unavailable"
        assert exc_info.value.cause is error

    async def test_connection_error(self):
        error = APIConnectionError(request=REQUEST)
        with pytest.raises(GenerationError, match="Could not reach"):
            await _llm(AsyncMock(side_effect=error))("prompt")


class TestMakeLLM:
    """Tests for make_llm()."""

    def test_builds_from_config(self):
        llm = make_llm(_config(temperature=0.1, max_tokens=512))
        assert llm.model == "test-model"
        assert llm.temperature == 0.1
        assert llm.max_tokens == 512
        assert str(llm.client.base_url) == DEFAULT_BASE_URL

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError, match="API key"):
            make_llm(_config(api_key=""))
