"""Tests for LLM clients, the retry decorator and client factories."""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import anthropic
import httpx
import openai
import pytest

from district_twins.config import Settings
from district_twins.exceptions import LLMGenerationError
from district_twins.llm_client import (
    AnthropicClient,
    GenerationConfig,
    GroqClient,
    MockLLMClient,
    create_client_from_settings,
    create_llm_client,
    with_retry,
)


def _status_error(cls, status_code):
    request = httpx.Request("POST", "https://example.invalid/v1")
    response = httpx.Response(status_code, request=request)
    return cls("error", response=response, body=None)


class TestWithRetry:
    """Tests for the retry decorator."""

    @patch("district_twins.llm_client.time.sleep")
    def test_retries_only_retryable_errors(self, mock_sleep):
        calls = []

        @with_retry(max_retries=3, backoff_factor=2.0)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise LLMGenerationError("rate limited", retryable=True, status_code=429)
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("district_twins.llm_client.time.sleep")
    def test_non_retryable_raises_immediately(self, mock_sleep):
        calls = []

        @with_retry(max_retries=3)
        def broken():
            calls.append(1)
            raise LLMGenerationError("bad request", retryable=False, status_code=400)

        with pytest.raises(LLMGenerationError):
            broken()
        assert len(calls) == 1
        mock_sleep.assert_not_called()

    @patch("district_twins.llm_client.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        @with_retry(max_retries=2)
        def always_limited():
            raise LLMGenerationError("rate limited", retryable=True)

        with pytest.raises(LLMGenerationError):
            always_limited()
        assert mock_sleep.call_count == 1


class TestMockLLMClient:
    """Tests for MockLLMClient."""

    def test_default_response_is_empty(self):
        client = MockLLMClient()
        assert client.generate("hello") == ""
        assert client.calls[0]["prompt"] == "hello"

    def test_queued_responses(self):
        client = MockLLMClient(response="fallback", responses=["one", "two"])
        assert [client.generate("p") for _ in range(3)] == ["one", "two", "fallback"]

    def test_records_system_prompt(self):
        client = MockLLMClient(response="x")
        config = GenerationConfig(max_tokens=50)
        client.generate("p", config, system_prompt="be brief")
        assert client.calls[0]["system_prompt"] == "be brief"
        assert client.calls[0]["config"].max_tokens == 50


class TestAnthropicClient:
    """Tests for AnthropicClient error mapping."""

    def _client(self):
        client = AnthropicClient(api_key="test-key")
        client.client = Mock()
        return client

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError):
            AnthropicClient()

    def test_returns_text_blocks(self):
        client = self._client()
        client.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="  [] ")]
        )
        assert client.generate("prompt", system_prompt="sys") == "[]"
        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @patch("district_twins.llm_client.time.sleep")
    def test_rate_limit_is_retried(self, mock_sleep):
        client = self._client()
        client.client.messages.create.side_effect = [
            _status_error(anthropic.RateLimitError, 429),
            SimpleNamespace(content=[SimpleNamespace(type="text", text="hello")]),
        ]
        assert client.generate("prompt") == "hello"
        assert client.client.messages.create.call_count == 2

    @patch("district_twins.llm_client.time.sleep")
    def test_server_error_not_retried(self, mock_sleep):
        client = self._client()
        client.client.messages.create.side_effect = _status_error(anthropic.InternalServerError, 500)

        with pytest.raises(LLMGenerationError) as exc_info:
            client.generate("prompt")
        assert exc_info.value.status_code == 500
        assert not exc_info.value.retryable
        assert client.client.messages.create.call_count == 1

    def test_empty_content_raises(self):
        client = self._client()
        client.client.messages.create.return_value = SimpleNamespace(content=[])
        with pytest.raises(LLMGenerationError):
            client.generate("prompt")


class TestGroqClient:
    """Tests for GroqClient error mapping."""

    def _client(self):
        client = GroqClient(api_key="test-key")
        client.client = Mock()
        return client

    def _completion(self, content):
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

    def test_returns_message_content(self):
        client = self._client()
        client.client.chat.completions.create.return_value = self._completion("hi there")
        assert client.generate("prompt") == "hi there"
        messages = client.client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0]["role"] == "system"

    @patch("district_twins.llm_client.time.sleep")
    def test_rate_limit_exhausts_retries(self, mock_sleep):
        client = self._client()
        client.client.chat.completions.create.side_effect = _status_error(openai.RateLimitError, 429)

        with pytest.raises(LLMGenerationError) as exc_info:
            client.generate("prompt")
        assert exc_info.value.status_code == 429
        assert client.client.chat.completions.create.call_count == 3

    def test_bad_request_not_retried(self):
        client = self._client()
        client.client.chat.completions.create.side_effect = _status_error(openai.BadRequestError, 400)
        with pytest.raises(LLMGenerationError):
            client.generate("prompt")
        assert client.client.chat.completions.create.call_count == 1

    def test_empty_choices_raise(self):
        client = self._client()
        client.client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(LLMGenerationError):
            client.generate("prompt")


class TestFactories:
    """Tests for client factories."""

    def test_create_mock(self):
        assert isinstance(create_llm_client("mock"), MockLLMClient)

    def test_create_unknown(self):
        with pytest.raises(ValueError):
            create_llm_client("nonexistent")

    def test_create_groq(self):
        client = create_llm_client("groq", api_key="k", model="llama-3.1-70b-versatile")
        assert isinstance(client, GroqClient)
        assert client.model == "llama-3.1-70b-versatile"

    def test_settings_without_key_use_mock(self):
        settings = Settings(llm_provider="anthropic", anthropic_api_key=None)
        assert isinstance(create_client_from_settings(settings), MockLLMClient)

    def test_settings_with_key(self):
        settings = Settings(llm_provider="anthropic", anthropic_api_key="k")
        client = create_client_from_settings(settings)
        assert isinstance(client, AnthropicClient)
