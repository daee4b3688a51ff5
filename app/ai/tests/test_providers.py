"""
Tests for AI providers.

The SDK clients are replaced with small fakes assigned to _client, so
no network request is made.
"""

from types import SimpleNamespace

import anthropic
import openai
import pytest

from ai.providers import get_provider, list_providers
from ai.providers.anthropic import AnthropicProvider
from ai.providers.base import BaseProvider, BaseProviderImpl
from ai.providers.openai import OpenAIProvider
from core.exceptions import ExternalServiceError


class FakeCreate:
    """Async callable recording its kwargs and returning or raising."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    async def __call__(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return self.response


def fake_openai_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def fake_anthropic_client(create):
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def openai_response(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")],
        model="gpt-4o-mini",
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )


def anthropic_response(*texts):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text) for text in texts],
        model="claude-3-5-haiku-latest",
        usage=SimpleNamespace(input_tokens=12, output_tokens=3),
        stop_reason="end_turn",
    )


class TestRegistry:
    def test_list_providers(self):
        assert set(list_providers()) == {"openai", "anthropic"}

    def test_get_provider_passes_options(self):
        provider = get_provider("anthropic", api_key="key", default_model="claude-x")

        assert isinstance(provider, AnthropicProvider)
        assert provider.api_key == "key"
        assert provider.default_model == "claude-x"

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            get_provider("carrier-pigeon")

    def test_providers_satisfy_protocol(self):
        assert isinstance(OpenAIProvider(api_key="k"), BaseProvider)
        assert isinstance(AnthropicProvider(api_key="k"), BaseProvider)


class TestMergeTurns:
    def test_consecutive_roles_are_merged(self):
        merged = BaseProviderImpl._merge_turns(
            [
                {"role": "user", "content": "Hi"},
                {"role": "user", "content": "Are you there?"},
                {"role": "assistant", "content": "Yes"},
            ]
        )

        assert merged == [
            {"role": "user", "content": "Hi\n\nAre you there?"},
            {"role": "assistant", "content": "Yes"},
        ]

    def test_leading_assistant_and_blank_turns_dropped(self):
        merged = BaseProviderImpl._merge_turns(
            [
                {"role": "assistant", "content": "Welcome!"},
                {"role": "user", "content": "  "},
                {"role": "user", "content": "Hello"},
            ]
        )

        assert merged == [{"role": "user", "content": "Hello"}]

    def test_model_falls_back_to_default(self):
        provider = BaseProviderImpl(default_model="base")

        assert provider._get_model(None) == "base"
        assert provider._get_model("other") == "other"


class TestOpenAIProvider:
    async def test_complete_sends_system_prompt_first(self):
        create = FakeCreate(response=openai_response("Hello!"))
        provider = OpenAIProvider(api_key="k")
        provider._client = fake_openai_client(create)

        result = await provider.complete(
            [{"role": "user", "content": "Hi"}], system_prompt="Be nice"
        )

        assert result["content"] == "Hello!"
        assert result["usage"] == {"prompt_tokens": 12, "completion_tokens": 3}
        assert create.kwargs["messages"][0] == {"role": "system", "content": "Be nice"}
        assert create.kwargs["model"] == "gpt-4o-mini"

    async def test_sdk_error_becomes_external_service_error(self):
        provider = OpenAIProvider(api_key="k")
        provider._client = fake_openai_client(FakeCreate(error=openai.OpenAIError("boom")))

        with pytest.raises(ExternalServiceError) as exc_info:
            await provider.complete([{"role": "user", "content": "Hi"}])

        assert exc_info.value.error_code == "AI_PROVIDER_ERROR"


class TestAnthropicProvider:
    async def test_complete_joins_text_blocks(self):
        create = FakeCreate(response=anthropic_response("Hello", " there"))
        provider = AnthropicProvider(api_key="k")
        provider._client = fake_anthropic_client(create)

        result = await provider.complete(
            [{"role": "user", "content": "Hi"}], system_prompt="Be nice", temperature=1.5
        )

        assert result["content"] == "Hello there"
        assert result["finish_reason"] == "end_turn"
        assert create.kwargs["system"] == "Be nice"
        assert create.kwargs["temperature"] == 1.0

    async def test_sdk_error_becomes_external_service_error(self):
        provider = AnthropicProvider(api_key="k")
        provider._client = fake_anthropic_client(
            FakeCreate(error=anthropic.AnthropicError("boom"))
        )

        with pytest.raises(ExternalServiceError):
            await provider.complete([{"role": "user", "content": "Hi"}])
