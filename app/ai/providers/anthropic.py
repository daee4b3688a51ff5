"""
Anthropic (Claude) provider implementation.

Implements the BaseProvider protocol for the Anthropic Messages API.

Configuration:
    Requires ANTHROPIC_API_KEY environment variable or
    api_key parameter.

Usage:
    from ai.providers.anthropic import AnthropicProvider

    provider = AnthropicProvider()
    response = await provider.complete(
        [{"role": "user", "content": "Explain quantum computing"}],
    )
"""

from __future__ import annotations

import logging
import os
from typing import Any

from core.exceptions import ExternalServiceError

from .base import BaseProviderImpl

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProviderImpl):
    """
    Anthropic (Claude) API provider.

    Note:
        Anthropic API has different message format than OpenAI.
        System prompt is passed separately, not in messages, and turns
        must alternate starting with the user.

    Attributes:
        api_key: Anthropic API key
        default_model: Default model
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "claude-3-5-haiku-latest",
    ):
        super().__init__(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY"),
            base_url=base_url,
            default_model=default_model,
        )
        self._client = None

    def _get_client(self):
        """Get configured async Anthropic client (created once)."""
        if self._client is None:
            import anthropic

            client_kwargs = {"api_key": self.api_key}
            if self.base_url:
                client_kwargs["base_url"] = self.base_url

            self._client = anthropic.AsyncAnthropic(**client_kwargs)
        return self._client

    async def complete(
        self,
        messages: list[dict],
        system_prompt: str | None = None,
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        **kwargs: Any,
    ) -> dict:
        """
        Generate Claude completion.

        Args:
            messages: Conversation turns, oldest first
            system_prompt: System prompt (passed as the system parameter)
            model: Model
            temperature: Sampling temperature (0-1)
            max_tokens: Maximum response tokens
            **kwargs: Additional API options

        Returns:
            Response dict with content, model, usage
        """
        import anthropic

        request = {
            "model": self._get_model(model),
            "messages": self._merge_turns(messages),
            "temperature": min(temperature, 1.0),
            "max_tokens": max_tokens,
            **kwargs,
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self._get_client().messages.create(**request)
        except anthropic.AnthropicError as exc:
            logger.warning(f"Anthropic completion failed: {exc}")
            raise ExternalServiceError(
                "AI provider request failed",
                error_code="AI_PROVIDER_ERROR",
                details={"provider": "anthropic"},
            ) from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return {
            "content": text,
            "model": response.model,
            "usage": {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
            },
            "finish_reason": response.stop_reason,
        }
