"""
OpenAI provider implementation.

Implements the BaseProvider protocol for the OpenAI chat completions API.

Configuration:
    Requires OPENAI_API_KEY environment variable or
    api_key parameter.

Usage:
    from ai.providers.openai import OpenAIProvider

    provider = OpenAIProvider()
    response = await provider.complete(
        [{"role": "user", "content": "Explain quantum computing"}],
        model="gpt-4o-mini",
    )
"""

from __future__ import annotations

import logging
import os
from typing import Any

from core.exceptions import ExternalServiceError

from .base import BaseProviderImpl

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProviderImpl):
    """
    OpenAI API provider.

    Attributes:
        api_key: OpenAI API key
        base_url: Optional custom endpoint (for Azure or compatible servers)
        default_model: Default model
        organization: Optional organization ID
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "gpt-4o-mini",
        organization: str | None = None,
    ):
        super().__init__(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            base_url=base_url,
            default_model=default_model,
        )
        self.organization = organization
        self._client = None

    def _get_client(self):
        """Get configured async OpenAI client (created once)."""
        if self._client is None:
            import openai

            client_kwargs = {"api_key": self.api_key}
            if self.base_url:
                client_kwargs["base_url"] = self.base_url
            if self.organization:
                client_kwargs["organization"] = self.organization

            self._client = openai.AsyncOpenAI(**client_kwargs)
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
        Generate OpenAI completion.

        Args:
            messages: Conversation turns, oldest first
            system_prompt: System message
            model: Model (default: gpt-4o-mini)
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum response tokens
            **kwargs: Additional API options (top_p, stop, ...)

        Returns:
            Response dict with content, model, usage
        """
        import openai

        model = self._get_model(model)
        payload = []
        if system_prompt:
            payload.append({"role": "system", "content": system_prompt})
        payload.extend(self._merge_turns(messages))

        try:
            response = await self._get_client().chat.completions.create(
                model=model,
                messages=payload,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.OpenAIError as exc:
            logger.warning(f"OpenAI completion failed: {exc}")
            raise ExternalServiceError(
                "AI provider request failed",
                error_code="AI_PROVIDER_ERROR",
                details={"provider": "openai"},
            ) from exc

        choice = response.choices[0]
        usage = response.usage
        return {
            "content": choice.message.content or "",
            "model": response.model,
            "usage": {
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
            },
            "finish_reason": choice.finish_reason,
        }
