"""
Base provider protocol definition.

Defines the interface that all AI providers must implement.
Uses Python Protocol for structural subtyping.

Usage:
    from ai.providers.base import BaseProvider

    class MyProvider(BaseProvider):
        async def complete(self, messages, **kwargs):
            ...
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class BaseProvider(Protocol):
    """
    Protocol for AI provider implementations.

    Required Methods:
        complete: Asynchronous multi-turn completion

    Message Format:
        [{"role": "user" | "assistant", "content": str}, ...]
        oldest first, ending with the user turn to answer.

    Response Format:
        complete() should return:
        {
            "content": str,  # Response text
            "model": str,  # Model used
            "usage": {
                "prompt_tokens": int,
                "completion_tokens": int,
            },
            "finish_reason": str,  # "stop", "length", etc.
        }
    """

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
        Generate AI completion for a conversation.

        Args:
            messages: Conversation turns, oldest first
            system_prompt: Optional system message
            model: Model to use
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum response tokens
            **kwargs: Provider-specific options

        Returns:
            Response dict with content, model, usage

        Raises:
            ExternalServiceError: The provider API failed
        """
        ...


class BaseProviderImpl:
    """
    Base implementation with shared functionality.

    Attributes:
        api_key: API key for authentication
        base_url: Optional custom API endpoint
        default_model: Default model if not specified
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model

    def _get_model(self, model: str | None) -> str:
        """Get model, using default if not specified."""
        return model or self.default_model or ""

    @staticmethod
    def _merge_turns(messages: list[dict]) -> list[dict]:
        """
        Collapse consecutive turns of the same role and drop leading
        assistant turns, so the list alternates and starts with the user.
        """
        merged: list[dict] = []
        for message in messages:
            content = (message.get("content") or "").strip()
            if not content:
                continue
            role = message["role"]
            if not merged and role != "user":
                continue
            if merged and merged[-1]["role"] == role:
                merged[-1]["content"] = f"{merged[-1]['content']}\n\n{content}"
            else:
                merged.append({"role": role, "content": content})
        return merged
