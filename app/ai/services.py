"""
AI service for the assistant peer.

This module provides the AssistantResponder class, the adapter between
chat history and an AI provider. The delivery router treats it as an
opaque (prior messages, new content) -> reply text function.

Related files:
    - providers/: Provider implementations
    - chat/realtime/router.py: Calls reply() for messages addressed to
      the assistant account

Configuration:
    settings.CHAT_ASSISTANT:
    - PROVIDER: "openai" or "anthropic"
    - MODEL: Model name (provider default when empty)
    - SYSTEM_PROMPT: System prompt for every reply
    - HISTORY_LIMIT: Number of prior messages given as context
    - TIMEOUT_SECONDS: Upper bound on one completion
    - FALLBACK_REPLY: Sent when the provider fails or times out

Usage:
    from ai.services import AssistantResponder

    responder = AssistantResponder.from_settings()
    reply = await responder.reply(prior_messages, "Hello!", assistant_id=7)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Iterable

from django.conf import settings

from ai.providers import get_provider
from core.exceptions import ExternalServiceError

if TYPE_CHECKING:
    from ai.providers.base import BaseProvider

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are Nova, a friendly assistant inside a chat app. "
    "Answer concisely in plain text."
)
DEFAULT_FALLBACK_REPLY = "Sorry, I can't answer right now. Please try again later."


class AssistantResponder:
    """
    Produces the assistant's reply to a message.

    Attributes:
        provider: BaseProvider implementation
        model: Model name passed to the provider (None = provider default)
        system_prompt: System prompt for every completion
        history_limit: Prior messages included as context
        timeout: Seconds before the completion is abandoned
        fallback_reply: Text used when the provider fails
    """

    def __init__(
        self,
        provider: BaseProvider,
        model: str | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        history_limit: int = 20,
        timeout: float = 30.0,
        fallback_reply: str = DEFAULT_FALLBACK_REPLY,
    ):
        self.provider = provider
        self.model = model or None
        self.system_prompt = system_prompt
        self.history_limit = history_limit
        self.timeout = timeout
        self.fallback_reply = fallback_reply

    @classmethod
    def from_settings(cls) -> AssistantResponder | None:
        """
        Build a responder from settings.CHAT_ASSISTANT.

        Returns:
            None when no provider is configured, which disables the
            assistant peer (messages to it are then ordinary messages).
        """
        config = getattr(settings, "CHAT_ASSISTANT", {}) or {}
        provider_type = config.get("PROVIDER")
        if not provider_type:
            return None

        provider_kwargs = {}
        if config.get("API_KEY"):
            provider_kwargs["api_key"] = config["API_KEY"]

        return cls(
            provider=get_provider(provider_type, **provider_kwargs),
            model=config.get("MODEL"),
            system_prompt=config.get("SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
            history_limit=int(config.get("HISTORY_LIMIT", 20)),
            timeout=float(config.get("TIMEOUT_SECONDS", 30)),
            fallback_reply=config.get("FALLBACK_REPLY") or DEFAULT_FALLBACK_REPLY,
        )

    def build_conversation(
        self, prior_messages: Iterable, new_content: str, assistant_id
    ) -> list[dict]:
        """
        Map stored messages to provider turns.

        Args:
            prior_messages: Messages oldest first (objects with sender_id
                and content)
            new_content: The message being answered
            assistant_id: User id of the assistant account

        Returns:
            List of {"role", "content"} dicts ending with the user turn
        """
        prior = list(prior_messages)[-self.history_limit:] if self.history_limit else []
        turns = [
            {
                "role": "assistant" if message.sender_id == assistant_id else "user",
                "content": message.content,
            }
            for message in prior
        ]
        turns.append({"role": "user", "content": new_content})
        return turns

    async def reply(self, prior_messages: Iterable, new_content: str, assistant_id) -> str:
        """
        Return the assistant's reply text.

        Provider failures and timeouts yield the fallback reply, so the
        user always gets an answer.
        """
        turns = self.build_conversation(prior_messages, new_content, assistant_id)
        try:
            response = await asyncio.wait_for(
                self.provider.complete(
                    turns, system_prompt=self.system_prompt, model=self.model
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Assistant completion timed out after {self.timeout}s")
            return self.fallback_reply
        except ExternalServiceError as exc:
            logger.warning(f"Assistant completion failed: {exc}")
            return self.fallback_reply

        content = (response.get("content") or "").strip()
        if not content:
            logger.warning("Assistant completion returned empty content")
            return self.fallback_reply

        logger.debug(f"Assistant replied with {len(content)} characters")
        return content
