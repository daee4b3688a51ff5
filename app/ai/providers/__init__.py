"""
AI provider implementations.

This package contains provider-specific implementations:
- base.py: BaseProvider protocol definition
- openai.py: OpenAI implementation
- anthropic.py: Anthropic (Claude) implementation

Provider Selection:
    Providers are selected by type string (e.g., "openai", "anthropic").
    Use get_provider() factory function.

Usage:
    from ai.providers import get_provider

    provider = get_provider("anthropic", default_model="claude-3-5-haiku-latest")
    response = await provider.complete([{"role": "user", "content": "Hello"}])

Adding New Providers:
    1. Create new file (e.g., google.py)
    2. Implement BaseProvider protocol
    3. Register in PROVIDERS dict below
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .anthropic import AnthropicProvider
from .openai import OpenAIProvider

if TYPE_CHECKING:
    from .base import BaseProvider

logger = logging.getLogger(__name__)

# Maps provider type string to provider class
PROVIDERS: dict[str, type] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}


def get_provider(provider_type: str, **kwargs) -> BaseProvider:
    """
    Get provider instance by type.

    Args:
        provider_type: Provider type string
        **kwargs: Provider configuration options

    Returns:
        Configured provider instance

    Raises:
        ValueError: If provider type unknown
    """
    provider_class = PROVIDERS.get(provider_type)
    if not provider_class:
        raise ValueError(f"Unknown provider type: {provider_type}")
    logger.debug(f"Using AI provider {provider_type}")
    return provider_class(**kwargs)


def list_providers() -> list[str]:
    """Get list of available provider types."""
    return list(PROVIDERS.keys())
