"""
AI app for the assistant peer.

This app handles:
- Multi-provider AI abstraction (OpenAI, Anthropic)
- AssistantResponder: turns a conversation into the assistant's reply

Related apps:
    - chat: The delivery router hands messages addressed to the assistant
      account to AssistantResponder and sends the reply back as an
      ordinary message

Provider Architecture:
    Uses protocol-based abstraction for AI providers.
    See providers/ for implementations.

Usage:
    from ai.services import AssistantResponder

    responder = AssistantResponder.from_settings()
    reply = await responder.reply(prior_messages, "Hello!", assistant_id)
"""
