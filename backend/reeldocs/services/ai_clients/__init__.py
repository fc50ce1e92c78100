"""
AI Clients package for LLM and video-understanding providers.

This package provides a unified interface for different providers:
- ClaudeClient: Anthropic Claude API (documentation, translation)
- GeminiClient: Gemini API (video upload/understanding, text generation)

Usage:
    from reeldocs.services.ai_clients import BaseAIClient, ClaudeClient, GeminiClient

    # Type hint for any text client
    async def process(client: BaseAIClient) -> str:
        text, _usage = await client.generate("Hello")
        return text

    async with GeminiClient.from_settings(settings) as client:
        info = await client.submit(video_bytes, "video/mp4")
"""

from reeldocs.services.ai_clients.base import (
    AIClientConfig,
    AIClientConnectionError,
    AIClientError,
    AIClientResponseError,
    AIClientTimeoutError,
    BaseAIClient,
    BaseAIClientImpl,
    ChatUsage,
)
from reeldocs.services.ai_clients.claude_client import ClaudeClient
from reeldocs.services.ai_clients.gemini_client import GeminiClient

__all__ = [
    # Protocol and base classes
    "BaseAIClient",
    "BaseAIClientImpl",
    "AIClientConfig",
    "ChatUsage",
    # Errors
    "AIClientError",
    "AIClientTimeoutError",
    "AIClientConnectionError",
    "AIClientResponseError",
    # Implementations
    "ClaudeClient",
    "GeminiClient",
]
