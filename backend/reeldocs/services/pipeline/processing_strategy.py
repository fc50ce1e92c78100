"""
Processing strategy for selecting the AI provider of a model.

Determines which AI client serves a model name and keeps one client
per provider for the lifetime of the application.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from reeldocs.config import Settings
from reeldocs.services.ai_clients import BaseAIClient, ClaudeClient, GeminiClient

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """AI provider types."""

    ANTHROPIC = "anthropic"  # Claude API
    GOOGLE = "google"  # Gemini API


@dataclass
class ProviderInfo:
    """
    Information about AI provider.

    Attributes:
        type: Provider type
        name: Human-readable name
        configured: Whether the provider's API key is set
    """

    type: ProviderType
    name: str
    configured: bool = False


class ProcessingStrategy:
    """
    Strategy for selecting AI providers based on model name.

    Model naming convention:
    - Models starting with "claude" use the Claude API
    - Models starting with "gemini" use the Gemini API

    Example:
        strategy = ProcessingStrategy(settings)
        client = strategy.get_client("claude-sonnet-4-5")
        text, usage = await client.generate("...")
        await strategy.close()
    """

    MODEL_PREFIXES = {
        "claude": ProviderType.ANTHROPIC,
        "gemini": ProviderType.GOOGLE,
    }

    def __init__(self, settings: Settings):
        """
        Initialize processing strategy.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self._clients: dict[ProviderType, BaseAIClient] = {}

    def get_provider_type(self, model: str) -> ProviderType:
        """
        Determine provider type for a model.

        Args:
            model: Model name (e.g., "claude-sonnet-4-5", "gemini-2.5-flash")

        Returns:
            Provider type

        Raises:
            ValueError: If the model belongs to no known provider
        """
        model_lower = model.lower()
        for prefix, provider in self.MODEL_PREFIXES.items():
            if model_lower.startswith(prefix):
                return provider
        raise ValueError(f"Unknown model provider for '{model}'")

    def providers(self) -> dict[ProviderType, ProviderInfo]:
        """Report which providers have credentials configured."""
        return {
            ProviderType.ANTHROPIC: ProviderInfo(
                type=ProviderType.ANTHROPIC,
                name="Claude API",
                configured=bool(self.settings.anthropic_api_key),
            ),
            ProviderType.GOOGLE: ProviderInfo(
                type=ProviderType.GOOGLE,
                name="Gemini API",
                configured=bool(self.settings.gemini_api_key),
            ),
        }

    def create_client(self, model: str) -> BaseAIClient:
        """
        Create a new AI client for the specified model.

        Args:
            model: Model name (determines provider type)

        Returns:
            AI client; caller owns it and must close it

        Raises:
            ValueError: If the provider's API key is not set
        """
        provider = self.get_provider_type(model)

        if provider == ProviderType.ANTHROPIC:
            return ClaudeClient.from_settings(self.settings, default_model=model)
        return GeminiClient.from_settings(self.settings, default_model=model)

    def get_client(self, model: str) -> BaseAIClient:
        """
        Get the shared client of the model's provider, creating it on first use.

        Args:
            model: Model name

        Returns:
            Shared AI client (closed by close())
        """
        provider = self.get_provider_type(model)
        if provider not in self._clients:
            self._clients[provider] = self.create_client(model)
            logger.debug(f"Created {provider.value} client for {model}")
        return self._clients[provider]

    async def close(self) -> None:
        """Close all shared clients."""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
