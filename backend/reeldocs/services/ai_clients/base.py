"""
Shared contract of the text-generation clients.

Documentation generation and translation only need "prompt in, text
and token usage out". ClaudeClient and GeminiClient both satisfy
BaseAIClient, so the model name in settings decides which one serves a
stage (see ProcessingStrategy).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


# ═══════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════


class AIClientError(Exception):
    """
    A provider call failed.

    Attributes:
        message: Error description
        provider: "claude" or "gemini"
        model: Model of the failed call
        original_error: Exception raised by the transport or SDK
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        labels = {"provider": self.provider, "model": self.model}
        details = [f"{key}={value}" for key, value in labels.items() if value]
        return " | ".join([self.message, *details])


class AIClientTimeoutError(AIClientError):
    pass


class AIClientConnectionError(AIClientError):
    pass


class AIClientResponseError(AIClientError):
    """The provider answered with an error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response_body = response_body


# ═══════════════════════════════════════════════════════════════════════════
# Configuration and usage
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class AIClientConfig:
    """
    Connection settings of one provider client.

    Attributes:
        base_url: API root
        timeout: Request timeout in seconds (video analysis calls are slow)
        api_key: Provider API key
        max_retries: Retries of transient failures inside the SDK
    """

    base_url: str
    timeout: float = 300.0
    api_key: str | None = None
    max_retries: int = 3


@dataclass
class ChatUsage:
    """Tokens billed for one call; zeros when the provider reports nothing."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


# ═══════════════════════════════════════════════════════════════════════════
# Client interface
# ═══════════════════════════════════════════════════════════════════════════


@runtime_checkable
class BaseAIClient(Protocol):
    """
    What DocGenerator and Translator call.

    Example:
        text, usage = await client.generate(prompt, model="claude-sonnet-4-5", json_mode=True)
        logger.info(f"{usage.total_tokens} tokens")
    """

    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        num_predict: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, ChatUsage]:
        """
        Single-prompt generation.

        Args:
            prompt: Complete prompt text
            model: Model name (client default if None)
            num_predict: Output token limit (client default if None)
            json_mode: Ask for a bare JSON answer

        Raises:
            AIClientError: If the call fails
        """
        ...

    async def chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float = 0.7,
        num_predict: int | None = None,
    ) -> tuple[str, ChatUsage]:
        """Generation over a message list ({"role", "content"} dicts)."""
        ...

    async def close(self) -> None:
        ...


class BaseAIClientImpl(ABC):
    """Base of the concrete clients; adds ``async with`` support."""

    def __init__(self, config: AIClientConfig):
        self.config = config

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        num_predict: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, ChatUsage]:
        pass

    @abstractmethod
    async def chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float = 0.7,
        num_predict: int | None = None,
    ) -> tuple[str, ChatUsage]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "BaseAIClientImpl":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
