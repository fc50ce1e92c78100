"""
Claude API client.

Serves documentation generation and translation when docs_model or
translation_model is a Claude model. Retries of transient failures are
left to the anthropic SDK (``max_retries``).
"""

import logging

from anthropic import APIConnectionError, APIStatusError, APITimeoutError, AsyncAnthropic

from reeldocs.config import Settings
from reeldocs.services.ai_clients.base import (
    AIClientConfig,
    AIClientConnectionError,
    AIClientError,
    AIClientResponseError,
    AIClientTimeoutError,
    BaseAIClientImpl,
    ChatUsage,
)

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"

# A full video's documentation easily exceeds 4K tokens
DEFAULT_MAX_TOKENS = 16000

JSON_ONLY_INSTRUCTION = "Respond with valid JSON only. No markdown fences, no commentary."


class ClaudeClient(BaseAIClientImpl):
    """
    Async Claude client.

    Example:
        async with ClaudeClient.from_settings(settings) as client:
            text, usage = await client.generate(prompt, json_mode=True)
    """

    def __init__(
        self,
        config: AIClientConfig,
        default_model: str = DEFAULT_CLAUDE_MODEL,
        sdk_client: AsyncAnthropic | None = None,
    ):
        """
        Args:
            config: API key, timeout and retry count
            default_model: Model used when a call does not name one
            sdk_client: Pre-built SDK client (tests)

        Raises:
            ValueError: If no API key is configured
        """
        super().__init__(config)
        if not config.api_key:
            raise ValueError("ClaudeClient requires API key. Set ANTHROPIC_API_KEY.")

        self.default_model = default_model
        self.client = sdk_client or AsyncAnthropic(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )
        logger.info(f"ClaudeClient initialized, model: {default_model}")

    @classmethod
    def from_settings(cls, settings: Settings, default_model: str | None = None) -> "ClaudeClient":
        config = AIClientConfig(
            base_url="https://api.anthropic.com",
            api_key=settings.anthropic_api_key,
            timeout=settings.llm_timeout,
        )
        return cls(config, default_model=default_model or settings.docs_model)

    async def close(self) -> None:
        await self.client.close()
        logger.debug("ClaudeClient closed")

    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        num_predict: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, ChatUsage]:
        """
        Generate from one user prompt.

        The Messages API has no JSON response format, so ``json_mode``
        becomes a system instruction and a lower temperature.
        """
        messages = [{"role": "user", "content": prompt}]
        if json_mode:
            messages.insert(0, {"role": "system", "content": JSON_ONLY_INSTRUCTION})
        return await self.chat(
            messages,
            model=model,
            temperature=0.3 if json_mode else 0.7,
            num_predict=num_predict,
        )

    async def chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float = 0.7,
        num_predict: int | None = None,
    ) -> tuple[str, ChatUsage]:
        """
        Messages API call.

        All "system" messages are joined into the ``system`` parameter.

        Raises:
            AIClientError: If the request fails
        """
        model = model or self.default_model
        system, conversation = split_system_messages(messages)

        request = {
            "model": model,
            "max_tokens": num_predict or DEFAULT_MAX_TOKENS,
            "temperature": temperature,
            "messages": conversation,
        }
        if system:
            request["system"] = system

        logger.debug(f"Claude request: model={model}, messages={len(conversation)}")

        try:
            response = await self.client.messages.create(**request)
        except (APITimeoutError, APIConnectionError, APIStatusError) as e:
            raise _map_error(e, model) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = ChatUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        logger.info(f"Claude response: {len(text)} chars, {usage.input_tokens} in / {usage.output_tokens} out")
        return text, usage


def split_system_messages(messages: list[dict]) -> tuple[str, list[dict]]:
    """Separate system instructions from the user/assistant turns."""
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    conversation = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m["role"] != "system"
    ]
    return "\n\n".join(system_parts), conversation


def _map_error(error: Exception, model: str) -> AIClientError:
    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(error, APITimeoutError):
        logger.error(f"Claude timeout with {model}")
        return AIClientTimeoutError("Claude request timeout", provider="claude", model=model, original_error=error)

    if isinstance(error, APIStatusError):
        logger.error(f"Claude API error: {error.status_code} - {error.message}")
        return AIClientResponseError(
            f"Claude API error: {error.message}",
            provider="claude",
            model=model,
            status_code=error.status_code,
            response_body=str(error.body) if error.body else None,
            original_error=error,
        )

    logger.error(f"Claude connection error: {error}")
    return AIClientConnectionError(
        f"Cannot connect to Claude API: {error}",
        provider="claude",
        model=model,
        original_error=error,
    )
