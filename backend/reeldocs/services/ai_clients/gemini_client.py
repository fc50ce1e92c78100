"""
Gemini API client on the google-genai SDK.

- Files API: video upload and state polling
- generate_content: text generation, optionally grounded on an uploaded file

Implements BaseAIClient protocol, so Gemini models can also be used for
documentation generation and translation.
"""

import io
import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from reeldocs.config import Settings
from reeldocs.models.schemas import VideoFileInfo, VideoFileState
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

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

# Errors raised by the SDK and its httpx transport
SDK_ERRORS = (genai_errors.APIError, httpx.TransportError)

# Transient failures, already mapped to AIClient errors, are retried
RETRY_DECORATOR = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=60),
    retry=retry_if_exception_type((AIClientConnectionError, AIClientTimeoutError)),
    reraise=True,
)

# Files API state -> local state
FILE_STATES = {
    "STATE_UNSPECIFIED": VideoFileState.PROCESSING,
    "PROCESSING": VideoFileState.PROCESSING,
    "ACTIVE": VideoFileState.READY,
    "FAILED": VideoFileState.FAILED,
}


class GeminiClient(BaseAIClientImpl):
    """
    Async Gemini client.

    Example:
        async with GeminiClient.from_settings(settings) as client:
            info = await client.upload_file(data, "video/mp4")
            info = await client.get_file(info.name)
            text, usage = await client.generate_from_file(
                info.uri, info.mime_type, "Describe this video"
            )
    """

    def __init__(
        self,
        config: AIClientConfig,
        default_model: str = DEFAULT_GEMINI_MODEL,
        sdk_client: genai.Client | None = None,
    ):
        """
        Initialize Gemini client.

        Args:
            config: AI client configuration with API key and base URL
            default_model: Default model for generation
            sdk_client: Pre-built SDK client (tests)

        Raises:
            ValueError: If API key is not provided
        """
        super().__init__(config)
        self.default_model = default_model

        if not config.api_key:
            raise ValueError(
                "GeminiClient requires API key. "
                "Set GEMINI_API_KEY environment variable."
            )

        self.client = sdk_client or genai.Client(
            api_key=config.api_key,
            http_options=types.HttpOptions(
                base_url=config.base_url,
                timeout=int(config.timeout * 1000),
            ),
        )

        logger.info(f"GeminiClient initialized, model: {default_model}")

    @classmethod
    def from_settings(cls, settings: Settings, default_model: str | None = None) -> "GeminiClient":
        """
        Create GeminiClient from application settings.

        Args:
            settings: Application settings
            default_model: Model used when a call does not name one

        Returns:
            Configured GeminiClient instance
        """
        config = AIClientConfig(
            base_url=settings.gemini_url,
            api_key=settings.gemini_api_key,
            timeout=settings.llm_timeout,
        )
        return cls(config=config, default_model=default_model or settings.video_model)

    async def close(self) -> None:
        await self.client.aio.aclose()
        logger.debug("GeminiClient closed")

    # ═══════════════════════════════════════════════════════════════════════
    # Files API
    # ═══════════════════════════════════════════════════════════════════════

    @RETRY_DECORATOR
    async def upload_file(
        self,
        data: bytes,
        mime_type: str,
        display_name: str | None = None,
    ) -> VideoFileInfo:
        """
        Upload a file to the Files API.

        Returns:
            Uploaded file info (usually still PROCESSING for videos)

        Raises:
            AIClientError: If the upload fails
        """
        logger.info(f"Uploading file to Gemini: {len(data) / 1024 / 1024:.1f} MB, {mime_type}")

        try:
            file = await self.client.aio.files.upload(
                file=io.BytesIO(data),
                config=types.UploadFileConfig(
                    mime_type=mime_type,
                    display_name=display_name or "video",
                ),
            )
        except SDK_ERRORS as e:
            raise _map_error(e, "upload") from e

        info = self._file_info(file)
        logger.info(f"Gemini file uploaded: {info.name} ({info.state.value})")
        return info

    @RETRY_DECORATOR
    async def get_file(self, name: str) -> VideoFileInfo:
        """
        Fetch the current state of an uploaded file.

        Args:
            name: File resource name ("files/abc123")
        """
        try:
            file = await self.client.aio.files.get(name=name)
        except SDK_ERRORS as e:
            raise _map_error(e, "get_file") from e
        return self._file_info(file)

    # Short names used by the video extractor
    async def submit(self, data: bytes, mime_type: str) -> VideoFileInfo:
        """Upload a video for processing."""
        return await self.upload_file(data, mime_type)

    async def poll(self, name: str) -> VideoFileInfo:
        """Poll a submitted video."""
        return await self.get_file(name)

    @staticmethod
    def _file_info(file: types.File) -> VideoFileInfo:
        state = getattr(file.state, "value", file.state) or "PROCESSING"
        return VideoFileInfo(
            name=file.name or "",
            state=FILE_STATES.get(state, VideoFileState.PROCESSING),
            uri=file.uri,
            mime_type=file.mime_type,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # Generation
    # ═══════════════════════════════════════════════════════════════════════

    async def generate_from_file(
        self,
        file_uri: str,
        mime_type: str,
        prompt: str,
        model: str | None = None,
        json_mode: bool = True,
    ) -> tuple[str, ChatUsage]:
        """
        Generate content grounded on an uploaded file.

        Args:
            file_uri: URI of an ACTIVE uploaded file
            mime_type: MIME type of the file
            prompt: Instruction text
            model: Model name (default: client default)
            json_mode: Request application/json output
        """
        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_uri(file_uri=file_uri, mime_type=mime_type),
                    types.Part.from_text(text=prompt),
                ],
            )
        ]
        return await self._generate_content(contents, model=model, json_mode=json_mode)

    async def generate(
        self,
        prompt: str,
        model: str | None = None,
        num_predict: int | None = None,
        json_mode: bool = False,
    ) -> tuple[str, ChatUsage]:
        """
        Generate text from a prompt.

        Raises:
            AIClientError: If generation fails
        """
        contents = [types.Content(role="user", parts=[types.Part.from_text(text=prompt)])]
        return await self._generate_content(
            contents,
            model=model,
            num_predict=num_predict,
            json_mode=json_mode,
        )

    async def chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float = 0.7,
        num_predict: int | None = None,
    ) -> tuple[str, ChatUsage]:
        """
        Chat completion with message history.

        "system" messages become the system instruction; "assistant"
        messages map to the "model" role.
        """
        system_parts = []
        contents = []
        for msg in messages:
            if msg["role"] == "system":
                system_parts.append(msg["content"])
            else:
                role = "model" if msg["role"] == "assistant" else "user"
                contents.append(
                    types.Content(role=role, parts=[types.Part.from_text(text=msg["content"])])
                )

        return await self._generate_content(
            contents,
            model=model,
            temperature=temperature,
            num_predict=num_predict,
            system_instruction="\n\n".join(system_parts) or None,
        )

    @RETRY_DECORATOR
    async def _generate_content(
        self,
        contents: list[types.Content],
        model: str | None = None,
        temperature: float | None = None,
        num_predict: int | None = None,
        json_mode: bool = False,
        system_instruction: str | None = None,
    ) -> tuple[str, ChatUsage]:
        if model is None:
            model = self.default_model

        config = types.GenerateContentConfig(
            response_mime_type="application/json" if json_mode else None,
            temperature=temperature,
            max_output_tokens=num_predict,
            system_instruction=system_instruction,
        )

        logger.debug(f"Gemini generate_content: model={model}, json={json_mode}")

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except SDK_ERRORS as e:
            raise _map_error(e, "generate_content", model=model) from e

        text = self._response_text(response, model)
        usage_meta = response.usage_metadata
        usage = ChatUsage(
            input_tokens=(usage_meta and usage_meta.prompt_token_count) or 0,
            output_tokens=(usage_meta and usage_meta.candidates_token_count) or 0,
        )

        logger.info(
            f"Gemini response: {len(text)} chars, "
            f"tokens: {usage.input_tokens} in / {usage.output_tokens} out"
        )
        return text, usage

    @staticmethod
    def _response_text(response: types.GenerateContentResponse, model: str) -> str:
        if not response.candidates:
            feedback = response.prompt_feedback
            reason = feedback.block_reason if feedback and feedback.block_reason else "no candidates"
            raise AIClientError(
                f"Gemini returned no content: {getattr(reason, 'value', reason)}",
                provider="gemini",
                model=model,
            )
        content = response.candidates[0].content
        parts = (content.parts if content else None) or []
        return "".join(part.text or "" for part in parts)


def _map_error(error: Exception, operation: str, model: str | None = None) -> AIClientError:
    # httpx.TimeoutException subclasses TransportError, so it is checked first
    if isinstance(error, httpx.TimeoutException):
        logger.error(f"Gemini {operation} timeout: {error}")
        return AIClientTimeoutError(
            f"Gemini {operation} timeout",
            provider="gemini",
            model=model,
            original_error=error,
        )

    if isinstance(error, genai_errors.APIError):
        logger.error(f"Gemini {operation} error: {error.code} - {error.message}")
        return AIClientResponseError(
            f"Gemini API error during {operation}: HTTP {error.code}",
            provider="gemini",
            model=model,
            status_code=error.code,
            response_body=error.message,
            original_error=error,
        )

    logger.error(f"Gemini {operation} connection error: {error}")
    return AIClientConnectionError(
        f"Cannot connect to Gemini API: {error}",
        provider="gemini",
        model=model,
        original_error=error,
    )
