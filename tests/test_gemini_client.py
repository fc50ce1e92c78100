"""Tests for the Gemini client against a stubbed google-genai client."""

from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors as genai_errors
from tenacity import wait_none

from reeldocs.models.schemas import VideoFileState
from reeldocs.services.ai_clients import (
    AIClientConfig,
    AIClientConnectionError,
    AIClientError,
    AIClientResponseError,
    AIClientTimeoutError,
    GeminiClient,
)


class FakeFiles:
    def __init__(self, state: str = "PROCESSING"):
        self.state = state
        self.uploads: list[dict] = []
        self.gets: list[str] = []

    async def upload(self, file, config):
        self.uploads.append({"data": file.read(), "config": config})
        return SimpleNamespace(
            name="files/abc",
            state=self.state,
            uri="https://files.test/abc",
            mime_type=config.mime_type,
        )

    async def get(self, name):
        self.gets.append(name)
        return SimpleNamespace(name=name, state=self.state, uri=None, mime_type=None)


class FakeModels:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeSDK:
    def __init__(self, files: FakeFiles | None = None, models: FakeModels | None = None):
        self.closed = False
        self.aio = SimpleNamespace(
            files=files or FakeFiles(),
            models=models or FakeModels(),
            aclose=self._aclose,
        )

    async def _aclose(self):
        self.closed = True


def _response(*texts: str, prompt_tokens: int = 0, output_tokens: int = 0):
    parts = [SimpleNamespace(text=text) for text in texts]
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
        prompt_feedback=None,
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens,
            candidates_token_count=output_tokens,
        ),
    )


def _client(sdk: FakeSDK) -> GeminiClient:
    return GeminiClient(
        AIClientConfig(base_url="https://gemini.test", api_key="test-key"),
        default_model="gemini-test",
        sdk_client=sdk,
    )


@pytest.fixture
def no_retry_wait(monkeypatch):
    for method in (GeminiClient._generate_content, GeminiClient.get_file, GeminiClient.upload_file):
        monkeypatch.setattr(method.retry, "wait", wait_none())


def test_requires_api_key():
    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        GeminiClient(AIClientConfig(base_url="https://gemini.test"))


async def test_upload_sends_bytes_and_mime_type():
    sdk = FakeSDK()

    async with _client(sdk) as client:
        info = await client.submit(b"video-bytes", "video/mp4")

    assert sdk.closed
    assert info.name == "files/abc"
    assert info.state == VideoFileState.PROCESSING
    assert info.mime_type == "video/mp4"
    upload = sdk.aio.files.uploads[0]
    assert upload["data"] == b"video-bytes"
    assert upload["config"].mime_type == "video/mp4"


@pytest.mark.parametrize(
    ("remote", "local"),
    [
        ("PROCESSING", VideoFileState.PROCESSING),
        ("ACTIVE", VideoFileState.READY),
        ("FAILED", VideoFileState.FAILED),
        ("STATE_UNSPECIFIED", VideoFileState.PROCESSING),
        (None, VideoFileState.PROCESSING),
    ],
)
async def test_poll_maps_states(remote, local):
    sdk = FakeSDK(files=FakeFiles(state=remote))

    info = await _client(sdk).poll("files/abc")

    assert sdk.aio.files.gets == ["files/abc"]
    assert info.state == local


async def test_generate_from_file_sends_file_part_and_json_mode():
    models = FakeModels(_response('[{"start_time": 0', "}]", prompt_tokens=1200, output_tokens=80))

    text, usage = await _client(FakeSDK(models=models)).generate_from_file(
        "https://files.test/abc", "video/mp4", "Segment this video"
    )

    assert text == '[{"start_time": 0}]'
    assert usage.total_tokens == 1280
    call = models.calls[0]
    assert call["model"] == "gemini-test"
    file_part, prompt_part = call["contents"][0].parts
    assert file_part.file_data.file_uri == "https://files.test/abc"
    assert file_part.file_data.mime_type == "video/mp4"
    assert prompt_part.text == "Segment this video"
    assert call["config"].response_mime_type == "application/json"


async def test_chat_maps_roles_and_system_instruction():
    models = FakeModels(_response("ok"))

    await _client(FakeSDK(models=models)).chat([
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello"},
        {"role": "user", "content": "Bye"},
    ])

    call = models.calls[0]
    assert call["config"].system_instruction == "Be brief."
    assert [c.role for c in call["contents"]] == ["user", "model", "user"]


async def test_blocked_prompt_raises():
    blocked = SimpleNamespace(
        candidates=None,
        prompt_feedback=SimpleNamespace(block_reason="SAFETY"),
        usage_metadata=None,
    )

    with pytest.raises(AIClientError, match="SAFETY"):
        await _client(FakeSDK(models=FakeModels(blocked))).generate("hello")


async def test_api_error_becomes_response_error():
    error = genai_errors.ClientError(
        429, {"error": {"code": 429, "message": "quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    )
    models = FakeModels(error=error)

    with pytest.raises(AIClientResponseError) as exc_info:
        await _client(FakeSDK(models=models)).generate("hello")

    assert exc_info.value.status_code == 429
    assert exc_info.value.response_body == "quota exceeded"
    assert len(models.calls) == 1


async def test_connection_errors_are_retried(no_retry_wait):
    models = FakeModels(error=httpx.ConnectError("connection refused"))

    with pytest.raises(AIClientConnectionError):
        await _client(FakeSDK(models=models)).generate("hi")

    assert len(models.calls) == 3


async def test_poll_timeout_is_wrapped_and_retried(no_retry_wait):
    files = FakeFiles()
    calls = []

    async def get(name):
        calls.append(name)
        raise httpx.ReadTimeout("read timed out")

    files.get = get

    with pytest.raises(AIClientTimeoutError):
        await _client(FakeSDK(files=files)).poll("files/abc")

    assert len(calls) == 3
