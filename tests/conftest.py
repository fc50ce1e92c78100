"""
Shared fixtures: in-memory database, local storage, fake AI clients.
"""

import json
import re
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

from reeldocs.config import Settings
from reeldocs.db import Project, Video, create_engine, session_scope
from reeldocs.models.schemas import VideoFileInfo, VideoFileState
from reeldocs.services.ai_clients import AIClientError, ChatUsage
from reeldocs.services.container import ServiceContainer
from reeldocs.services.storage import LocalStorage

SEGMENTS = [
    {
        "start_time": 0,
        "end_time": 42.5,
        "spoken_content": "Welcome to the demo.",
        "visual_context": "Title slide",
        "topic": "Intro",
    },
    {
        "start_time": 42.5,
        "end_time": 95,
        "spoken_content": "Now we install the package.",
        "visual_context": "Terminal with npm",
        "topic": "Install",
    },
    {
        "start_time": 95,
        "end_time": 150,
        "spoken_content": "If something breaks, read the logs.",
        "visual_context": "Log viewer",
        "topic": "Logs",
    },
]

DOCUMENT = {
    "title": "Getting Started",
    "chapters": [
        {
            "title": "Installation",
            "sections": [
                {
                    "heading": "Install the CLI",
                    "content": "Run [video:01:15] npm install.\n\n```bash\nnpm install reeldocs\n```",
                    "timestamp_ref": "01:15",
                }
            ],
        },
        {
            "title": "Troubleshooting",
            "sections": [
                {
                    "heading": "Troubleshooting errors",
                    "content": "Check the **logs** with `reeldocs logs`.",
                    "timestamp_ref": "",
                }
            ],
        },
    ],
}

_LANGUAGE_RE = re.compile(r" to ([\w-]+)\.")
_TEXTS_RE = re.compile(r"<texts>\n(.*)\n</texts>", re.DOTALL)
_TEXT_RE = re.compile(r"<text>\n(.*)\n</text>", re.DOTALL)


class FakeVideoClient:
    """Video-understanding service: PROCESSING on the first poll, then the given states."""

    def __init__(self, segments=None, states=("processing", "ready"), error: Exception | None = None):
        self.segments = SEGMENTS if segments is None else segments
        self.states = [VideoFileState(state) for state in states]
        self.error = error
        self.submitted: list[bytes] = []
        self.poll_calls = 0
        self.generate_calls = 0

    async def submit(self, data: bytes, mime_type: str) -> VideoFileInfo:
        self.submitted.append(data)
        return VideoFileInfo(name="files/demo", state=VideoFileState.PROCESSING)

    async def poll(self, name: str) -> VideoFileInfo:
        state = self.states[min(self.poll_calls, len(self.states) - 1)]
        self.poll_calls += 1
        return VideoFileInfo(name=name, state=state, uri=f"https://files.test/{name}", mime_type="video/mp4")

    async def generate_from_file(self, file_uri, mime_type, prompt, model=None, json_mode=True):
        self.generate_calls += 1
        if self.error:
            raise self.error
        return json.dumps(self.segments), ChatUsage(input_tokens=100, output_tokens=50)


class FakeTextClient:
    """
    Documentation and translation model.

    Translations prefix every text with "[lang] ". Batches containing
    a marker listed in ``fail_on[lang]`` raise AIClientError.
    """

    def __init__(self, document=None, fail_on: dict[str, str] | None = None):
        self.document = DOCUMENT if document is None else document
        self.fail_on = fail_on or {}
        self.doc_calls = 0
        self.translation_calls: list[str] = []

    async def generate(self, prompt, model=None, num_predict=None, json_mode=False):
        usage = ChatUsage(input_tokens=10, output_tokens=10)

        if "Video segments" in prompt:
            self.doc_calls += 1
            body = self.document if isinstance(self.document, str) else json.dumps(self.document)
            return body, usage

        language = _LANGUAGE_RE.search(prompt).group(1)
        self.translation_calls.append(language)
        marker = self.fail_on.get(language)

        texts_match = _TEXTS_RE.search(prompt)
        if texts_match:
            texts = json.loads(texts_match.group(1))
            if marker and any(marker in text for text in texts):
                raise AIClientError("translation backend down", provider="fake", model=model)
            return json.dumps([f"[{language}] {text}" for text in texts]), usage

        text = _TEXT_RE.search(prompt).group(1)
        if marker and marker in text:
            raise AIClientError("translation backend down", provider="fake", model=model)
        return f"[{language}] {text}", usage

    async def chat(self, messages, model=None, temperature=0.7, num_predict=None):
        return await self.generate(messages[-1]["content"], model=model)

    async def close(self) -> None:
        pass


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        storage_backend="local",
        storage_dir=tmp_path / "storage",
        video_poll_interval=0.0,
        video_poll_max_attempts=3,
        pipeline_workers=1,
        translation_batch_size=50,
        log_level="DEBUG",
        log_format="simple",
    )


@pytest.fixture
def video_client() -> FakeVideoClient:
    return FakeVideoClient()


@pytest.fixture
def text_client() -> FakeTextClient:
    return FakeTextClient()


@pytest.fixture
async def services(settings, video_client, text_client):
    engine = create_engine(
        settings,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    container = ServiceContainer.from_settings(
        settings,
        engine=engine,
        storage=LocalStorage(settings.storage_dir),
        video_client=video_client,
        text_client=text_client,
        sleep=_no_sleep,
    )
    await container.start()
    yield container
    await container.close()


@pytest.fixture
async def project(services) -> Project:
    async with session_scope(services.session_factory) as session:
        project = Project(name="Demo", slug="demo")
        session.add(project)
    return project


@pytest.fixture
async def video(services, project) -> Video:
    """Registered video with its file in storage."""
    async with session_scope(services.session_factory) as session:
        video = Video(
            project_id=project.id,
            title="Demo video",
            storage_path=f"{project.id}/demo.mp4",
            captions_by_language={},
        )
        session.add(video)
    await services.storage.upload(video.storage_path, b"\x00\x00\x00\x18ftypmp42")
    return video
