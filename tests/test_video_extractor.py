"""Tests for video content extraction."""

import json

import pytest

from reeldocs.models.schemas import VideoFileInfo, VideoFileState
from reeldocs.services.storage import LocalStorage, StorageError
from reeldocs.services.video_extractor import (
    VideoExtractor,
    VideoProcessingError,
    VideoProcessingTimeoutError,
    parse_segments,
)

from conftest import SEGMENTS, FakeVideoClient

VIDEO_PATH = "p1/v1.mp4"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42"


class _SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
async def storage(settings) -> LocalStorage:
    storage = LocalStorage(settings.storage_dir)
    await storage.upload(VIDEO_PATH, VIDEO_BYTES)
    return storage


async def test_extract_returns_segments_in_order(settings, storage):
    client = FakeVideoClient()
    sleep = _SleepRecorder()
    extractor = VideoExtractor(client, storage, settings, sleep=sleep)

    segments = await extractor.extract(VIDEO_PATH)

    assert [s.spoken_content for s in segments] == [s["spoken_content"] for s in SEGMENTS]
    assert client.submitted == [VIDEO_BYTES]
    assert client.poll_calls == 2
    assert client.generate_calls == 1
    assert sleep.calls == [settings.video_poll_interval]


async def test_failed_processing_raises(settings, storage):
    client = FakeVideoClient(states=["processing", "failed"])
    extractor = VideoExtractor(client, storage, settings, sleep=_SleepRecorder())

    with pytest.raises(VideoProcessingError, match="failed"):
        await extractor.extract(VIDEO_PATH)
    assert client.generate_calls == 0


async def test_processing_timeout_after_max_polls(settings, storage):
    client = FakeVideoClient(states=["processing"])
    sleep = _SleepRecorder()
    extractor = VideoExtractor(client, storage, settings, sleep=sleep)

    with pytest.raises(VideoProcessingTimeoutError) as exc_info:
        await extractor.extract(VIDEO_PATH)

    assert exc_info.value.attempts == settings.video_poll_max_attempts
    assert client.poll_calls == settings.video_poll_max_attempts
    assert len(sleep.calls) == settings.video_poll_max_attempts - 1
    assert client.generate_calls == 0


async def test_empty_segmentation_is_an_error(settings, storage):
    extractor = VideoExtractor(FakeVideoClient(segments=[]), storage, settings, sleep=_SleepRecorder())

    with pytest.raises(VideoProcessingError, match="no segments"):
        await extractor.extract(VIDEO_PATH)


async def test_missing_video_raises_storage_error(settings, storage):
    extractor = VideoExtractor(FakeVideoClient(), storage, settings, sleep=_SleepRecorder())

    with pytest.raises(StorageError):
        await extractor.extract("p1/missing.mp4")


async def test_wait_until_ready_returns_ready_info(settings, storage):
    client = FakeVideoClient(states=["ready"])
    extractor = VideoExtractor(client, storage, settings, sleep=_SleepRecorder())

    info = await extractor.wait_until_ready(
        VideoFileInfo(name="files/x", state=VideoFileState.PROCESSING)
    )

    assert info.state == VideoFileState.READY
    assert info.uri == "https://files.test/files/x"


def test_parse_segments_accepts_array_and_object():
    as_array = parse_segments(json.dumps(SEGMENTS))
    as_object = parse_segments(json.dumps({"segments": SEGMENTS}))

    assert as_array == as_object
    assert as_array[1].start_time == 42.5
    assert as_array[1].topic == "Install"


def test_parse_segments_fenced_response():
    text = "```json\n" + json.dumps(SEGMENTS[:1]) + "\n```"

    assert parse_segments(text)[0].spoken_content == "Welcome to the demo."


@pytest.mark.parametrize(
    "text",
    [
        "not json at all",
        '"just a string"',
        '[{"start_time": -1, "end_time": 2}]',
        '[{"spoken_content": "no times"}]',
    ],
)
def test_parse_segments_rejects_invalid(text):
    with pytest.raises(VideoProcessingError):
        parse_segments(text)
