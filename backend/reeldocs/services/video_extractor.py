"""
Video content extraction.

Reads the uploaded video from storage, submits it to the
video-understanding service, waits until the service has processed it
and asks for a timestamped segmentation (speech + on-screen context).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pydantic import ValidationError

from reeldocs.config import Settings, load_prompt
from reeldocs.models.schemas import SegmentData, VideoFileInfo, VideoFileState
from reeldocs.services.ai_clients.base import ChatUsage
from reeldocs.services.storage import StorageClient, download
from reeldocs.utils.json_utils import parse_llm_json

logger = logging.getLogger(__name__)


class VideoProcessingError(Exception):
    """Raised when the video-understanding service cannot process a video."""

    pass


class VideoProcessingTimeoutError(VideoProcessingError):
    """
    Raised when a submitted video is still processing after the last poll.

    Attributes:
        file_name: Remote file name
        attempts: Number of polls made
    """

    def __init__(self, file_name: str, attempts: int, interval: float):
        self.file_name = file_name
        self.attempts = attempts
        super().__init__(
            f"Video {file_name} still processing after {attempts} polls "
            f"({attempts * interval:.0f}s)"
        )


class VideoUnderstandingClient(Protocol):
    """Remote service that accepts a video file and answers prompts about it."""

    async def submit(self, data: bytes, mime_type: str) -> VideoFileInfo: ...

    async def poll(self, name: str) -> VideoFileInfo: ...

    async def generate_from_file(
        self,
        file_uri: str,
        mime_type: str,
        prompt: str,
        model: str | None = None,
        json_mode: bool = True,
    ) -> tuple[str, ChatUsage]: ...


class VideoExtractor:
    """
    Extract timestamped segments from a stored video.

    Example:
        extractor = VideoExtractor(gemini_client, storage, settings)
        segments = await extractor.extract("org/project/video.mp4")
    """

    def __init__(
        self,
        client: VideoUnderstandingClient,
        storage: StorageClient,
        settings: Settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize extractor.

        Args:
            client: Video-understanding client (Gemini)
            storage: Object storage holding the uploaded video
            settings: Application settings (model, poll interval and limit)
            sleep: Coroutine used between polls
        """
        self.client = client
        self.storage = storage
        self.settings = settings
        self._sleep = sleep

    async def extract(self, storage_path: str) -> list[SegmentData]:
        """
        Run upload, processing wait and segmentation for one video.

        Args:
            storage_path: Object path of the uploaded video

        Returns:
            Segments in the order returned by the service

        Raises:
            StorageError: If the video cannot be read from storage
            VideoProcessingError: If processing fails or yields no segments
            VideoProcessingTimeoutError: If processing does not finish in time
            AIClientError: If a service call fails
        """
        mime_type = self.settings.video_mime_type

        url = await self.storage.get_signed_read_url(
            storage_path, expires_in=self.settings.signed_url_ttl
        )
        data = await download(url)
        logger.info(f"Downloaded {storage_path}: {len(data) / 1024 / 1024:.1f} MB")

        info = await self.client.submit(data, mime_type)
        info = await self.wait_until_ready(info)

        prompt = load_prompt("extract", "segments", self.settings.video_model, self.settings)
        text, usage = await self.client.generate_from_file(
            info.uri or "",
            info.mime_type or mime_type,
            prompt,
            model=self.settings.video_model,
        )

        segments = parse_segments(text)
        if not segments:
            raise VideoProcessingError("Video analysis returned no segments")

        logger.info(
            f"Extracted {len(segments)} segments from {storage_path} "
            f"({usage.total_tokens} tokens)"
        )
        return segments

    async def wait_until_ready(self, info: VideoFileInfo) -> VideoFileInfo:
        """
        Poll the remote file until it is ready.

        At most ``video_poll_max_attempts`` polls are made, separated by
        ``video_poll_interval`` seconds.

        Raises:
            VideoProcessingError: If the service reports FAILED
            VideoProcessingTimeoutError: If no terminal state is reached
        """
        max_attempts = self.settings.video_poll_max_attempts
        interval = self.settings.video_poll_interval

        for attempt in range(1, max_attempts + 1):
            info = await self.client.poll(info.name)

            if info.state == VideoFileState.READY:
                logger.debug(f"Video {info.name} ready after {attempt} polls")
                return info
            if info.state == VideoFileState.FAILED:
                raise VideoProcessingError(f"Video processing failed for {info.name}")

            logger.debug(f"Video {info.name} processing (poll {attempt}/{max_attempts})")
            if attempt < max_attempts:
                await self._sleep(interval)

        raise VideoProcessingTimeoutError(info.name, max_attempts, interval)


def parse_segments(text: str) -> list[SegmentData]:
    """
    Parse the segmentation response.

    Accepts a bare JSON array or an object with a "segments" array.

    Raises:
        VideoProcessingError: If the response is not a valid segment list
    """
    try:
        data = parse_llm_json(text)
    except ValueError as e:
        raise VideoProcessingError(f"Invalid segment JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("segments", [])
    if not isinstance(data, list):
        raise VideoProcessingError(f"Expected a list of segments, got {type(data).__name__}")

    try:
        return [SegmentData.model_validate(item) for item in data]
    except ValidationError as e:
        raise VideoProcessingError(f"Invalid segment data: {e}") from e
