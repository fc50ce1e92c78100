"""
Checkpoint resolution for resumable pipeline runs.

Before every stage the orchestrator asks the resolver whether the
stage's output is already persisted. ``Complete`` carries that output so
the stage can be skipped without another AI call; ``NotStarted`` means
the stage must run. Checks are read-only and always hit the database,
so a retried job picks up exactly where the failed one stopped.
"""

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.repositories import ArticleRepository, SegmentRepository, VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import ArticleSnapshot, SegmentData

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class NotStarted:
    """Stage output not found; the stage has to run."""

    pass


@dataclass(frozen=True)
class Complete(Generic[T]):
    """Stage output already persisted."""

    data: T


class CheckpointResolver:
    """
    Detect persisted stage output.

    Example:
        resolver = CheckpointResolver(session_factory)
        checkpoint = await resolver.check_extract(video_id)
        if isinstance(checkpoint, Complete):
            segments = checkpoint.data
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def check_extract(self, video_id: str) -> NotStarted | Complete[list[SegmentData]]:
        """Extraction is done when the video has at least one segment."""
        async with session_scope(self.session_factory) as session:
            rows = await SegmentRepository(session).list_for_video(video_id)
            if not rows:
                return NotStarted()
            segments = [SegmentData.model_validate(row, from_attributes=True) for row in rows]

        logger.debug(f"Checkpoint extract: {len(segments)} segments for video {video_id}")
        return Complete(segments)

    async def check_caption(self, video_id: str, language: str) -> NotStarted | Complete[str]:
        """Captions are done when the primary language key is present."""
        return await self._check_captions(video_id, language)

    async def check_generate_docs(
        self,
        video_id: str,
        language: str,
    ) -> NotStarted | Complete[list[ArticleSnapshot]]:
        """Generation is done when the video has articles in the primary language."""
        async with session_scope(self.session_factory) as session:
            rows = await ArticleRepository(session).list_for(video_id, language)
            if not rows:
                return NotStarted()
            articles = [ArticleSnapshot.model_validate(row) for row in rows]

        logger.debug(f"Checkpoint generate_docs: {len(articles)} {language} articles")
        return Complete(articles)

    async def check_translation(self, video_id: str, language: str) -> NotStarted | Complete[int]:
        """
        A language is done when it has at least one article.

        Partially translated languages count as done; missing articles
        are not filled in by later runs.
        """
        async with session_scope(self.session_factory) as session:
            count = await ArticleRepository(session).count_for(video_id, language)
        if count == 0:
            return NotStarted()
        return Complete(count)

    async def check_caption_translation(
        self,
        video_id: str,
        language: str,
    ) -> NotStarted | Complete[str]:
        """Caption translation is done when the language key is present."""
        return await self._check_captions(video_id, language)

    async def _check_captions(self, video_id: str, language: str) -> NotStarted | Complete[str]:
        async with session_scope(self.session_factory) as session:
            vtt = await VideoRepository(session).get_captions(video_id, language)
        if not vtt:
            return NotStarted()
        return Complete(vtt)
