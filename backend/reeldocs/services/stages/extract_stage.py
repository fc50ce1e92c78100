"""
Extract stage: video -> timestamped segments.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.repositories import SegmentRepository, VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import PipelineStep, SegmentData
from reeldocs.services.stages.base import BaseStage, StageContext, StageError
from reeldocs.services.video_extractor import VideoExtractor

logger = logging.getLogger(__name__)


class ExtractStage(BaseStage):
    """Upload the video for analysis and persist the returned segments.

    Input (from context):
        - metadata video_id

    Output:
        List of SegmentData in extraction order (also written to
        video_segments in one batch, order = list position)
    """

    name = "extract"
    step = PipelineStep.TRANSCRIBING

    def __init__(
        self,
        extractor: VideoExtractor,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.extractor = extractor
        self.session_factory = session_factory

    async def execute(self, context: StageContext) -> list[SegmentData]:
        """Extract and store segments.

        Raises:
            StageError: If extraction or persistence fails
        """
        try:
            async with session_scope(self.session_factory) as session:
                video = await VideoRepository(session).get_by_id(context.video_id)
                if video is None:
                    raise LookupError(f"Video not found: {context.video_id}")
                storage_path = video.storage_path

            segments = await self.extractor.extract(storage_path)

            async with session_scope(self.session_factory) as session:
                count = await SegmentRepository(session).add_batch(context.video_id, segments)

        except Exception as e:
            raise StageError(self.name, f"Content extraction failed: {e}", e) from e

        logger.info(f"Stored {count} segments for video {context.video_id}")
        return segments
