"""
Caption stage: segments -> WebVTT in the primary language.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.repositories import VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import PipelineStep
from reeldocs.services.captions import segments_to_vtt
from reeldocs.services.stages.base import BaseStage, StageContext, StageError

logger = logging.getLogger(__name__)


class CaptionStage(BaseStage):
    """Build captions from segments and store them on the video.

    Input (from context):
        - extract: list[SegmentData]

    Output:
        WebVTT text (stored under the primary language and as vtt_content)
    """

    name = "caption"
    depends_on = ["extract"]
    step = PipelineStep.TRANSCRIBING

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def execute(self, context: StageContext) -> str:
        self.validate_context(context)

        vtt = segments_to_vtt(context.get_result("extract"))

        try:
            async with session_scope(self.session_factory) as session:
                await VideoRepository(session).set_captions(
                    context.video_id,
                    context.primary_language,
                    vtt,
                    primary=True,
                )
        except Exception as e:
            raise StageError(self.name, f"Storing captions failed: {e}", e) from e

        logger.info(f"Captions built for video {context.video_id} ({context.primary_language})")
        return vtt
