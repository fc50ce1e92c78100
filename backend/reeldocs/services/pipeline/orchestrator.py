"""
Pipeline orchestrator for video documentation.

Runs one job through the fixed stage sequence:

    extract -> caption -> generate_docs -> translate (per target language) -> finalize

Before each stage the CheckpointResolver is consulted; persisted output
is loaded instead of re-running the stage. After each stage (run or
skipped) the job's step, message and progress are updated.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.repositories import VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import JobResponse, PipelineStep, VideoStatus
from reeldocs.services.doc_generator import DocGenerator
from reeldocs.services.job_manager import JobManager
from reeldocs.services.stages import (
    CaptionStage,
    ExtractStage,
    GenerateDocsStage,
    StageContext,
    TranslateStage,
)
from reeldocs.services.translator import Translator
from reeldocs.services.video_extractor import VideoExtractor

from .checkpoints import CheckpointResolver, Complete
from .progress_manager import estimate_progress

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    Pipeline orchestrator for video processing jobs.

    Example:
        orchestrator = PipelineOrchestrator(
            session_factory, job_manager, extractor, generator, translator
        )
        await orchestrator.run(job_id)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        job_manager: JobManager,
        extractor: VideoExtractor,
        generator: DocGenerator,
        translator: Translator,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            session_factory: Database session factory
            job_manager: Job store (progress, completion, failure)
            extractor: Video content extractor
            generator: Documentation generator
            translator: Caption and article translator
        """
        self.session_factory = session_factory
        self.job_manager = job_manager
        self.checkpoints = CheckpointResolver(session_factory)

        self.extract_stage = ExtractStage(extractor, session_factory)
        self.caption_stage = CaptionStage(session_factory)
        self.generate_docs_stage = GenerateDocsStage(generator, session_factory)
        self.translate_stage = TranslateStage(translator, session_factory)

    # ═══════════════════════════════════════════════════════════════════════════
    # Full Pipeline
    # ═══════════════════════════════════════════════════════════════════════════

    async def run(self, job_id: str) -> None:
        """
        Process one job to completion or failure.

        Fatal errors are recorded on the job and the video; they are not
        re-raised.

        Args:
            job_id: Pending job to run
        """
        job = await self.job_manager.get_job(job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found, skipping")
            return

        logger.info(f"Processing job {job_id}: video {job.video_id}, languages {job.languages}")

        try:
            await self.job_manager.mark_processing(job_id)
            await self._set_video_status(job.video_id, VideoStatus.PROCESSING)
            await self._report(job_id, PipelineStep.UPLOADING, "Uploading video...")

            context = self._initial_context(job)
            context = await self._run_extract(job_id, context)
            context = await self._run_caption(job_id, context)
            context = await self._run_generate_docs(job_id, context)
            await self._run_translations(job_id, context)

            await self._set_video_status(job.video_id, VideoStatus.READY)
            await self.job_manager.complete_job(job_id)
            logger.info(f"Job {job_id} finished")

        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")
            await self._set_video_status(job.video_id, VideoStatus.FAILED)
            await self.job_manager.fail_job(job_id, str(e))

    # ═══════════════════════════════════════════════════════════════════════════
    # Stages
    # ═══════════════════════════════════════════════════════════════════════════

    async def _run_extract(self, job_id: str, context: StageContext) -> StageContext:
        checkpoint = await self.checkpoints.check_extract(context.video_id)
        if isinstance(checkpoint, Complete):
            logger.info(f"Skipping extract: {len(checkpoint.data)} segments stored")
            segments = checkpoint.data
            message = f"Using {len(segments)} stored segments"
        else:
            await self._report(job_id, PipelineStep.TRANSCRIBING, "Extracting video content...", 0, 2)
            segments = await self.extract_stage.execute(context)
            message = f"Extracted {len(segments)} segments"

        await self._report(job_id, PipelineStep.TRANSCRIBING, message, 1, 2)
        return context.with_result(self.extract_stage.name, segments)

    async def _run_caption(self, job_id: str, context: StageContext) -> StageContext:
        checkpoint = await self.checkpoints.check_caption(context.video_id, context.primary_language)
        if isinstance(checkpoint, Complete):
            logger.info(f"Skipping caption: {context.primary_language} captions stored")
            vtt = checkpoint.data
        else:
            vtt = await self.caption_stage.execute(context)

        await self._report(job_id, PipelineStep.TRANSCRIBING, "Captions ready", 2, 2)
        return context.with_result(self.caption_stage.name, vtt)

    async def _run_generate_docs(self, job_id: str, context: StageContext) -> StageContext:
        language = context.primary_language
        checkpoint = await self.checkpoints.check_generate_docs(context.video_id, language)
        if isinstance(checkpoint, Complete):
            logger.info(f"Skipping generate_docs: {len(checkpoint.data)} {language} articles stored")
            articles = checkpoint.data
        else:
            await self._report(job_id, PipelineStep.GENERATING_DOCS, "Generating documentation...", 0, 1)
            articles = await self.generate_docs_stage.execute(context)

        await self._report(
            job_id, PipelineStep.GENERATING_DOCS, f"Generated {len(articles)} articles", 1, 1
        )
        return context.with_result(self.generate_docs_stage.name, articles)

    async def _run_translations(self, job_id: str, context: StageContext) -> None:
        """Translate into every non-primary language in request order."""
        primary = context.primary_language
        targets = [lang for lang in context.get_metadata("languages")[1:] if lang != primary]
        total = len(targets)

        for index, language in enumerate(targets, start=1):
            await self._report(
                job_id, PipelineStep.TRANSLATING, f"Translating to {language}...", index - 1, total
            )
            try:
                message = await self._translate_language(context, language)
            except Exception as e:
                logger.warning(f"Translation to {language} failed for video {context.video_id}: {e}")
                message = f"Translation to {language} failed"

            await self._report(job_id, PipelineStep.TRANSLATING, message, index, total)

    async def _translate_language(self, context: StageContext, language: str) -> str:
        """Run the translate stage unless stored articles exist; returns the step message."""
        checkpoint = await self.checkpoints.check_translation(context.video_id, language)
        if isinstance(checkpoint, Complete):
            logger.info(f"Skipping translation to {language}: {checkpoint.data} articles stored")
            return f"Translated to {language}: {checkpoint.data} articles stored"

        captions = await self.checkpoints.check_caption_translation(context.video_id, language)
        language_context = (
            context
            .with_metadata("target_language", language)
            .with_metadata("captions_done", isinstance(captions, Complete))
        )
        outcome = await self.translate_stage.execute(language_context)
        message = f"Translated to {language}: {outcome.articles_translated} articles"
        if outcome.articles_failed:
            message += f", {outcome.articles_failed} failed"
        return message

    # ═══════════════════════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _initial_context(job: JobResponse) -> StageContext:
        return StageContext(metadata={
            "job_id": job.id,
            "video_id": job.video_id,
            "project_id": job.project_id,
            "languages": list(job.languages),
        })

    async def _report(
        self,
        job_id: str,
        step: PipelineStep,
        message: str,
        sub_index: int = 1,
        total: int = 1,
    ) -> None:
        progress = estimate_progress(step, sub_index, total)
        await self.job_manager.update_progress(job_id, step, progress, message)

    async def _set_video_status(self, video_id: str, status: VideoStatus) -> None:
        async with session_scope(self.session_factory) as session:
            await VideoRepository(session).set_status(video_id, status.value)
