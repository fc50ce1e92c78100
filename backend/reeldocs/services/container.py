"""
Service wiring.

Builds the engine, storage, AI clients and pipeline services once per
application and hands them to the API. Tests pass fakes for the external
clients.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from reeldocs.config import Settings
from reeldocs.db.session import create_engine, create_session_factory, init_db
from reeldocs.services.ai_clients import BaseAIClient
from reeldocs.services.article_service import ArticleService
from reeldocs.services.doc_generator import DocGenerator
from reeldocs.services.job_manager import JobManager
from reeldocs.services.job_runner import JobRunner
from reeldocs.services.job_service import JobService
from reeldocs.services.pipeline import PipelineOrchestrator, ProcessingStrategy, ProviderType
from reeldocs.services.storage import StorageClient, create_storage
from reeldocs.services.translator import Translator
from reeldocs.services.video_extractor import VideoExtractor, VideoUnderstandingClient

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Application-scoped services."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    storage: StorageClient
    strategy: ProcessingStrategy
    job_manager: JobManager
    orchestrator: PipelineOrchestrator
    runner: JobRunner
    jobs: JobService
    articles: ArticleService

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        engine: AsyncEngine | None = None,
        storage: StorageClient | None = None,
        video_client: VideoUnderstandingClient | None = None,
        text_client: BaseAIClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "ServiceContainer":
        """
        Build all services.

        Args:
            settings: Application settings
            engine: Pre-built engine (default: from database_url)
            storage: Storage backend (default: from storage_backend)
            video_client: Video-understanding client (default: Gemini for video_model)
            text_client: Client for documentation and translation
                (default: provider of docs_model / translation_model)
            sleep: Poll-loop sleep (tests pass a no-op)

        Raises:
            ValueError: If a required API key or backend setting is missing
        """
        engine = engine or create_engine(settings)
        session_factory = create_session_factory(engine)
        storage = storage or create_storage(settings)
        strategy = ProcessingStrategy(settings)

        if video_client is None:
            if strategy.get_provider_type(settings.video_model) != ProviderType.GOOGLE:
                raise ValueError(f"Video model must be a Gemini model: {settings.video_model}")
            video_client = strategy.get_client(settings.video_model)

        docs_client = text_client or strategy.get_client(settings.docs_model)
        translation_client = text_client or strategy.get_client(settings.translation_model)

        extractor = VideoExtractor(video_client, storage, settings, sleep=sleep)
        generator = DocGenerator(docs_client, settings)
        translator = Translator(translation_client, settings)

        job_manager = JobManager(session_factory)
        orchestrator = PipelineOrchestrator(
            session_factory, job_manager, extractor, generator, translator
        )
        runner = JobRunner(orchestrator.run, workers=settings.pipeline_workers)

        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            storage=storage,
            strategy=strategy,
            job_manager=job_manager,
            orchestrator=orchestrator,
            runner=runner,
            jobs=JobService(job_manager, runner),
            articles=ArticleService(session_factory, translator),
        )

    async def start(self) -> None:
        """Create tables, fail jobs orphaned by a restart and start workers."""
        await init_db(self.engine)
        await self.job_manager.fail_orphaned_jobs()
        await self.runner.start()

    async def close(self) -> None:
        await self.runner.stop()
        await self.strategy.close()
        await self.storage.close()
        await self.engine.dispose()
        logger.info("Services closed")
