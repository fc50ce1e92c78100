"""
Job service: the request-path entry points for processing jobs.

Validation errors (NotFoundError, InvalidStateError) are raised before
any background work starts. The pipeline itself runs on the JobRunner.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from reeldocs.models.schemas import JobResponse, PipelineStep
from reeldocs.services.errors import NotFoundError
from reeldocs.services.job_manager import JobManager
from reeldocs.services.job_runner import JobRunner
from reeldocs.services.pipeline.retry_coordinator import RetryCoordinator

logger = logging.getLogger(__name__)

TERMINAL_STEPS = (PipelineStep.COMPLETE.value, PipelineStep.ERROR.value)


class JobService:
    """
    Start, stream, inspect and retry processing jobs.

    Example:
        service = JobService(job_manager, runner)
        job_id = await service.start_job(video_id, ["en", "de"])
        job = await service.get_job(job_id)
    """

    def __init__(self, job_manager: JobManager, runner: JobRunner):
        self.job_manager = job_manager
        self.runner = runner
        self.retry_coordinator = RetryCoordinator(job_manager, self.start_job)

    async def start_job(self, video_id: str, languages: list[str]) -> str:
        """
        Create a pending job and queue it.

        Raises:
            NotFoundError: If the video does not exist
            InvalidStateError: If the video already has an active job
        """
        job = await self.job_manager.create_job(video_id, languages)
        await self.runner.enqueue(job.id)
        return job.id

    async def open_job_stream(
        self,
        video_id: str,
        languages: list[str],
    ) -> tuple[str, AsyncIterator[dict]]:
        """
        Start a job and return its id with an iterator of progress events.

        The subscription is made before the job is queued, so no event is
        missed. The iterator ends after the complete or error event.

        Raises:
            NotFoundError: If the video does not exist
            InvalidStateError: If the video already has an active job
        """
        job = await self.job_manager.create_job(video_id, languages)
        queue = self.job_manager.subscribe(job.id)
        await self.runner.enqueue(job.id)
        return job.id, self.iter_events(job.id, queue)

    async def iter_events(self, job_id: str, queue: asyncio.Queue) -> AsyncIterator[dict]:
        try:
            while True:
                event = await queue.get()
                yield event
                if event.get("step") in TERMINAL_STEPS:
                    break
        finally:
            self.job_manager.unsubscribe(job_id, queue)

    async def get_job(self, job_id: str) -> JobResponse:
        """
        Raises:
            NotFoundError: If the job does not exist
        """
        job = await self.job_manager.get_job(job_id)
        if job is None:
            raise NotFoundError("job", job_id)
        return job

    async def list_active_jobs(self, project_id: str) -> list[JobResponse]:
        return await self.job_manager.list_active_jobs(project_id)

    async def list_recent_jobs(self, project_id: str, limit: int = 5) -> list[JobResponse]:
        return await self.job_manager.list_recent_jobs(project_id, limit)

    async def retry_job(self, job_id: str) -> str:
        """
        Retry a failed job; see RetryCoordinator.retry.

        Returns:
            Id of the new job
        """
        return await self.retry_coordinator.retry(job_id)
