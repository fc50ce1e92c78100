"""
Retry of failed jobs.

A retry starts a fresh job for the same video and languages; the
checkpoints make the new run skip everything the failed one persisted.
"""

import logging
from collections.abc import Awaitable, Callable

from reeldocs.models.schemas import JobStatus
from reeldocs.services.errors import InvalidStateError, NotFoundError
from reeldocs.services.job_manager import JobManager

logger = logging.getLogger(__name__)

# (video_id, languages) -> new job id
StartJob = Callable[[str, list[str]], Awaitable[str]]


class RetryCoordinator:
    """
    Re-run a failed job.

    Example:
        coordinator = RetryCoordinator(job_manager, job_service.start_job)
        new_job_id = await coordinator.retry(failed_job_id)
    """

    def __init__(self, job_manager: JobManager, start_job: StartJob):
        self.job_manager = job_manager
        self.start_job = start_job

    async def retry(self, job_id: str) -> str:
        """
        Start a new job for a failed one and mark the old job retried.

        Args:
            job_id: Failed job

        Returns:
            Id of the new job

        Raises:
            NotFoundError: If the job does not exist
            InvalidStateError: If the job is not failed, or the video has an active job
        """
        job = await self.job_manager.get_job(job_id)
        if job is None:
            raise NotFoundError("job", job_id)
        if job.status != JobStatus.FAILED:
            raise InvalidStateError(
                f"Only failed jobs can be retried (job {job_id} is {job.status.value})"
            )

        new_job_id = await self.start_job(job.video_id, list(job.languages))
        await self.job_manager.mark_retried(job_id)

        logger.info(f"Job {job_id} retried as {new_job_id}")
        return new_job_id
