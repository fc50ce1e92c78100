"""
Job manager for pipeline processing.

Persists the job lifecycle in processing_jobs and broadcasts progress
updates to in-process subscribers (SSE / WebSocket).
"""

import asyncio
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.models import ProcessingJob, utcnow
from reeldocs.db.repositories import JobRepository, VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import JobResponse, JobStatus, PipelineStep, ProgressEvent
from reeldocs.services.errors import InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)

ORPHANED_JOB_MESSAGE = "Interrupted by server restart"


class JobManager:
    """
    Manager for processing jobs with progress broadcasting.

    Jobs live in the database; subscriber queues live in memory, so push
    updates only reach clients of this process. Polling clients read the
    job row.

    Example:
        manager = JobManager(session_factory)
        job = await manager.create_job(video_id, ["en", "de"])

        # Subscribe to updates
        queue = manager.subscribe(job.id)

        # Update progress (persists and broadcasts)
        await manager.update_progress(
            job.id,
            PipelineStep.TRANSCRIBING,
            0.125,
            "Transcribing...",
        )
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    # ═══════════════════════════════════════════════════════════════════════
    # Queries
    # ═══════════════════════════════════════════════════════════════════════

    async def get_job(self, job_id: str) -> JobResponse | None:
        async with session_scope(self.session_factory) as session:
            job = await JobRepository(session).get_by_id(job_id)
            return JobResponse.model_validate(job) if job else None

    async def list_active_jobs(self, project_id: str) -> list[JobResponse]:
        """Pending and processing jobs of a project, newest first."""
        async with session_scope(self.session_factory) as session:
            jobs = await JobRepository(session).list_active(project_id)
            return [JobResponse.model_validate(job) for job in jobs]

    async def list_recent_jobs(self, project_id: str, limit: int = 5) -> list[JobResponse]:
        """Most recent jobs of a project in any status (retried included)."""
        async with session_scope(self.session_factory) as session:
            jobs = await JobRepository(session).list_recent(project_id, limit)
            return [JobResponse.model_validate(job) for job in jobs]

    # ═══════════════════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════════════════

    async def create_job(self, video_id: str, languages: list[str]) -> JobResponse:
        """
        Create a pending job for a video.

        Args:
            video_id: Video to process
            languages: Ordered languages, first is primary

        Returns:
            Created job

        Raises:
            NotFoundError: If the video does not exist
            InvalidStateError: If the video already has an active job
        """
        try:
            async with session_scope(self.session_factory) as session:
                video = await VideoRepository(session).get_by_id(video_id)
                if video is None:
                    raise NotFoundError("video", video_id)

                job: ProcessingJob = await JobRepository(session).create(
                    video_id=video_id,
                    project_id=video.project_id,
                    status=JobStatus.PENDING.value,
                    languages=list(languages),
                    progress=0.0,
                )
                response = JobResponse.model_validate(job)
        except IntegrityError as e:
            raise InvalidStateError(f"Video {video_id} already has an active job") from e

        logger.info(f"Created job {response.id} for video {video_id} ({', '.join(languages)})")
        return response

    async def mark_processing(self, job_id: str) -> None:
        """Mark job as picked up by a worker."""
        async with session_scope(self.session_factory) as session:
            await JobRepository(session).update_fields(
                job_id,
                status=JobStatus.PROCESSING.value,
                started_at=utcnow(),
            )

    async def update_progress(
        self,
        job_id: str,
        step: PipelineStep,
        progress: float,
        message: str,
    ) -> None:
        """
        Persist step and progress, then broadcast to subscribers.

        Args:
            job_id: Job identifier
            step: Current pipeline step
            progress: Overall progress (0..1)
            message: Human-readable status message
        """
        async with session_scope(self.session_factory) as session:
            job = await JobRepository(session).update_fields(
                job_id,
                step=step.value,
                step_message=message,
                progress=progress,
            )
        if job is None:
            logger.warning(f"Job {job_id} not found for progress update")
            return

        logger.debug(f"Job {job_id}: {step.value} {progress:.0%} {message}")
        await self._broadcast(job_id, ProgressEvent(
            job_id=job_id,
            status=JobStatus.PROCESSING,
            step=step.value,
            message=message,
            progress=progress,
        ))

    async def complete_job(self, job_id: str, message: str = "Processing complete") -> None:
        """
        Mark job as completed.

        Args:
            job_id: Job identifier
            message: Final status message
        """
        async with session_scope(self.session_factory) as session:
            job = await JobRepository(session).update_fields(
                job_id,
                status=JobStatus.COMPLETED.value,
                step=PipelineStep.COMPLETE.value,
                step_message=message,
                progress=1.0,
                completed_at=utcnow(),
            )
        if job is None:
            logger.warning(f"Job {job_id} not found for completion")
            return

        await self._broadcast(job_id, ProgressEvent(
            job_id=job_id,
            status=JobStatus.COMPLETED,
            step=PipelineStep.COMPLETE.value,
            message=message,
            progress=1.0,
        ))
        logger.info(f"Job {job_id} completed")

    async def fail_job(self, job_id: str, error: str) -> None:
        """
        Mark job as failed with error.

        Progress and step are left where the failure happened.

        Args:
            job_id: Job identifier
            error: Error message
        """
        async with session_scope(self.session_factory) as session:
            job = await JobRepository(session).update_fields(
                job_id,
                status=JobStatus.FAILED.value,
                error_message=error,
                completed_at=utcnow(),
            )
            progress = job.progress if job else 0.0
        if job is None:
            logger.warning(f"Job {job_id} not found for failure")
            return

        await self._broadcast(job_id, ProgressEvent(
            job_id=job_id,
            status=JobStatus.FAILED,
            step=PipelineStep.ERROR.value,
            message=error,
            progress=progress,
            error=error,
        ))
        logger.error(f"Job {job_id} failed: {error}")

    async def mark_retried(self, job_id: str) -> None:
        """Mark a failed job as superseded by a retry."""
        async with session_scope(self.session_factory) as session:
            await JobRepository(session).update_fields(job_id, status=JobStatus.RETRIED.value)
        logger.info(f"Job {job_id} marked retried")

    async def fail_orphaned_jobs(self) -> int:
        """
        Fail jobs left pending/processing by a previous process.

        Returns:
            Number of jobs failed
        """
        async with session_scope(self.session_factory) as session:
            count = await JobRepository(session).fail_active(ORPHANED_JOB_MESSAGE)
        if count:
            logger.warning(f"Marked {count} interrupted jobs as failed")
        return count

    # ═══════════════════════════════════════════════════════════════════════
    # Subscribers
    # ═══════════════════════════════════════════════════════════════════════

    def subscribe(self, job_id: str) -> asyncio.Queue:
        """
        Subscribe to job progress updates.

        Args:
            job_id: Job identifier

        Returns:
            Queue that will receive progress messages (dicts)
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(job_id, []).append(queue)
        logger.debug(f"Client subscribed to job {job_id}")
        return queue

    def unsubscribe(self, job_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(job_id)
        if subscribers and queue in subscribers:
            subscribers.remove(queue)
            logger.debug(f"Client unsubscribed from job {job_id}")
        if not subscribers:
            self._subscribers.pop(job_id, None)

    async def _broadcast(self, job_id: str, event: ProgressEvent) -> None:
        message = event.model_dump(mode="json")
        for queue in self._subscribers.get(job_id, []):
            await queue.put(message)
