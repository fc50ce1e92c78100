"""
In-process background worker pool.

Request handlers enqueue job ids and return immediately; each worker
runs one job at a time through the handler (the orchestrator).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

JobHandler = Callable[[str], Awaitable[None]]


class JobRunner:
    """
    Pool of asyncio worker tasks fed from a queue.

    Example:
        runner = JobRunner(orchestrator.run, workers=2)
        await runner.start()
        await runner.enqueue(job_id)
        ...
        await runner.stop()
    """

    def __init__(self, handler: JobHandler, workers: int = 2):
        self.handler = handler
        self.workers = max(workers, 1)
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(index), name=f"job-worker-{index}")
            for index in range(self.workers)
        ]
        logger.info(f"Started {self.workers} pipeline workers")

    async def stop(self) -> None:
        """Cancel workers; a job in progress is interrupted."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Pipeline workers stopped")

    async def enqueue(self, job_id: str) -> None:
        await self._queue.put(job_id)
        logger.debug(f"Job {job_id} queued ({self._queue.qsize()} waiting)")

    async def join(self) -> None:
        """Wait until every queued job has been handled."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                logger.debug(f"Worker {index} picked job {job_id}")
                await self.handler(job_id)
            except Exception:
                logger.exception(f"Worker {index} crashed on job {job_id}")
            finally:
                self._queue.task_done()
