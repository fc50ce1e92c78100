"""Tests for job lifecycle, retry and the background runner."""

import asyncio

import pytest

from reeldocs.models.schemas import JobStatus, PipelineStep
from reeldocs.services.errors import InvalidStateError, NotFoundError
from reeldocs.services.job_manager import ORPHANED_JOB_MESSAGE, JobManager
from reeldocs.services.job_runner import JobRunner


async def test_create_job_for_missing_video(services):
    with pytest.raises(NotFoundError, match="Video not found: nope"):
        await services.job_manager.create_job("nope", ["en"])


async def test_second_active_job_is_rejected(services, video):
    job = await services.job_manager.create_job(video.id, ["en"])

    with pytest.raises(InvalidStateError):
        await services.job_manager.create_job(video.id, ["en", "de"])

    active = await services.job_manager.list_active_jobs(video.project_id)
    assert [j.id for j in active] == [job.id]
    assert active[0].status == JobStatus.PENDING
    assert active[0].languages == ["en"]


async def test_progress_update_is_persisted_and_broadcast(services, video):
    job = await services.job_manager.create_job(video.id, ["en"])
    queue = services.job_manager.subscribe(job.id)

    await services.job_manager.update_progress(job.id, PipelineStep.TRANSCRIBING, 0.125, "Halfway")

    stored = await services.job_manager.get_job(job.id)
    assert (stored.step, stored.step_message, stored.progress) == ("transcribing", "Halfway", 0.125)
    assert queue.get_nowait()["message"] == "Halfway"

    services.job_manager.unsubscribe(job.id, queue)
    await services.job_manager.update_progress(job.id, PipelineStep.TRANSCRIBING, 0.2, "Done")
    assert queue.empty()


async def test_fail_job_keeps_progress(services, video):
    job = await services.job_manager.create_job(video.id, ["en"])
    await services.job_manager.update_progress(job.id, PipelineStep.GENERATING_DOCS, 0.2, "Generating")

    await services.job_manager.fail_job(job.id, "model down")

    failed = await services.job_manager.get_job(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.error_message == "model down"
    assert failed.progress == 0.2
    assert failed.step == "generating_docs"


async def test_retry_missing_job(services):
    with pytest.raises(NotFoundError):
        await services.jobs.retry_job("nope")


@pytest.mark.parametrize("finish", ["complete", "pending"])
async def test_retry_requires_failed_job(services, video, finish):
    job = await services.job_manager.create_job(video.id, ["en"])
    if finish == "complete":
        await services.job_manager.complete_job(job.id)

    with pytest.raises(InvalidStateError, match="Only failed jobs"):
        await services.jobs.retry_job(job.id)


async def test_retry_blocked_by_active_job(services, video):
    first = await services.job_manager.create_job(video.id, ["en"])
    await services.job_manager.fail_job(first.id, "boom")
    await services.job_manager.create_job(video.id, ["en"])

    with pytest.raises(InvalidStateError):
        await services.jobs.retry_job(first.id)

    assert (await services.job_manager.get_job(first.id)).status == JobStatus.FAILED


async def test_retry_starts_new_job(services, video):
    first = await services.job_manager.create_job(video.id, ["en", "de"])
    await services.job_manager.fail_job(first.id, "boom")

    new_id = await services.jobs.retry_job(first.id)
    await services.runner.join()

    assert new_id != first.id
    new_job = await services.jobs.get_job(new_id)
    assert new_job.languages == ["en", "de"]
    assert new_job.status == JobStatus.COMPLETED

    recent = await services.jobs.list_recent_jobs(video.project_id, limit=5)
    assert {j.id: j.status for j in recent} == {
        new_id: JobStatus.COMPLETED,
        first.id: JobStatus.RETRIED,
    }


async def test_orphaned_jobs_fail_on_startup(services, video):
    job = await services.job_manager.create_job(video.id, ["en"])
    await services.job_manager.mark_processing(job.id)

    # A new process sharing the same database
    manager = JobManager(services.session_factory)
    count = await manager.fail_orphaned_jobs()

    orphan = await manager.get_job(job.id)
    assert count == 1
    assert orphan.status == JobStatus.FAILED
    assert orphan.error_message == ORPHANED_JOB_MESSAGE
    assert await manager.fail_orphaned_jobs() == 0


async def test_job_stream_ends_on_terminal_event(services, video):
    job_id, events = await services.jobs.open_job_stream(video.id, ["en"])

    received = [event async for event in events]

    assert received[-1]["step"] == "complete"
    assert all(event["job_id"] == job_id for event in received)
    assert job_id not in services.job_manager._subscribers


async def test_get_job_missing(services):
    with pytest.raises(NotFoundError, match="Job not found"):
        await services.jobs.get_job("nope")


async def test_runner_survives_handler_errors():
    handled: list[str] = []

    async def handler(job_id: str) -> None:
        if job_id == "bad":
            raise RuntimeError("boom")
        handled.append(job_id)

    runner = JobRunner(handler, workers=2)
    await runner.start()
    assert runner.running

    for job_id in ["a", "bad", "b"]:
        await runner.enqueue(job_id)
    await asyncio.wait_for(runner.join(), timeout=5)
    await runner.stop()

    assert sorted(handled) == ["a", "b"]
    assert not runner.running
