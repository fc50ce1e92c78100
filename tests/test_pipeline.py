"""End-to-end tests of the processing pipeline with fake AI services."""

from reeldocs.db import session_scope
from reeldocs.db.repositories import ArticleRepository, SegmentRepository, VideoRepository
from reeldocs.models.schemas import JobStatus, VideoFileState, VideoStatus
from reeldocs.services.ai_clients import AIClientError
from reeldocs.services.captions import parse_vtt

from conftest import DOCUMENT


async def _run(services, video, languages):
    job = await services.job_manager.create_job(video.id, languages)
    await services.orchestrator.run(job.id)
    return await services.job_manager.get_job(job.id)


async def _load(services, video_id):
    async with session_scope(services.session_factory) as session:
        video = await VideoRepository(session).get_by_id(video_id)
        segments = await SegmentRepository(session).count_for_video(video_id)
    return video, segments


async def _articles(services, video_id, language):
    async with session_scope(services.session_factory) as session:
        return await ArticleRepository(session).list_for(video_id, language)


def _drain(queue) -> list[dict]:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


async def test_full_run_with_translation(services, video, text_client):
    job = await _run(services, video, ["en", "de"])

    assert job.status == JobStatus.COMPLETED
    assert job.progress == 1.0
    assert job.step == "complete"
    assert job.started_at is not None and job.completed_at is not None

    stored, segment_count = await _load(services, video.id)
    assert stored.status == VideoStatus.READY.value
    assert segment_count == 3
    assert set(stored.captions_by_language) == {"en", "de"}
    assert stored.vtt_content == stored.captions_by_language["en"]

    en_cues = parse_vtt(stored.captions_by_language["en"])
    de_cues = parse_vtt(stored.captions_by_language["de"])
    assert [(c.start, c.end) for c in de_cues] == [(c.start, c.end) for c in en_cues]
    assert de_cues[0].text == "[de] Welcome to the demo."

    en = await _articles(services, video.id, "en")
    de = await _articles(services, video.id, "de")
    assert [a.title for a in en] == ["Installation", "Troubleshooting"]
    assert [a.title for a in de] == ["[de] Installation", "[de] Troubleshooting"]
    assert [a.slug for a in de] == [a.slug for a in en]
    assert [a.chapter_id for a in de] == [a.chapter_id for a in en]
    assert all(a.status == "draft" for a in en + de)
    assert text_client.doc_calls == 1


async def test_generated_content_tree(services, video, text_client):
    text_client.document = {"chapters": [{"title": "Setup", "sections": [
        {"heading": "Install", "content": "Run [video:01:15] npm install."}
    ]}]}

    job = await _run(services, video, ["en"])

    assert job.status == JobStatus.COMPLETED
    (article,) = await _articles(services, video.id, "en")
    assert article.slug == "setup"
    assert article.content_json == {"type": "doc", "content": [
        {"type": "heading", "attrs": {"level": 2}, "content": [{"type": "text", "text": "Install"}]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Run "},
            {"type": "timestampLink", "attrs": {"seconds": 75}},
            {"type": "text", "text": " npm install."},
        ]},
    ]}


async def test_failed_article_translation_is_skipped(services, video, text_client):
    text_client.fail_on = {"fr": "Troubleshooting"}

    job = await _run(services, video, ["en", "fr"])

    assert job.status == JobStatus.COMPLETED
    fr = await _articles(services, video.id, "fr")
    assert [a.title for a in fr] == ["[fr] Installation"]
    stored, _ = await _load(services, video.id)
    assert "fr" in stored.captions_by_language


async def test_failed_caption_translation_keeps_articles(services, video, text_client):
    text_client.fail_on = {"de": "Welcome"}

    job = await _run(services, video, ["en", "de"])

    assert job.status == JobStatus.COMPLETED
    stored, _ = await _load(services, video.id)
    assert set(stored.captions_by_language) == {"en"}
    assert len(await _articles(services, video.id, "de")) == 2


async def test_primary_language_repeated_in_targets(services, video, text_client):
    job = await _run(services, video, ["en", "en", "de"])

    assert job.status == JobStatus.COMPLETED
    assert len(await _articles(services, video.id, "en")) == 2
    assert set(text_client.translation_calls) == {"de"}


async def test_rerun_reuses_persisted_output(services, video, video_client, text_client):
    await _run(services, video, ["en", "de"])
    calls = (video_client.generate_calls, text_client.doc_calls, len(text_client.translation_calls))

    job = await _run(services, video, ["en", "de"])

    assert job.status == JobStatus.COMPLETED
    assert (video_client.generate_calls, text_client.doc_calls, len(text_client.translation_calls)) == calls
    _, segment_count = await _load(services, video.id)
    assert segment_count == 3
    assert len(await _articles(services, video.id, "en")) == 2
    assert len(await _articles(services, video.id, "de")) == 2


async def test_extraction_error_fails_job(services, video, video_client, text_client):
    video_client.error = AIClientError("video model unavailable", provider="gemini")

    job = await _run(services, video, ["en", "de"])

    assert job.status == JobStatus.FAILED
    assert "Content extraction failed" in job.error_message
    assert "video model unavailable" in job.error_message
    assert job.completed_at is not None
    stored, segment_count = await _load(services, video.id)
    assert stored.status == VideoStatus.FAILED.value
    assert segment_count == 0
    assert text_client.doc_calls == 0


async def test_processing_timeout_fails_job(services, video, video_client, settings):
    video_client.states = [VideoFileState.PROCESSING]

    job = await _run(services, video, ["en"])

    assert job.status == JobStatus.FAILED
    assert "still processing" in job.error_message
    assert video_client.poll_calls == settings.video_poll_max_attempts
    assert video_client.generate_calls == 0


async def test_retry_resumes_after_generation_failure(services, video, video_client, text_client):
    text_client.document = "The model refused."

    failed = await _run(services, video, ["en", "de"])

    assert failed.status == JobStatus.FAILED
    assert "Documentation generation failed" in failed.error_message
    stored, segment_count = await _load(services, video.id)
    assert segment_count == 3
    assert "en" in stored.captions_by_language

    text_client.document = DOCUMENT
    new_job_id = await services.jobs.retry_job(failed.id)
    await services.runner.join()

    retried = await services.job_manager.get_job(new_job_id)
    old = await services.job_manager.get_job(failed.id)
    assert retried.status == JobStatus.COMPLETED
    assert old.status == JobStatus.RETRIED
    assert video_client.generate_calls == 1
    assert text_client.doc_calls == 2
    assert len(await _articles(services, video.id, "de")) == 2


async def test_progress_events(services, video):
    job = await services.job_manager.create_job(video.id, ["en", "de", "fr"])
    queue = services.job_manager.subscribe(job.id)

    await services.orchestrator.run(job.id)
    events = _drain(queue)
    services.job_manager.unsubscribe(job.id, queue)

    progress = [event["progress"] for event in events]
    assert progress == sorted(progress)
    assert all(value < 1.0 for value in progress[:-1])
    assert events[0]["step"] == "uploading"
    assert events[-1] == {
        "job_id": job.id,
        "status": "completed",
        "step": "complete",
        "message": "Processing complete",
        "progress": 1.0,
        "error": None,
    }
    messages = [event["message"] for event in events]
    assert "Extracted 3 segments" in messages
    assert "Generated 2 articles" in messages
    assert messages.index("Translated to de: 2 articles") < messages.index("Translating to fr...")


async def test_translation_message_counts_failed_articles(services, video, text_client):
    text_client.fail_on = {"fr": "Troubleshooting"}
    job = await services.job_manager.create_job(video.id, ["en", "fr"])
    queue = services.job_manager.subscribe(job.id)

    await services.orchestrator.run(job.id)
    messages = [event["message"] for event in _drain(queue)]

    assert "Translated to fr: 1 articles, 1 failed" in messages


async def test_failure_event_is_last(services, video, video_client):
    video_client.error = AIClientError("boom", provider="gemini")
    job = await services.job_manager.create_job(video.id, ["en"])
    queue = services.job_manager.subscribe(job.id)

    await services.orchestrator.run(job.id)
    events = _drain(queue)

    assert events[-1]["step"] == "error"
    assert events[-1]["status"] == "failed"
    assert "boom" in events[-1]["error"]


async def test_missing_job_is_ignored(services):
    await services.orchestrator.run("does-not-exist")
