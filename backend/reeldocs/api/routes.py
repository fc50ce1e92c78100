"""
HTTP API routes for the documentation pipeline.

Provides endpoints for:
- Creating projects and registering/uploading/deleting videos
- Starting processing (plain and SSE streaming)
- Retrying failed jobs
- Querying job status and project job lists
- Re-translating a single article
"""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.exc import IntegrityError

from reeldocs.db.models import Project, Video, new_id
from reeldocs.db.repositories import JobRepository, ProjectRepository, VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import (
    ArticleResponse,
    ArticleTranslateRequest,
    JobCreatedResponse,
    JobResponse,
    ProcessRequest,
    ProjectCreateRequest,
    ProjectResponse,
    RetryRequest,
    VideoCreateRequest,
    VideoResponse,
    VideoStatus,
)
from reeldocs.services.container import ServiceContainer
from reeldocs.services.errors import InvalidStateError, NotFoundError
from reeldocs.services.storage import StorageError
from reeldocs.services.translator import TranslationError
from reeldocs.utils.text_utils import slugify

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["pipeline"])


def get_services(request: Request) -> ServiceContainer:
    """Services built in the application lifespan."""
    return request.app.state.services


# ═══════════════════════════════════════════════════════════════════════════
# Projects and videos
# ═══════════════════════════════════════════════════════════════════════════


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreateRequest,
    services: ServiceContainer = Depends(get_services),
) -> Project:
    """
    Create a documentation project.

    Raises:
        409: Slug already taken
    """
    slug = slugify(request.slug or request.name)
    try:
        async with session_scope(services.session_factory) as session:
            project = await ProjectRepository(session).create(name=request.name, slug=slug)
    except IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"Project slug already exists: {slug}") from e

    logger.info(f"Created project {project.id} ({slug})")
    return project


@router.post("/videos", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    request: VideoCreateRequest,
    services: ServiceContainer = Depends(get_services),
) -> Video:
    """
    Register a video; its bytes are sent with PUT /api/videos/{id}/file.

    Raises:
        404: Project not found
    """
    async with session_scope(services.session_factory) as session:
        project = await ProjectRepository(session).get_by_id(request.project_id)
        if project is None:
            raise HTTPException(status_code=404, detail=f"Project not found: {request.project_id}")

        video_id = new_id()
        video = await VideoRepository(session).create(
            id=video_id,
            project_id=project.id,
            title=request.title,
            storage_path=f"{project.id}/{video_id}.mp4",
            status=VideoStatus.UPLOADING.value,
            captions_by_language={},
        )

    logger.info(f"Registered video {video.id} in project {project.id}")
    return video


@router.put("/videos/{video_id}/file", response_model=VideoResponse)
async def upload_video_file(
    video_id: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> Video:
    """
    Store the video bytes (request body) at the video's storage path.

    Raises:
        404: Video not found
        422: Empty body
    """
    async with session_scope(services.session_factory) as session:
        video = await VideoRepository(session).get_by_id(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail=f"Video not found: {video_id}")

    data = await request.body()
    if not data:
        raise HTTPException(status_code=422, detail="Empty video file")

    content_type = request.headers.get("content-type", services.settings.video_mime_type)
    await services.storage.upload(video.storage_path, data, content_type)
    return video


@router.delete("/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: str,
    services: ServiceContainer = Depends(get_services),
) -> Response:
    """
    Delete a video, its segments and its stored file.

    Articles generated from the video are kept.

    Raises:
        404: Video not found
        409: Video has an active job
    """
    async with session_scope(services.session_factory) as session:
        videos = VideoRepository(session)
        video = await videos.get_by_id(video_id)
        if video is None:
            raise HTTPException(status_code=404, detail=f"Video not found: {video_id}")
        if await JobRepository(session).get_active_for_video(video_id):
            raise HTTPException(status_code=409, detail=f"Video {video_id} is being processed")

        storage_path = video.storage_path
        await videos.delete(video_id)

    await services.storage.remove(storage_path)
    logger.info(f"Deleted video {video_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════════════════════
# Processing
# ═══════════════════════════════════════════════════════════════════════════


@router.post(
    "/videos/process",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_processing(
    request: ProcessRequest,
    services: ServiceContainer = Depends(get_services),
) -> JobCreatedResponse:
    """
    Start the documentation pipeline for a video.

    Returns immediately; poll GET /api/jobs/{job_id} or connect to
    /ws/jobs/{job_id} for progress.

    Raises:
        404: Video not found
        409: Video already has an active job
    """
    job_id = await services.jobs.start_job(request.video_id, request.languages)
    logger.info(f"Started job {job_id} for video {request.video_id}")
    return JobCreatedResponse(job_id=job_id)


@router.post("/videos/process/stream")
async def start_processing_stream(
    request: ProcessRequest,
    services: ServiceContainer = Depends(get_services),
) -> StreamingResponse:
    """
    Start the pipeline and stream progress as Server-Sent Events.

    Events: "data: {job_id, status, step, message, progress, error}\\n\\n",
    ending with step "complete" or "error".

    Raises:
        404: Video not found
        409: Video already has an active job
    """
    job_id, events = await services.jobs.open_job_stream(request.video_id, request.languages)
    logger.info(f"Started streamed job {job_id} for video {request.video_id}")
    return create_sse_response(_sse_events(events))


@router.post("/videos/process/retry", response_model=JobCreatedResponse)
async def retry_processing(
    request: RetryRequest,
    services: ServiceContainer = Depends(get_services),
) -> JobCreatedResponse:
    """
    Retry a failed job; completed stages are skipped.

    Raises:
        404: Job not found
        409: Job is not failed, or the video has an active job
    """
    job_id = await services.jobs.retry_job(request.job_id)
    return JobCreatedResponse(job_id=job_id)


async def _sse_events(events: AsyncIterator[dict]) -> AsyncIterator[str]:
    async for event in events:
        yield f"data: {json.dumps(event)}\n\n"


def create_sse_response(generator: AsyncIterator[str]) -> StreamingResponse:
    """Create SSE StreamingResponse with proper headers."""
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# ═══════════════════════════════════════════════════════════════════════════
# Jobs
# ═══════════════════════════════════════════════════════════════════════════


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job_status(
    job_id: str,
    services: ServiceContainer = Depends(get_services),
) -> JobResponse:
    """
    Get processing job status.

    Raises:
        404: Job not found
    """
    return await services.jobs.get_job(job_id)


@router.get("/projects/{project_id}/jobs/active", response_model=list[JobResponse])
async def list_active_jobs(
    project_id: str,
    services: ServiceContainer = Depends(get_services),
) -> list[JobResponse]:
    """Pending and processing jobs of a project, newest first."""
    return await services.jobs.list_active_jobs(project_id)


@router.get("/projects/{project_id}/jobs", response_model=list[JobResponse])
async def list_recent_jobs(
    project_id: str,
    limit: int = Query(5, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
) -> list[JobResponse]:
    """Most recent jobs of a project in any status."""
    return await services.jobs.list_recent_jobs(project_id, limit)


# ═══════════════════════════════════════════════════════════════════════════
# Articles
# ═══════════════════════════════════════════════════════════════════════════


@router.post("/articles/{article_id}/translate", response_model=ArticleResponse)
async def translate_article(
    article_id: str,
    request: ArticleTranslateRequest | None = None,
    services: ServiceContainer = Depends(get_services),
) -> ArticleResponse:
    """
    Re-translate one article from its source-language sibling.

    Raises:
        404: Article or its source-language sibling not found
        409: Article is itself in the source language
        502: Translation failed (article unchanged)
    """
    source_language = request.source_language if request else "en"
    return await services.articles.retranslate(article_id, source_language)


def register_error_handlers(app: FastAPI) -> None:
    """Map job service errors to HTTP status codes."""

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidStateError)
    async def _invalid_state(request: Request, exc: InvalidStateError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError):
        logger.error(f"Storage {exc.operation} failed for {exc.path}: {exc}")
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    @app.exception_handler(TranslationError)
    async def _translation_error(request: Request, exc: TranslationError):
        logger.error(f"Article translation failed: {exc}")
        return JSONResponse(status_code=502, content={"detail": str(exc)})
