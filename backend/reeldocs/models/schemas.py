"""
Pydantic models for the video documentation pipeline.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class VideoStatus(str, Enum):
    """Lifecycle of an uploaded video."""
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Status of a processing job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRIED = "retried"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.RETRIED)


ACTIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


class PipelineStep(str, Enum):
    """Step names reported on the job record (polled by the UI)."""
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    GENERATING_DOCS = "generating_docs"
    TRANSLATING = "translating"
    COMPLETE = "complete"
    ERROR = "error"


class ArticleStatus(str, Enum):
    """Publication status of an article."""
    DRAFT = "draft"
    PUBLISHED = "published"


# ═══════════════════════════════════════════════════════════════════════════
# AI service payloads
# ═══════════════════════════════════════════════════════════════════════════


class SegmentData(BaseModel):
    """One timestamped slice of a video as returned by content extraction."""

    start_time: float = Field(..., ge=0)
    end_time: float = Field(..., ge=0)
    spoken_content: str = ""
    visual_context: str = ""
    topic: str = ""


class VideoFileState(str, Enum):
    """Processing state of a file uploaded to the video-understanding service."""
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class VideoFileInfo(BaseModel):
    """Poll result for an uploaded video file."""

    name: str
    state: VideoFileState
    uri: str | None = None
    mime_type: str | None = None


class GeneratedSection(BaseModel):
    """One section of a generated chapter."""

    heading: str
    content: str = ""
    timestamp_ref: str | None = None

    @field_validator("timestamp_ref", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class GeneratedChapter(BaseModel):
    """One generated chapter; becomes one article."""

    title: str
    sections: list[GeneratedSection] = Field(default_factory=list)

    @computed_field
    @property
    def content_text(self) -> str:
        """Plain text used for search and as translation context."""
        return "\n\n".join(f"{s.heading}\n{s.content}" for s in self.sections)


class GeneratedDoc(BaseModel):
    """Document-generation response: {title, chapters: [...]}."""

    title: str = ""
    chapters: list[GeneratedChapter] = Field(default_factory=list)


class ArticleSnapshot(BaseModel):
    """Primary-language article carried in the pipeline working set."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    video_id: str
    chapter_id: str | None = None
    title: str
    slug: str
    content_json: dict[str, Any]
    content_text: str
    position: int = 0


class TranslatedArticle(BaseModel):
    """Result of translating one article."""

    title: str
    content_json: dict[str, Any]
    content_text: str


# ═══════════════════════════════════════════════════════════════════════════
# API models
# ═══════════════════════════════════════════════════════════════════════════


class ProjectCreateRequest(BaseModel):
    """Request to create a documentation project."""

    name: str = Field(..., min_length=1)
    slug: str | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str


class VideoCreateRequest(BaseModel):
    """Request to register a video before uploading its bytes."""

    project_id: str
    title: str = "Untitled Video"


class VideoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    title: str
    storage_path: str
    status: VideoStatus
    created_at: datetime | None = None


class ProcessRequest(BaseModel):
    """Request to start the pipeline for a video."""

    video_id: str
    languages: list[str] = Field(default_factory=lambda: ["en"], min_length=1)

    @field_validator("languages")
    @classmethod
    def _normalize_languages(cls, value: list[str]) -> list[str]:
        # Keep request order, drop blanks and duplicates
        seen: list[str] = []
        for lang in value:
            lang = lang.strip()
            if lang and lang not in seen:
                seen.append(lang)
        if not seen:
            raise ValueError("At least one language is required")
        return seen


class ArticleTranslateRequest(BaseModel):
    """Request to re-translate one article from its source-language sibling."""

    source_language: str = Field("en", min_length=1)


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    video_id: str | None = None
    chapter_id: str | None = None
    title: str
    slug: str
    language: str
    status: str
    content_json: dict[str, Any]
    content_text: str


class RetryRequest(BaseModel):
    """Request to retry a failed job."""

    job_id: str


class JobCreatedResponse(BaseModel):
    job_id: str


class JobResponse(BaseModel):
    """Job record as exposed to polling clients."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    video_id: str
    project_id: str
    status: JobStatus
    step: str | None = None
    step_message: str | None = None
    progress: float = 0.0
    languages: list[str]
    error_message: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ProgressEvent(BaseModel):
    """Push update for streaming clients."""

    job_id: str
    status: JobStatus
    step: str
    message: str
    progress: float
    error: str | None = None


class DefaultModelsResponse(BaseModel):
    """Model used by each pipeline stage."""

    video: str
    docs: str
    translation: str


class ProviderStatus(BaseModel):
    provider: str
    name: str
    configured: bool
