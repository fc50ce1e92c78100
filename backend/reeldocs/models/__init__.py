"""
Pydantic models for the video documentation pipeline.

Exports:
    - Status enums (VideoStatus, JobStatus, PipelineStep, ArticleStatus)
    - AI payload models (SegmentData, GeneratedDoc, ...)
    - API request/response models
"""

from reeldocs.models.schemas import (
    ACTIVE_JOB_STATUSES,
    ArticleSnapshot,
    ArticleStatus,
    DefaultModelsResponse,
    GeneratedChapter,
    GeneratedDoc,
    GeneratedSection,
    JobCreatedResponse,
    JobResponse,
    JobStatus,
    PipelineStep,
    ProcessRequest,
    ProgressEvent,
    ProjectCreateRequest,
    ProjectResponse,
    ProviderStatus,
    RetryRequest,
    SegmentData,
    TranslatedArticle,
    VideoCreateRequest,
    VideoFileInfo,
    VideoFileState,
    VideoResponse,
    VideoStatus,
)

__all__ = [
    # Enums
    "ACTIVE_JOB_STATUSES",
    "ArticleStatus",
    "JobStatus",
    "PipelineStep",
    "VideoFileState",
    "VideoStatus",
    # AI payloads
    "ArticleSnapshot",
    "GeneratedChapter",
    "GeneratedDoc",
    "GeneratedSection",
    "SegmentData",
    "TranslatedArticle",
    "VideoFileInfo",
    # API
    "DefaultModelsResponse",
    "JobCreatedResponse",
    "JobResponse",
    "ProcessRequest",
    "ProgressEvent",
    "ProjectCreateRequest",
    "ProjectResponse",
    "ProviderStatus",
    "RetryRequest",
    "VideoCreateRequest",
    "VideoResponse",
]
