"""
Repositories over the ORM models.

Each repository wraps one AsyncSession; callers own the transaction
(see session_scope). Methods flush where the caller needs generated ids.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from reeldocs.db.models import (
    Article,
    Base,
    Chapter,
    ProcessingJob,
    Project,
    Video,
    VideoSegment,
    new_id,
    utcnow,
)
from reeldocs.models.schemas import ACTIVE_JOB_STATUSES, SegmentData

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Generic repository for CRUD operations."""

    model: type[T]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: str) -> T | None:
        return await self.session.get(self.model, id)

    async def create(self, **kwargs) -> T:
        if "id" not in kwargs:
            kwargs["id"] = new_id()
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def delete(self, id: str) -> bool:
        instance = await self.get_by_id(id)
        if instance is None:
            return False
        await self.session.delete(instance)
        await self.session.flush()
        return True


class ProjectRepository(BaseRepository[Project]):
    model = Project


class VideoRepository(BaseRepository[Video]):
    model = Video

    async def set_status(self, video_id: str, status: str) -> None:
        await self.session.execute(
            update(Video).where(Video.id == video_id).values(status=status)
        )

    async def set_captions(
        self,
        video_id: str,
        language: str,
        vtt: str,
        primary: bool = False,
    ) -> None:
        """
        Store WebVTT for one language.

        The primary language is also written to ``vtt_content``.
        """
        video = await self.get_by_id(video_id)
        if video is None:
            raise LookupError(f"Video not found: {video_id}")

        # Reassign so the JSON column is marked dirty
        captions = dict(video.captions_by_language or {})
        captions[language] = vtt
        video.captions_by_language = captions
        if primary:
            video.vtt_content = vtt
        await self.session.flush()

    async def get_captions(self, video_id: str, language: str) -> str | None:
        video = await self.get_by_id(video_id)
        if video is None:
            return None
        return (video.captions_by_language or {}).get(language)


class SegmentRepository(BaseRepository[VideoSegment]):
    model = VideoSegment

    async def count_for_video(self, video_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(VideoSegment).where(
                VideoSegment.video_id == video_id
            )
        )
        return int(result.scalar_one())

    async def list_for_video(self, video_id: str) -> list[VideoSegment]:
        result = await self.session.execute(
            select(VideoSegment)
            .where(VideoSegment.video_id == video_id)
            .order_by(VideoSegment.order)
        )
        return list(result.scalars().all())

    async def add_batch(self, video_id: str, segments: Sequence[SegmentData]) -> int:
        """
        Insert all segments of one extraction in a single flush.

        ``order`` is the position in the given sequence (0-based).
        """
        rows = [
            VideoSegment(
                id=new_id(),
                video_id=video_id,
                start_time=segment.start_time,
                end_time=segment.end_time,
                spoken_content=segment.spoken_content,
                visual_context=segment.visual_context,
                topic=segment.topic,
                order=index,
            )
            for index, segment in enumerate(segments)
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return len(rows)


class ChapterRepository(BaseRepository[Chapter]):
    model = Chapter

    async def upsert(self, project_id: str, title: str, slug: str) -> str:
        """
        Insert a chapter or update the title of the existing (project, slug) row.

        Returns:
            Chapter id (existing id on conflict)
        """
        dialect = self.session.get_bind().dialect.name
        values = {"id": new_id(), "project_id": project_id, "title": title, "slug": slug}

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(Chapter).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Chapter.project_id, Chapter.slug],
                set_={"title": stmt.excluded.title},
            ).returning(Chapter.id)
            result = await self.session.execute(stmt)
            return result.scalar_one()

        # Other backends: read-then-write inside the caller's transaction
        result = await self.session.execute(
            select(Chapter).where(Chapter.project_id == project_id, Chapter.slug == slug)
        )
        chapter = result.scalar_one_or_none()
        if chapter is None:
            chapter = await self.create(**values)
        else:
            chapter.title = title
            await self.session.flush()
        return chapter.id

    async def list_for_project(self, project_id: str) -> list[Chapter]:
        result = await self.session.execute(
            select(Chapter).where(Chapter.project_id == project_id).order_by(Chapter.slug)
        )
        return list(result.scalars().all())


class ArticleRepository(BaseRepository[Article]):
    model = Article

    async def count_for(self, video_id: str, language: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Article).where(
                Article.video_id == video_id, Article.language == language
            )
        )
        return int(result.scalar_one())

    async def list_for(self, video_id: str, language: str) -> list[Article]:
        """Articles of one video and language in generation order."""
        result = await self.session.execute(
            select(Article)
            .where(Article.video_id == video_id, Article.language == language)
            .order_by(Article.position, Article.created_at)
        )
        return list(result.scalars().all())

    async def find_sibling(self, article: Article, language: str) -> Article | None:
        """
        Same-slug article of the project in another language.

        An article of the same video wins over older ones from other videos.
        """
        result = await self.session.execute(
            select(Article)
            .where(
                Article.project_id == article.project_id,
                Article.slug == article.slug,
                Article.language == language,
            )
            .order_by((Article.video_id == article.video_id).desc(), Article.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update_content(self, article_id: str, **values: Any) -> Article | None:
        article = await self.get_by_id(article_id)
        if article is None:
            return None
        for key, value in values.items():
            setattr(article, key, value)
        await self.session.flush()
        return article


class JobRepository(BaseRepository[ProcessingJob]):
    model = ProcessingJob

    async def update_fields(self, job_id: str, **values: Any) -> ProcessingJob | None:
        job = await self.get_by_id(job_id)
        if job is None:
            return None
        for key, value in values.items():
            setattr(job, key, value)
        await self.session.flush()
        return job

    async def list_active(self, project_id: str) -> list[ProcessingJob]:
        """Pending and processing jobs of a project, newest first."""
        result = await self.session.execute(
            select(ProcessingJob)
            .where(
                ProcessingJob.project_id == project_id,
                ProcessingJob.status.in_(ACTIVE_JOB_STATUSES),
            )
            .order_by(ProcessingJob.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_recent(self, project_id: str, limit: int = 5) -> list[ProcessingJob]:
        """Most recent jobs of a project in any status, newest first."""
        result = await self.session.execute(
            select(ProcessingJob)
            .where(ProcessingJob.project_id == project_id)
            .order_by(ProcessingJob.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def fail_active(self, message: str, now: datetime | None = None) -> int:
        """
        Mark every pending/processing job failed.

        Returns:
            Number of jobs updated
        """
        result = await self.session.execute(
            update(ProcessingJob)
            .where(ProcessingJob.status.in_(ACTIVE_JOB_STATUSES))
            .values(
                status="failed",
                error_message=message,
                completed_at=now or utcnow(),
            )
        )
        return result.rowcount or 0

    async def get_active_for_video(self, video_id: str) -> ProcessingJob | None:
        result = await self.session.execute(
            select(ProcessingJob).where(
                ProcessingJob.video_id == video_id,
                ProcessingJob.status.in_(ACTIVE_JOB_STATUSES),
            )
        )
        return result.scalar_one_or_none()
