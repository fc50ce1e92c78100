"""
Generate-docs stage: segments -> chapters and primary-language articles.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.models import Article
from reeldocs.db.repositories import ArticleRepository, ChapterRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import ArticleSnapshot, ArticleStatus, PipelineStep
from reeldocs.services.doc_generator import DocGenerator
from reeldocs.services.stages.base import BaseStage, StageContext, StageError
from reeldocs.utils.content_tree import sections_to_document
from reeldocs.utils.text_utils import slugify

logger = logging.getLogger(__name__)


class GenerateDocsStage(BaseStage):
    """Generate documentation and store one article per chapter.

    Input (from context):
        - extract: list[SegmentData]

    Output:
        list[ArticleSnapshot] in chapter order

    Chapters are upserted by (project, slug), so regenerating a title
    that already exists reuses the chapter row.
    """

    name = "generate_docs"
    depends_on = ["extract"]
    step = PipelineStep.GENERATING_DOCS

    def __init__(
        self,
        generator: DocGenerator,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.generator = generator
        self.session_factory = session_factory

    async def execute(self, context: StageContext) -> list[ArticleSnapshot]:
        """Generate and store articles.

        Raises:
            StageError: If generation, parsing or persistence fails
        """
        self.validate_context(context)
        segments = context.get_result("extract")
        language = context.primary_language

        try:
            doc = await self.generator.generate(segments)

            snapshots: list[ArticleSnapshot] = []
            async with session_scope(self.session_factory) as session:
                chapters = ChapterRepository(session)
                articles = ArticleRepository(session)

                for position, chapter in enumerate(doc.chapters):
                    slug = slugify(chapter.title)
                    chapter_id = await chapters.upsert(context.project_id, chapter.title, slug)

                    article: Article = await articles.create(
                        project_id=context.project_id,
                        video_id=context.video_id,
                        chapter_id=chapter_id,
                        title=chapter.title,
                        slug=slug,
                        language=language,
                        content_json=sections_to_document(chapter.sections),
                        content_text=chapter.content_text,
                        status=ArticleStatus.DRAFT.value,
                        position=position,
                    )
                    snapshots.append(ArticleSnapshot.model_validate(article))

        except Exception as e:
            raise StageError(self.name, f"Documentation generation failed: {e}", e) from e

        logger.info(f"Stored {len(snapshots)} {language} articles for video {context.video_id}")
        return snapshots
