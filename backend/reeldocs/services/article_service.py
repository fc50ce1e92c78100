"""
On-demand article operations.

Pipeline translation failures are not retried automatically; a single
article can be re-translated from its source-language sibling instead.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.repositories import ArticleRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import ArticleResponse, ArticleSnapshot
from reeldocs.services.errors import InvalidStateError, NotFoundError
from reeldocs.services.translator import Translator

logger = logging.getLogger(__name__)


class ArticleService:
    """Re-translation of stored articles."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], translator: Translator):
        self.session_factory = session_factory
        self.translator = translator

    async def retranslate(self, article_id: str, source_language: str = "en") -> ArticleResponse:
        """
        Translate the source-language sibling again and overwrite the article.

        The sibling is the project's article with the same slug in
        ``source_language``. Title, content tree and plain text are
        replaced; id, slug, status and position stay.

        Raises:
            NotFoundError: Article or its source sibling does not exist
            InvalidStateError: Article is itself in the source language
            TranslationError: The translation failed (article unchanged)
        """
        async with session_scope(self.session_factory) as session:
            repo = ArticleRepository(session)
            article = await repo.get_by_id(article_id)
            if article is None:
                raise NotFoundError("article", article_id)
            if article.language == source_language:
                raise InvalidStateError(
                    f"Article {article_id} is already in source language {source_language}"
                )
            source = await repo.find_sibling(article, source_language)
            if source is None:
                raise NotFoundError("source article", article_id)
            target_language = article.language
            snapshot = ArticleSnapshot(
                id=source.id,
                project_id=source.project_id,
                video_id=source.video_id or "",
                chapter_id=source.chapter_id,
                title=source.title,
                slug=source.slug,
                content_json=source.content_json,
                content_text=source.content_text,
                position=source.position,
            )

        logger.info(f"Re-translating article {article_id} from {source_language} to {target_language}")
        translated = await self.translator.translate_article(snapshot, target_language)

        async with session_scope(self.session_factory) as session:
            updated = await ArticleRepository(session).update_content(
                article_id,
                title=translated.title or snapshot.title,
                content_json=translated.content_json,
                content_text=translated.content_text,
            )
            if updated is None:
                raise NotFoundError("article", article_id)
            return ArticleResponse.model_validate(updated)
