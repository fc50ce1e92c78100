"""
Translate stage: primary captions and articles -> one target language.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reeldocs.db.repositories import ArticleRepository, VideoRepository
from reeldocs.db.session import session_scope
from reeldocs.models.schemas import ArticleSnapshot, ArticleStatus, PipelineStep
from reeldocs.services.stages.base import BaseStage, StageContext
from reeldocs.services.translator import Translator

logger = logging.getLogger(__name__)


@dataclass
class TranslationOutcome:
    """What one language run produced.

    Attributes:
        language: Target language
        captions_translated: Captions were translated in this run
        articles_translated: Articles stored in this run
        articles_failed: Articles whose translation failed
    """

    language: str
    captions_translated: bool = False
    articles_translated: int = 0
    articles_failed: int = 0


class TranslateStage(BaseStage):
    """Translate captions and articles to the language in metadata.

    Input (from context):
        - caption: primary-language WebVTT
        - generate_docs: list[ArticleSnapshot] in generation order
        - metadata target_language
        - metadata captions_done: skip caption translation when True

    Output:
        TranslationOutcome

    Failures are isolated: a caption failure does not stop articles and
    one article failing does not stop the others. Nothing here aborts
    the pipeline.
    """

    name = "translate"
    depends_on = ["caption", "generate_docs"]
    step = PipelineStep.TRANSLATING

    def __init__(
        self,
        translator: Translator,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.translator = translator
        self.session_factory = session_factory

    async def execute(self, context: StageContext) -> TranslationOutcome:
        self.validate_context(context)
        language: str = context.get_metadata("target_language")
        outcome = TranslationOutcome(language=language)

        if not context.get_metadata("captions_done", False):
            outcome.captions_translated = await self._translate_captions(context, language)

        articles: list[ArticleSnapshot] = context.get_result("generate_docs")
        for article in articles:
            if await self._translate_article(context, article, language):
                outcome.articles_translated += 1
            else:
                outcome.articles_failed += 1

        logger.info(
            f"Translation to {language}: {outcome.articles_translated} articles, "
            f"{outcome.articles_failed} failed, captions={outcome.captions_translated}"
        )
        return outcome

    async def _translate_captions(self, context: StageContext, language: str) -> bool:
        vtt: str = context.get_result("caption")
        try:
            translated = await self.translator.translate_captions(vtt, language)
            async with session_scope(self.session_factory) as session:
                await VideoRepository(session).set_captions(context.video_id, language, translated)
            return True
        except Exception as e:
            logger.warning(f"Caption translation to {language} failed for video {context.video_id}: {e}")
            return False

    async def _translate_article(
        self,
        context: StageContext,
        article: ArticleSnapshot,
        language: str,
    ) -> bool:
        try:
            translated = await self.translator.translate_article(article, language)
            async with session_scope(self.session_factory) as session:
                await ArticleRepository(session).create(
                    project_id=article.project_id,
                    video_id=article.video_id,
                    chapter_id=article.chapter_id,
                    title=translated.title,
                    slug=article.slug,
                    language=language,
                    content_json=translated.content_json,
                    content_text=translated.content_text,
                    status=ArticleStatus.DRAFT.value,
                    position=article.position,
                )
            return True
        except Exception as e:
            logger.warning(f"Translation of article '{article.title}' to {language} failed: {e}")
            return False
