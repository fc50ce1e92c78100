"""
Translation of articles and captions.

Structured documents are translated field by field: natural-language
``text`` values are collected, translated as a JSON array and written
back into a copy of the tree. Node types, attrs and marks are never
sent to the model, so they come back unchanged. Code blocks, code-marked
text and timestamp links are left as they are.

Example:
    translator = Translator(claude_client, settings)
    translated = await translator.translate_article(article, "de")
    vtt_de = await translator.translate_captions(vtt, "de")
"""

import copy
import json
import logging
import re
from collections.abc import Iterator
from typing import Any

from reeldocs.config import Settings, load_prompt
from reeldocs.models.schemas import ArticleSnapshot, TranslatedArticle
from reeldocs.services.ai_clients.base import AIClientError, BaseAIClient
from reeldocs.services.captions import cues_to_vtt, parse_vtt
from reeldocs.utils.json_utils import parse_llm_json

logger = logging.getLogger(__name__)

# Subtrees whose text is never translated
UNTRANSLATABLE_NODES = {"codeBlock"}
UNTRANSLATABLE_MARKS = {"code"}

_EDGE_WHITESPACE_RE = re.compile(r"^(\s*)(.*?)(\s*)$", re.DOTALL)


class TranslationError(Exception):
    """Raised when a translation response is missing or malformed."""

    pass


class Translator:
    """
    Translate article content, plain text and captions.

    Args:
        ai_client: Text generation client
        settings: Application settings (batch size, prompts)
        model: Model override (default: settings.translation_model)
    """

    def __init__(self, ai_client: BaseAIClient, settings: Settings, model: str | None = None):
        self.ai_client = ai_client
        self.settings = settings
        self.model = model or settings.translation_model

    # ═══════════════════════════════════════════════════════════════════════
    # Text
    # ═══════════════════════════════════════════════════════════════════════

    async def translate_text(self, text: str, language: str) -> str:
        """
        Translate free text, keeping formatting and timestamp references.

        Raises:
            TranslationError: If the model returns nothing
            AIClientError: If the model call fails
        """
        if not text.strip():
            return text

        template = load_prompt("translate", "text", self.model, self.settings)
        prompt = template.format(language=language, content=text)
        response, _usage = await self.ai_client.generate(prompt, model=self.model)

        translated = response.strip()
        if not translated:
            raise TranslationError(f"Empty translation to {language}")
        return translated

    async def translate_texts(self, texts: list[str], language: str) -> list[str]:
        """
        Translate a list of short texts, preserving order and count.

        Texts are sent in batches of ``translation_batch_size``. Leading
        and trailing whitespace of every text is kept as is.

        Raises:
            TranslationError: If a batch response is not a list of the same length
            AIClientError: If the model call fails
        """
        if not texts:
            return []

        batch_size = max(self.settings.translation_batch_size, 1)
        results: list[str] = []

        for start in range(0, len(texts), batch_size):
            batch = texts[start:start + batch_size]
            edges = [_split_edges(text) for text in batch]
            cores = [core for _, core, _ in edges]

            translated = await self._translate_batch(cores, language)

            results.extend(
                f"{lead}{new_core}{trail}"
                for (lead, _, trail), new_core in zip(edges, translated)
            )

        return results

    async def _translate_batch(self, texts: list[str], language: str) -> list[str]:
        template = load_prompt("translate", "batch", self.model, self.settings)
        prompt = template.format(
            language=language,
            count=len(texts),
            texts_json=json.dumps(texts, ensure_ascii=False, indent=2),
        )
        response, _usage = await self.ai_client.generate(prompt, model=self.model, json_mode=True)

        try:
            data = parse_llm_json(response, json_type="auto")
        except ValueError as e:
            raise TranslationError(f"Invalid translation JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("translations")
        if not isinstance(data, list) or len(data) != len(texts):
            got = len(data) if isinstance(data, list) else type(data).__name__
            raise TranslationError(
                f"Expected {len(texts)} translations to {language}, got {got}"
            )
        if not all(isinstance(item, str) for item in data):
            raise TranslationError("Translation list contains non-string items")

        logger.debug(f"Translated batch of {len(texts)} texts to {language}")
        return data

    # ═══════════════════════════════════════════════════════════════════════
    # Structured documents
    # ═══════════════════════════════════════════════════════════════════════

    async def translate_document(self, document: dict[str, Any], language: str) -> dict[str, Any]:
        """
        Translate the natural-language text of a structured document.

        Returns a new document; the input is not modified.

        Raises:
            TranslationError: If the model response is malformed
            AIClientError: If the model call fails
        """
        translated_doc = copy.deepcopy(document)
        nodes = list(iter_translatable_nodes(translated_doc))
        if not nodes:
            return translated_doc

        translations = await self.translate_texts([node["text"] for node in nodes], language)
        for node, text in zip(nodes, translations):
            node["text"] = text

        logger.debug(f"Translated {len(nodes)} text nodes to {language}")
        return translated_doc

    # ═══════════════════════════════════════════════════════════════════════
    # Captions
    # ═══════════════════════════════════════════════════════════════════════

    async def translate_captions(self, vtt: str, language: str) -> str:
        """
        Translate cue texts of a WebVTT document; timings are kept.

        Raises:
            TranslationError: If the captions cannot be parsed or translated
            AIClientError: If the model call fails
        """
        try:
            cues = parse_vtt(vtt)
        except ValueError as e:
            raise TranslationError(f"Cannot translate captions: {e}") from e

        indexes = [i for i, cue in enumerate(cues) if cue.text.strip()]
        translations = await self.translate_texts([cues[i].text for i in indexes], language)

        for i, text in zip(indexes, translations):
            cues[i] = cues[i].with_text(text)

        logger.info(f"Translated {len(indexes)} caption cues to {language}")
        return cues_to_vtt(cues)

    # ═══════════════════════════════════════════════════════════════════════
    # Articles
    # ═══════════════════════════════════════════════════════════════════════

    async def translate_article(self, article: ArticleSnapshot, language: str) -> TranslatedArticle:
        """
        Translate one article: structured content, plain text and title.

        Raises:
            TranslationError: If any part fails to translate
        """
        try:
            content_json = await self.translate_document(article.content_json, language)
            content_text = await self.translate_text(article.content_text, language)
            title = await self.translate_text(article.title, language)
        except AIClientError as e:
            raise TranslationError(
                f"Failed to translate article '{article.title}' to {language}: {e}"
            ) from e

        return TranslatedArticle(title=title, content_json=content_json, content_text=content_text)


def iter_translatable_nodes(node: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """
    Yield text nodes whose ``text`` is natural language, in document order.

    Skipped: code block subtrees, code-marked text, link text that is the
    link URL itself, text without letters.
    """
    if node.get("type") in UNTRANSLATABLE_NODES:
        return

    if node.get("type") == "text":
        marks = node.get("marks") or []
        text = node.get("text") or ""
        if (
            not {mark.get("type") for mark in marks} & UNTRANSLATABLE_MARKS
            and not _is_url_text(text, marks)
            and any(ch.isalpha() for ch in text)
        ):
            yield node
        return

    for child in node.get("content") or []:
        yield from iter_translatable_nodes(child)


def _split_edges(text: str) -> tuple[str, str, str]:
    match = _EDGE_WHITESPACE_RE.match(text)
    return match.group(1), match.group(2), match.group(3)


def _is_url_text(text: str, marks: list[dict[str, Any]]) -> bool:
    """Autolinks and bare URL links display their own href."""
    stripped = text.strip()
    return any(
        mark.get("type") == "link" and (mark.get("attrs") or {}).get("href") == stripped
        for mark in marks
    )
