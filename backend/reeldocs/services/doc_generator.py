"""
Documentation generation from video segments.

Sends all segments (timestamps, speech, on-screen context) to the
documentation model and parses the structured response:

    {"title": "...", "chapters": [{"title": "...", "sections": [
        {"heading": "...", "content": "markdown", "timestamp_ref": "MM:SS"}
    ]}]}
"""

import json
import logging
from collections.abc import Sequence

from pydantic import ValidationError

from reeldocs.config import Settings, load_prompt
from reeldocs.models.schemas import GeneratedDoc, SegmentData
from reeldocs.services.ai_clients.base import BaseAIClient
from reeldocs.utils.json_utils import parse_llm_json

logger = logging.getLogger(__name__)

SEGMENT_PROMPT_FIELDS = {"start_time", "end_time", "spoken_content", "visual_context", "topic"}


class DocGenerationError(Exception):
    """Raised when the generated documentation cannot be parsed or is empty."""

    pass


class DocGenerator:
    """
    Generate structured documentation from segments.

    Example:
        generator = DocGenerator(claude_client, settings)
        doc = await generator.generate(segments)
        for chapter in doc.chapters:
            ...
    """

    def __init__(self, ai_client: BaseAIClient, settings: Settings, model: str | None = None):
        """
        Initialize generator.

        Args:
            ai_client: Text generation client
            settings: Application settings
            model: Model override (default: settings.docs_model)
        """
        self.ai_client = ai_client
        self.settings = settings
        self.model = model or settings.docs_model

    def build_prompt(self, segments: Sequence[SegmentData]) -> str:
        """Fill the generation template with the segments as JSON."""
        template = load_prompt("generate", "documentation", self.model, self.settings)
        payload = [
            segment.model_dump(include=SEGMENT_PROMPT_FIELDS)
            for segment in segments
        ]
        return template.format(segments_json=json.dumps(payload, ensure_ascii=False, indent=2))

    async def generate(self, segments: Sequence[SegmentData]) -> GeneratedDoc:
        """
        Generate documentation for a video.

        Args:
            segments: All segments of the video in order

        Returns:
            Parsed document with at least one chapter

        Raises:
            DocGenerationError: If the response is not valid documentation JSON
            AIClientError: If the model call fails
        """
        prompt = self.build_prompt(segments)
        logger.info(f"Generating documentation from {len(segments)} segments with {self.model}")

        response, usage = await self.ai_client.generate(prompt, model=self.model, json_mode=True)

        doc = parse_generated_doc(response)
        logger.info(
            f"Generated '{doc.title}': {len(doc.chapters)} chapters "
            f"({usage.input_tokens} in / {usage.output_tokens} out)"
        )
        return doc


def parse_generated_doc(response: str) -> GeneratedDoc:
    """
    Parse a documentation response.

    Control bytes are stripped before parsing; any failure after that
    is fatal.

    Raises:
        DocGenerationError: If the JSON is invalid or has no chapters
    """
    try:
        data = parse_llm_json(response, json_type="object")
    except ValueError as e:
        preview = response[:200] + "..." if len(response) > 200 else response
        logger.error(f"Failed to parse documentation JSON: {e}. Response: {preview}")
        raise DocGenerationError(f"Invalid documentation JSON: {e}") from e

    try:
        doc = GeneratedDoc.model_validate(data)
    except ValidationError as e:
        raise DocGenerationError(f"Unexpected documentation structure: {e}") from e

    if not doc.chapters:
        raise DocGenerationError("Documentation response contains no chapters")
    return doc
