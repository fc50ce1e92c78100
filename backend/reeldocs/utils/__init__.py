"""
Shared utilities for the pipeline services.

Modules:
    json_utils: JSON sanitization, extraction and parsing from LLM responses
    text_utils: Slugs and timestamp parsing
    content_tree: Markdown sections to structured editor document
"""

from reeldocs.utils.content_tree import sections_to_document
from reeldocs.utils.json_utils import (
    extract_json,
    parse_llm_json,
    sanitize_control_chars,
)
from reeldocs.utils.text_utils import parse_timestamp, slugify

__all__ = [
    # json_utils
    "extract_json",
    "parse_llm_json",
    "sanitize_control_chars",
    # text_utils
    "parse_timestamp",
    "slugify",
    # content_tree
    "sections_to_document",
]
