"""
JSON extraction and parsing utilities for LLM responses.

LLMs often return JSON wrapped in markdown code blocks, with
surrounding text, or with raw control bytes inside string values.
These utilities handle sanitization, extraction and safe parsing.

Example:
    from reeldocs.utils.json_utils import extract_json, parse_llm_json

    # Extract JSON array from markdown
    response = '```json\\n[{"id": 1}]\\n```'
    json_str = extract_json(response, json_type="array")

    # Sanitize, extract and parse in one step
    data = parse_llm_json(response, json_type="array")
"""

import json
import re
from typing import Any, Literal

# ASCII control bytes except \t (09), \n (0A) and \r (0D)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_FENCED_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)```\s*$")


def sanitize_control_chars(text: str) -> str:
    """
    Remove ASCII control characters that break JSON parsing.

    Tab, newline and carriage return are kept.

    Example:
        >>> sanitize_control_chars('{"a": "x\\x01y"}')
        '{"a": "xy"}'
    """
    return _CONTROL_CHARS_RE.sub("", text)


def extract_json(
    text: str,
    json_type: Literal["object", "array", "auto"] = "auto",
) -> str:
    """
    Extract JSON from LLM response.

    Handles responses wrapped in a markdown code block and finds
    JSON even if surrounded by other text.

    Args:
        text: Raw LLM response
        json_type: Type of JSON to extract:
            - "object": Find JSON object {...}
            - "array": Find JSON array [...]
            - "auto": Detect based on first bracket found

    Returns:
        Clean JSON string (empty string if not found)

    Example:
        >>> extract_json('```json\\n{"key": "value"}\\n```')
        '{"key": "value"}'

        >>> extract_json('Here is the data: [1, 2, 3] done', json_type="array")
        '[1, 2, 3]'
    """
    if not text:
        return ""

    cleaned = text.strip()

    # Unwrap a response that is entirely one fenced block. Fences inside
    # JSON string values (markdown content) must not be touched.
    fenced = _FENCED_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()

    # Determine which brackets to look for
    if json_type == "auto":
        obj_idx = cleaned.find("{")
        arr_idx = cleaned.find("[")

        if obj_idx == -1 and arr_idx == -1:
            return ""
        elif obj_idx == -1:
            json_type = "array"
        elif arr_idx == -1:
            json_type = "object"
        else:
            json_type = "object" if obj_idx < arr_idx else "array"

    if json_type == "object":
        open_bracket, close_bracket = "{", "}"
    else:
        open_bracket, close_bracket = "[", "]"

    if cleaned.startswith(open_bracket):
        return _find_matching_bracket(cleaned, open_bracket, close_bracket)

    start_idx = cleaned.find(open_bracket)
    if start_idx == -1:
        return ""

    return _find_matching_bracket(cleaned[start_idx:], open_bracket, close_bracket)


def _find_matching_bracket(text: str, open_bracket: str, close_bracket: str) -> str:
    """
    Find matching bracket and return the complete JSON string.

    Args:
        text: Text starting with open bracket
        open_bracket: Opening bracket character
        close_bracket: Closing bracket character

    Returns:
        Complete JSON string with matching brackets
    """
    if not text or not text.startswith(open_bracket):
        return ""

    bracket_count = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue

        if char == "\\":
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == open_bracket:
            bracket_count += 1
        elif char == close_bracket:
            bracket_count -= 1
            if bracket_count == 0:
                return text[: i + 1]

    # No matching bracket found - return as is (let JSON parser handle error)
    return text


def parse_llm_json(
    text: str,
    json_type: Literal["object", "array", "auto"] = "auto",
) -> Any:
    """
    Sanitize, extract and parse JSON from an LLM response.

    Raw newlines and tabs inside string values are accepted.

    Args:
        text: Raw LLM response
        json_type: Expected top-level JSON type

    Returns:
        Parsed JSON data

    Raises:
        ValueError: If no JSON is found or it cannot be parsed
            (json.JSONDecodeError is a ValueError)
    """
    json_str = extract_json(sanitize_control_chars(text), json_type=json_type)
    if not json_str:
        raise ValueError("No JSON found in response")
    return json.loads(json_str, strict=False)

