"""
Small text helpers shared by the pipeline stages.
"""

import re


def slugify(text: str) -> str:
    """
    Convert text to slug format.

    - Convert to lowercase
    - Replace every run of non letter/digit characters with one dash
    - Strip leading/trailing dashes
    - Non-latin letters are preserved

    Args:
        text: Input text to slugify

    Returns:
        Slugified text ("untitled" when nothing is left)

    Example:
        >>> slugify("Getting Started: Install & Run!")
        'getting-started-install-run'
    """
    text = text.lower()
    text = re.sub(r"[\W_]+", "-", text, flags=re.UNICODE)
    text = text.strip("-")
    return text or "untitled"


def parse_timestamp(value: str | None) -> int:
    """
    Parse "MM:SS" or "HH:MM:SS" into seconds.

    Returns 0 for empty or malformed input.

    Example:
        >>> parse_timestamp("01:15")
        75
    """
    if not value:
        return 0
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.strip().isdigit() for p in parts):
        return 0
    seconds = 0
    for part in parts:
        seconds = seconds * 60 + int(part)
    return seconds
