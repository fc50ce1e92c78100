"""
WebVTT caption building and parsing.

Captions are generated from extracted segments: one cue per segment,
timed by the segment boundaries, with the transcribed speech as text.

Example:
    vtt = segments_to_vtt(segments)
    cues = parse_vtt(vtt)
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace

from reeldocs.models.schemas import SegmentData

logger = logging.getLogger(__name__)

VTT_HEADER = "WEBVTT"

_TIMING_RE = re.compile(
    r"^\s*(?P<start>(?:\d+:)?\d{2}:\d{2}[.,]\d{3})\s+-->\s+"
    r"(?P<end>(?:\d+:)?\d{2}:\d{2}[.,]\d{3})(?P<settings>.*)$"
)


@dataclass(frozen=True)
class Cue:
    """One caption cue: timing line plus text."""

    start: float
    end: float
    text: str
    identifier: str | None = None
    settings: str = ""

    def with_text(self, text: str) -> "Cue":
        return replace(self, text=text)


def format_vtt_time(seconds: float) -> str:
    """
    Format seconds as a WebVTT timestamp (HH:MM:SS.mmm).

    Example:
        >>> format_vtt_time(75.5)
        '00:01:15.500'
    """
    total_ms = int(round(max(seconds, 0.0) * 1000))
    total_seconds, ms = divmod(total_ms, 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def parse_vtt_time(value: str) -> float:
    """Parse HH:MM:SS.mmm or MM:SS.mmm into seconds."""
    value = value.replace(",", ".")
    parts = value.split(":")
    seconds = float(parts[-1])
    minutes = int(parts[-2])
    hours = int(parts[-3]) if len(parts) == 3 else 0
    return hours * 3600 + minutes * 60 + seconds


def segments_to_vtt(segments: Iterable[SegmentData]) -> str:
    """
    Build a WebVTT document from segments in the given order.

    Args:
        segments: Extracted segments (authoritative order)

    Returns:
        WebVTT text: header, blank line, then one cue block per segment
    """
    cues = [
        Cue(
            start=segment.start_time,
            end=segment.end_time,
            text=_cue_text(segment.spoken_content),
        )
        for segment in segments
    ]
    return cues_to_vtt(cues)


def _cue_text(text: str) -> str:
    # A blank line would terminate the cue block
    return re.sub(r"\n\s*\n", "\n", text.strip())


def cues_to_vtt(cues: Iterable[Cue]) -> str:
    """
    Serialize cues to WebVTT text.

    Args:
        cues: Caption cues

    Returns:
        WebVTT document text
    """
    parts = [f"{VTT_HEADER}\n\n"]
    for cue in cues:
        block = ""
        if cue.identifier:
            block += f"{cue.identifier}\n"
        block += f"{format_vtt_time(cue.start)} --> {format_vtt_time(cue.end)}{cue.settings}\n"
        block += f"{cue.text}\n\n"
        parts.append(block)
    return "".join(parts)


def parse_vtt(vtt: str) -> list[Cue]:
    """
    Parse WebVTT text into cues.

    NOTE, STYLE and REGION blocks are skipped. Blocks without a timing
    line are ignored.

    Args:
        vtt: WebVTT document text

    Returns:
        List of cues in document order

    Raises:
        ValueError: If the text does not start with the WEBVTT header
    """
    text = vtt.replace("\r\n", "\n").replace("\r", "\n").lstrip("\ufeff")
    if not text.startswith(VTT_HEADER):
        raise ValueError("Not a WebVTT document: missing WEBVTT header")

    blocks = re.split(r"\n{2,}", text)
    cues: list[Cue] = []

    # First block is the header (may carry a description line)
    for block in blocks[1:]:
        lines = block.split("\n")
        if not lines or not lines[0].strip():
            continue
        if lines[0].startswith(("NOTE", "STYLE", "REGION")):
            continue

        identifier = None
        timing = _TIMING_RE.match(lines[0])
        if timing is None and len(lines) > 1:
            identifier = lines[0].strip()
            lines = lines[1:]
            timing = _TIMING_RE.match(lines[0])
        if timing is None:
            logger.debug(f"Skipping VTT block without timing: {block[:40]!r}")
            continue

        cues.append(
            Cue(
                start=parse_vtt_time(timing.group("start")),
                end=parse_vtt_time(timing.group("end")),
                text="\n".join(lines[1:]).rstrip("\n"),
                identifier=identifier,
                settings=timing.group("settings").rstrip(),
            )
        )

    return cues
