"""Tests for WebVTT building and parsing."""

import pytest

from reeldocs.models.schemas import SegmentData
from reeldocs.services.captions import (
    Cue,
    cues_to_vtt,
    format_vtt_time,
    parse_vtt,
    segments_to_vtt,
)


def test_segments_to_vtt():
    segments = [
        SegmentData(start_time=0, end_time=42.5, spoken_content="Welcome to the demo."),
        SegmentData(start_time=42.5, end_time=95, spoken_content="  Now we install.\n\nThen run it.  "),
    ]

    assert segments_to_vtt(segments) == (
        "WEBVTT\n\n"
        "00:00:00.000 --> 00:00:42.500\nWelcome to the demo.\n\n"
        "00:00:42.500 --> 00:01:35.000\nNow we install.\nThen run it.\n\n"
    )


def test_no_segments_gives_header_only():
    assert segments_to_vtt([]) == "WEBVTT\n\n"


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "00:00:00.000"), (75.5, "00:01:15.500"), (3661.25, "01:01:01.250"), (0.1 + 0.2, "00:00:00.300")],
)
def test_format_vtt_time(seconds, expected):
    assert format_vtt_time(seconds) == expected


def test_parse_vtt_reads_cues_and_skips_notes():
    vtt = (
        "WEBVTT - demo\n\n"
        "NOTE generated captions\n\n"
        "intro\n00:00:01.000 --> 00:00:04.250 align:start\nHello\nworld\n\n"
        "01:02.500 --> 01:05.000\nShort timestamps\n"
    )

    cues = parse_vtt(vtt)

    assert cues == [
        Cue(start=1.0, end=4.25, text="Hello\nworld", identifier="intro", settings=" align:start"),
        Cue(start=62.5, end=65.0, text="Short timestamps"),
    ]


def test_parse_vtt_requires_header():
    with pytest.raises(ValueError):
        parse_vtt("00:00:01.000 --> 00:00:02.000\nHi\n")


def test_cues_roundtrip_keeps_timings_and_identifiers():
    vtt = segments_to_vtt([
        SegmentData(start_time=1.2, end_time=3.4, spoken_content="One"),
        SegmentData(start_time=3.4, end_time=7, spoken_content="Two"),
    ])

    cues = [cue.with_text(cue.text.upper()) for cue in parse_vtt(vtt)]

    assert cues_to_vtt(cues) == vtt.replace("One", "ONE").replace("Two", "TWO")
