"""Subtitle payload parsers: structured JSON3 events and raw WebVTT markup.

WHY: Caption sources hand back two shapes. Hosted caption tracks can be
asked for a structured JSON format ("json3") that carries per-segment
timing; intercepted subtitle files arrive as WebVTT text. Both must become
the same Cue list for the cue store.

HOW: parse_json3() reads the body as text first so empty and non-JSON
responses produce a clear MalformedInput, validates the decoded payload
against a jsonschema, then maps events to cues. parse_vtt() is a line
scanner: skip to the first timestamp arrow, then read cue blocks.

RULES:
- JSON3: cue start = tStartMs, end = tStartMs + dDurationMs; sentence is
  all segs[].utf8 joined, newlines collapsed; events without text dropped
- VTT timestamps: HH:MM:SS.mmm or MM:SS.mmm ("," accepted for ".");
  anything after the end timestamp (positioning metadata) is discarded
- VTT cue id lines that are purely numeric are skipped
- Inline tags (<c>, <i>, <00:01:02.000>) are stripped
- Cues are emitted only when their text is non-empty
- A payload that yields zero cues raises MalformedInput
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

import jsonschema

from rewind_vocab.core.models import Cue, CueSegment
from rewind_vocab.errors import MalformedInput

_TAG_RE = re.compile(r"<[^>]*>")
_CUE_ID_RE = re.compile(r"^\d+$")
_WS_RE = re.compile(r"\s+")

JSON3_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["events"],
    "properties": {
        "events": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "tStartMs": {"type": "number"},
                    "dDurationMs": {"type": "number"},
                    "segs": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "utf8": {"type": "string"},
                                "tOffsetMs": {"type": "number"},
                            },
                        },
                    },
                },
            },
        },
    },
}


def strip_tags(text: str) -> str:
    """Remove inline markup tags and collapse whitespace."""
    return _WS_RE.sub(" ", _TAG_RE.sub("", text)).strip()


# =============================================================================
# JSON3
# =============================================================================


def parse_json3(body: str, strategy: str = "subtitle_file") -> List[Cue]:
    """Parse a JSON3 caption payload into cues.

    Args:
        body: Raw response text.
        strategy: Name of the calling strategy, carried on errors.

    Returns:
        Cues in payload order.

    Raises:
        MalformedInput: Empty body, invalid JSON, schema mismatch, or no
            event with text.
    """
    if not body or not body.strip():
        raise MalformedInput(strategy, "Subtitle response is empty")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise MalformedInput(
            strategy, "Subtitle response is not valid JSON: {!r}".format(body[:100])
        )

    try:
        jsonschema.validate(instance=data, schema=JSON3_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise MalformedInput(strategy, "Unexpected subtitle payload: {}".format(exc.message))

    cues: List[Cue] = []
    for event in data["events"]:
        segs = event.get("segs") or []
        if not segs:
            continue

        sentence = strip_tags("".join(seg.get("utf8", "") for seg in segs))
        if not sentence:
            continue

        start_ms = int(event.get("tStartMs", 0))
        duration_ms = int(event.get("dDurationMs", 0))
        segments = tuple(
            CueSegment(text=seg.get("utf8", "").strip(), offset_ms=int(seg.get("tOffsetMs", 0)))
            for seg in segs
            if seg.get("utf8", "").strip()
        )
        cues.append(Cue(
            start_ms=start_ms,
            end_ms=start_ms + duration_ms,
            text=sentence,
            segments=segments,
        ))

    if not cues:
        raise MalformedInput(strategy, "Subtitle payload contains no caption text")
    return cues


# =============================================================================
# WebVTT
# =============================================================================


def parse_vtt_timestamp(value: str) -> int:
    """Parse "HH:MM:SS.mmm" or "MM:SS.mmm" into integer milliseconds.

    Raises:
        ValueError: If the value is not a timestamp.
    """
    parts = value.strip().replace(",", ".").split(":")
    if len(parts) == 3:
        hours, minutes, seconds = int(parts[0]), int(parts[1]), float(parts[2])
    elif len(parts) == 2:
        hours, minutes, seconds = 0, int(parts[0]), float(parts[1])
    else:
        raise ValueError("Not a VTT timestamp: {!r}".format(value))
    return int(round((hours * 3600 + minutes * 60 + seconds) * 1000))


def _parse_timing_line(line: str) -> tuple:
    start_str, end_str = line.split("-->", 1)
    end_fields = end_str.strip().split()
    if not end_fields:
        raise ValueError("Missing end timestamp: {!r}".format(line))
    return parse_vtt_timestamp(start_str.strip()), parse_vtt_timestamp(end_fields[0])


def parse_vtt(text: str, strategy: str = "caption_markup") -> List[Cue]:
    """Parse a WebVTT document into cues.

    WHY: Some players fetch a plain WebVTT file; when that file is
    intercepted it is the most complete transcript available.

    HOW: Skip header lines until the first "-->" line. For each timing
    line, collect following lines until a blank line or the next timing
    line, skipping numeric cue ids, then strip tags.

    Raises:
        MalformedInput: If the document has no timing line or no cue text.
    """
    if not text or not text.strip():
        raise MalformedInput(strategy, "Caption document is empty")

    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    cues: List[Cue] = []
    i = 0

    while i < len(lines) and "-->" not in lines[i]:
        i += 1
    if i == len(lines):
        raise MalformedInput(strategy, "Caption document has no timestamp lines")

    while i < len(lines):
        line = lines[i].strip()
        if "-->" not in line:
            i += 1
            continue

        try:
            start_ms, end_ms = _parse_timing_line(line)
        except ValueError:
            i += 1
            continue

        i += 1
        text_lines: List[str] = []
        while i < len(lines) and lines[i].strip() and "-->" not in lines[i]:
            candidate = lines[i].strip()
            if not _CUE_ID_RE.match(candidate):
                text_lines.append(candidate)
            i += 1

        cue_text = strip_tags(" ".join(text_lines))
        if cue_text:
            cues.append(Cue(start_ms=start_ms, end_ms=end_ms, text=cue_text))

    if not cues:
        raise MalformedInput(strategy, "Caption document contains no cue text")
    return cues
