"""Caption track discovery: embedded player JSON extraction and track selection.

WHY: When no privileged bridge is available, the caption track list is
only reachable through the page document, where it sits inside a large
JavaScript object literal assigned to a marker variable. Naive bracket
counting breaks as soon as a video title or description contains "{" or
"}" inside a string, so the extractor tracks string state and escapes.

HOW: extract_json_object() finds the marker, then the first "{" after it,
and walks characters keeping brace depth, skipping anything inside double
quotes and honoring backslash escapes. The balanced slice is parsed with
json.loads(). caption_tracks_from_player_response() reads the known nested
path. select_track() picks the best track for the target language.

RULES:
- Marker missing, no "{", unbalanced braces, or bad JSON → MalformedInput
- Track path: captions.playerCaptionsTracklistRenderer.captionTracks
- Selection order: target language and kind != "asr"; then any target
  language track; then a track whose vssId contains ".{lang}"
- A track without a baseUrl is never selected
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from rewind_vocab.config import PLAYER_RESPONSE_MARKER, language_matches
from rewind_vocab.errors import MalformedInput


def find_balanced_object(text: str, start: int) -> int:
    """Return the index just past the "}" closing the "{" at ``start``.

    Returns -1 if the braces never balance.
    """
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def extract_json_object(
    document: str,
    marker: str = PLAYER_RESPONSE_MARKER,
    strategy: str = "page_document",
) -> Dict[str, Any]:
    """Extract and parse the JSON object literal following ``marker``.

    Raises:
        MalformedInput: If the marker or balanced braces are not found, or
            the extracted slice is not valid JSON.
    """
    marker_idx = document.find(marker)
    if marker_idx == -1:
        raise MalformedInput(strategy, "{} not found in page document".format(marker))

    brace_start = document.find("{", marker_idx)
    if brace_start == -1:
        raise MalformedInput(strategy, "Could not find start of {} JSON".format(marker))

    brace_end = find_balanced_object(document, brace_start)
    if brace_end == -1:
        raise MalformedInput(strategy, "Could not find end of {} JSON".format(marker))

    try:
        data = json.loads(document[brace_start:brace_end])
    except json.JSONDecodeError as exc:
        raise MalformedInput(strategy, "Failed to parse {} JSON: {}".format(marker, exc))

    if not isinstance(data, dict):
        raise MalformedInput(strategy, "{} is not a JSON object".format(marker))
    return data


def caption_tracks_from_player_response(player_response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Read caption track descriptors from a player response, or []."""
    captions = player_response.get("captions") or {}
    renderer = captions.get("playerCaptionsTracklistRenderer") or {}
    tracks = renderer.get("captionTracks") or []
    return [t for t in tracks if isinstance(t, dict)]


def select_track(tracks: List[Dict[str, Any]], language: str) -> Optional[Dict[str, Any]]:
    """Pick the best caption track for ``language``, preferring manual captions."""
    usable = [t for t in tracks if t.get("baseUrl")]

    for track in usable:
        if language_matches(track.get("languageCode"), language) and track.get("kind") != "asr":
            return track
    for track in usable:
        if language_matches(track.get("languageCode"), language):
            return track
    for track in usable:
        if ".{}".format(language) in (track.get("vssId") or ""):
            return track
    return None


def describe_languages(tracks: List[Dict[str, Any]]) -> str:
    return ", ".join(str(t.get("languageCode", "?")) for t in tracks) or "none"
