"""Shared test fixtures for the rewind_vocab test suite.

WHY: Several modules need the same small transcript, the same JSON3 and
WebVTT payloads, and a fresh ledger on disk. Centralizing them keeps the
scenarios consistent across cue store, parser, chain, and orchestrator
tests.

HOW: Module-level constants hold the raw payloads; fixtures build the
parsed or persisted forms. Every ledger lives in pytest's tmp_path.

RULES:
- SAMPLE_CUES covers 10.0-12.0 s and 13.5-15.0 s (milliseconds inside)
- JSON3_BODY and VTT_TEXT describe the same two Spanish lines
- Ledger fixtures are closed after each test
"""

from __future__ import annotations

import json
from typing import List

import pytest

from rewind_vocab.core.cues import CueStore
from rewind_vocab.core.models import Cue, CueSegment
from rewind_vocab.ledger.ledger import VocabularyLedger


# ---------------------------------------------------------------------------
# Sample transcript
# ---------------------------------------------------------------------------

SAMPLE_CUES: List[Cue] = [
    Cue(start_ms=10000, end_ms=12000, text="¿Dónde está él?"),
    Cue(start_ms=13500, end_ms=15000, text="Está en la casa."),
]

JSON3_PAYLOAD = {
    "wireMagic": "pb3",
    "events": [
        {"tStartMs": 0, "dDurationMs": 500},
        {
            "tStartMs": 10000,
            "dDurationMs": 2000,
            "segs": [
                {"utf8": "¿Dónde"},
                {"utf8": " está", "tOffsetMs": 400},
                {"utf8": " él?", "tOffsetMs": 900},
            ],
        },
        {"tStartMs": 12000, "dDurationMs": 100, "segs": [{"utf8": "\n"}]},
        {
            "tStartMs": 13500,
            "dDurationMs": 1500,
            "segs": [{"utf8": "Está en la casa."}],
        },
    ],
}

JSON3_BODY = json.dumps(JSON3_PAYLOAD)

VTT_TEXT = """WEBVTT
Kind: captions
Language: es

1
00:00:10.000 --> 00:00:12.000 align:start position:0%
¿Dónde <c>está</c> él?

2
00:13.500 --> 00:15.000
Está en la casa.
"""


def player_page(tracks: list, title: str = "Un {video} con \\\"llaves\\\"") -> str:
    """Build a watch page embedding a player response with the given tracks."""
    player_response = {
        "videoDetails": {"title": title},
        "captions": {"playerCaptionsTracklistRenderer": {"captionTracks": tracks}},
    }
    return (
        "<html><script>var ytInitialPlayerResponse = {};"
        "var meta = {{}};</script></html>".format(json.dumps(player_response))
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_cues() -> List[Cue]:
    return list(SAMPLE_CUES)


@pytest.fixture
def segmented_cue() -> Cue:
    """A cue with per-segment timing, as parsed from JSON3."""
    return Cue(
        start_ms=10000,
        end_ms=12000,
        text="¿Dónde está él?",
        segments=(
            CueSegment("¿Dónde", 0),
            CueSegment("está", 400),
            CueSegment("él?", 900),
        ),
    )


@pytest.fixture
def loaded_store(sample_cues) -> CueStore:
    store = CueStore()
    store.load("abc", sample_cues, source="test")
    return store


@pytest.fixture
def ledger(tmp_path):
    ledger = VocabularyLedger(tmp_path / "ledger.db", deck_name="Test Deck")
    yield ledger
    ledger.close()


@pytest.fixture
def json3_body() -> str:
    return JSON3_BODY


@pytest.fixture
def vtt_text() -> str:
    return VTT_TEXT


@pytest.fixture
def page_builder():
    """The player_page() helper, for tests that need a custom watch page."""
    return player_page
