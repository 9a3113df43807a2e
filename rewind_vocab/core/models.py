"""Dataclasses shared by the detector, cue store, acquisition chain, and ledger.

WHY: Cues, word occurrences, replay segments, and ledger records cross
every module boundary. A single, well-typed set of dataclasses keeps those
contracts explicit and lets each stage be tested in isolation.

HOW: Pipeline types (Cue, CueSegment, WordOccurrence, ReplaySegment) are
frozen value objects. Ledger records (WordRecord, ContextRecord,
SessionRecord) mirror the SQLite rows and expose to_dict() for the API.

RULES:
- All times inside the pipeline are integer milliseconds, except
  ReplaySegment which carries the playback positions in float seconds
  exactly as the media element reported them
- Word keys are "{language}:{word}" (see make_word_id)
- Ledger timestamps (first_seen, captured_at, ...) are epoch milliseconds
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


def make_word_id(language: str, word: str) -> str:
    """Build the ledger primary key for a normalized word."""
    return "{}:{}".format(language, word)


@dataclass(frozen=True)
class CueSegment:
    """A sub-span of a cue with its own start offset (JSON3 ``segs``).

    offset_ms is relative to the owning cue's start_ms.
    """

    text: str
    offset_ms: int = 0


@dataclass(frozen=True)
class Cue:
    """A time-bounded unit of transcript text.

    RULES:
    - start_ms <= end_ms
    - text is the full sentence, whitespace-collapsed, markup stripped
    - segments is empty unless the source carried finer-grained timing
    """

    start_ms: int
    end_ms: int
    text: str
    segments: Tuple[CueSegment, ...] = ()


@dataclass(frozen=True)
class WordOccurrence:
    """One raw (or normalized) word found in a replayed range."""

    word: str
    sentence: str = ""
    timestamp_ms: int = 0


@dataclass(frozen=True)
class ReplaySegment:
    """A backward jump in playback: [start_s, end_s] in seconds."""

    start_s: float
    end_s: float


@dataclass
class LogResult:
    """Aggregate counts returned by VocabularyLedger.log_occurrences()."""

    new_words: int = 0
    updated_words: int = 0
    total_logged: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class WordRecord:
    """A persisted vocabulary entry, one per (language, normalized word).

    RULES:
    - encounters never decreases and is >= 1
    - mastery_level is within [MASTERY_MIN, MASTERY_MAX]
    - learned mirrors mastery_level == MASTERY_MAX (legacy flag)
    """

    id: str
    word: str
    language: str
    encounters: int
    first_seen: int
    last_seen: int
    mastery_level: int = 0
    excluded: bool = False
    learned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ContextRecord:
    """An example sentence captured for a word."""

    id: int
    word_id: str
    sentence: str
    video_id: Optional[str]
    video_title: str
    timestamp_ms: int
    captured_at: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionRecord:
    """One learning session's aggregate counters."""

    id: int
    date: str
    start_time: int
    end_time: int
    words_encountered: int = 0
    new_words: int = 0
    rewinds: int = 0
    video_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
