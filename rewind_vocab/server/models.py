"""Pydantic request/response models for the vocabulary HTTP API.

WHY: The command surface (log, query, update, delete, contexts, export,
stats, sessions) needs typed schemas for request validation and automatic
OpenAPI docs, independent of the ledger's internal dataclasses.

HOW: Each endpoint has its own request and/or response model. Enums hold
the closed filter and sort vocabularies. Records are built from the
ledger dataclasses with Model(**record.to_dict()).

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Enum values match VocabularyLedger's filter and sort names exactly
- mastery_level is accepted as any int; the ledger clamps it
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from rewind_vocab.config import DEFAULT_LANGUAGE


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class WordFilter(str, Enum):
    """Word list filters.

    RULES:
    - default: not excluded and below the top mastery level
    - excluded: overrides mastery filtering
    """

    all = "all"
    known = "known"
    learning = "learning"
    new = "new"
    excluded = "excluded"
    default = "default"


class WordSort(str, Enum):
    alpha = "alpha"
    recent = "recent"
    mastery = "mastery"
    frequency = "frequency"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class OccurrenceIn(BaseModel):
    word: str = Field(description="Word as heard; normalized again by the ledger.")
    sentence: str = Field(default="", description="Full cue sentence the word appeared in.")
    timestamp_ms: int = Field(default=0, description="Video-relative time of the word (ms).")


class LogRequest(BaseModel):
    """One replayed segment's worth of words."""

    words: List[OccurrenceIn] = Field(description="Occurrences to record.")
    video_id: Optional[str] = Field(default=None, description="Video identity.")
    video_title: str = Field(default="", description="Video title stored with contexts.")
    language: str = Field(default=DEFAULT_LANGUAGE, description="ISO 639-1 language code.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "words": [
                    {"word": "Él", "sentence": "Él vive aquí.", "timestamp_ms": 10000},
                    {"word": "vive", "sentence": "Él vive aquí.", "timestamp_ms": 10000},
                ],
                "video_id": "abc",
                "video_title": "Episodio 1",
                "language": "es",
            }
        ]
    }}


class WordUpdate(BaseModel):
    mastery_level: Optional[int] = Field(
        default=None, description="New mastery level; clamped to 0..2."
    )
    excluded: Optional[bool] = Field(default=None, description="Exclude from lists and export.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LogResponse(BaseModel):
    new_words: int = Field(description="Words created by this batch.")
    updated_words: int = Field(description="Existing words whose count was incremented.")
    total_logged: int = Field(description="Occurrences recorded.")
    skipped: int = Field(description="Entries dropped (empty after normalization or failed).")


class WordOut(BaseModel):
    """A vocabulary record."""

    id: str = Field(description="Word key, '{language}:{word}'.")
    word: str = Field(description="Normalized word.")
    language: str = Field(description="ISO 639-1 language code.")
    encounters: int = Field(description="Number of times the word was replayed.")
    first_seen: int = Field(description="First encounter (epoch ms).")
    last_seen: int = Field(description="Latest encounter (epoch ms).")
    mastery_level: int = Field(description="0 new, 1 learning, 2 known.")
    excluded: bool = Field(description="Excluded by the learner.")
    learned: bool = Field(description="True when mastery_level is 2.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "id": "es:él",
                "word": "él",
                "language": "es",
                "encounters": 2,
                "first_seen": 1739959200000,
                "last_seen": 1739959260000,
                "mastery_level": 0,
                "excluded": False,
                "learned": False,
            }
        ]
    }}


class WordListResponse(BaseModel):
    words: List[WordOut] = Field(description="Matching words in the requested order.")


class ContextOut(BaseModel):
    id: int = Field(description="Context id.")
    word_id: str = Field(description="Word key this sentence belongs to.")
    sentence: str = Field(description="Sentence the word was heard in.")
    video_id: Optional[str] = Field(description="Video identity.")
    video_title: str = Field(description="Video title.")
    timestamp_ms: int = Field(description="Video-relative time (ms).")
    captured_at: int = Field(description="Capture time (epoch ms).")


class ContextListResponse(BaseModel):
    contexts: List[ContextOut] = Field(description="Newest first, at most 10.")


class DeleteResponse(BaseModel):
    deleted: bool = Field(description="Always true on success.")


class ExportResponse(BaseModel):
    tsv: str = Field(description="Tab-separated flashcard document.")
    word_count: int = Field(description="Number of data rows.")


class SessionOut(BaseModel):
    id: int = Field(description="Session id.")
    date: str = Field(description="Start date, YYYY-MM-DD.")
    start_time: int = Field(description="Start (epoch ms).")
    end_time: int = Field(description="Latest activity or stop (epoch ms).")
    words_encountered: int = Field(description="Occurrences logged in this session.")
    new_words: int = Field(description="Words first seen in this session.")
    rewinds: int = Field(description="Logged batches (one per replay).")
    video_ids: List[str] = Field(description="Distinct videos, in first-seen order.")


class SessionStateResponse(BaseModel):
    active: bool = Field(description="Whether a session is active.")
    session_id: Optional[int] = Field(default=None, description="Active session id, if any.")


class SessionStartResponse(SessionStateResponse):
    """Session state after a start, with the active session snapshot."""

    session: SessionOut = Field(description="The active session.")


class StatsResponse(BaseModel):
    total_words: int = Field(description="Non-excluded words.")
    learned_words: int = Field(description="Non-excluded words at the top mastery level.")
    total_encounters: int = Field(description="Sum of encounters over non-excluded words.")
    total_sessions: int = Field(description="Sessions ever started.")
    current_session: Optional[SessionOut] = Field(
        default=None, description="Active session snapshot."
    )


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
