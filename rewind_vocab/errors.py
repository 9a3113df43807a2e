"""Typed exceptions for the rewind vocabulary pipeline.

WHY: Callers need to tell apart "the word does not exist" (a normal,
user-visible result) from "this acquisition strategy could not produce
cues" (an internal signal that triggers fallback) and from "every strategy
failed" (the only acquisition error the orchestrator ever sees).

HOW: A single base class, with the acquisition family carrying the name of
the strategy that raised it so log lines and aggregate failures stay
readable.

RULES:
- WordNotFound is a typed result, never fatal (API maps it to 404)
- AcquisitionFailure always names its strategy
- MalformedInput and TransientIOFailure are AcquisitionFailures, so the
  chain treats them identically (log, fall through, no retry)
- TranscriptUnavailable is raised only once the whole chain is exhausted
- SessionBookkeepingFailure is logged by the ledger and never propagated
"""

from __future__ import annotations

from typing import List


class RewindVocabError(Exception):
    """Base exception for all rewind_vocab errors."""


class WordNotFound(RewindVocabError):
    """Raised when a word key is absent from the ledger."""

    def __init__(self, word_id: str) -> None:
        self.word_id = word_id
        super().__init__(word_id)

    def __str__(self) -> str:
        return "Word not found: {}".format(self.word_id)


class AcquisitionFailure(RewindVocabError):
    """A single acquisition strategy could not produce cues.

    RULES:
    - strategy: the strategy's name attribute (e.g. "bridge", "page_document")
    - message: human-readable reason, safe to log
    """

    def __init__(self, strategy: str, message: str) -> None:
        self.strategy = strategy
        self.message = message
        super().__init__("[{}] {}".format(strategy, message))


class MalformedInput(AcquisitionFailure):
    """Unparseable JSON, subtitle payload, or page document."""


class TransientIOFailure(AcquisitionFailure):
    """Network error, non-2xx response, or bridge/strategy timeout."""


class TranscriptUnavailable(AcquisitionFailure):
    """Every strategy in the chain failed for a video identity.

    The orchestrator catches this and proceeds with "no transcript data".
    """

    def __init__(self, video_id: str, failures: List[AcquisitionFailure]) -> None:
        self.video_id = video_id
        self.failures = list(failures)
        summary = "; ".join(str(f) for f in self.failures) or "no strategies configured"
        super().__init__("chain", "No transcript for {}: {}".format(video_id, summary))


class SessionBookkeepingFailure(RewindVocabError):
    """Updating the active session's counters failed (best-effort)."""
