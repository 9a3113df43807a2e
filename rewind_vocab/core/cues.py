"""Cue store and interval matcher for the currently loaded video.

WHY: A replay segment is a time window; the ledger needs the words spoken
inside it. The cue store holds one video's transcript and answers "which
words occur in [start, end]?" while keeping "no transcript loaded" (None)
distinct from "transcript loaded but empty range" so the orchestrator knows
when to fall back to on-screen text.

HOW: Cues are kept in a plain list, replaced wholesale when the video
changes. Lookups are a linear overlap scan (transcripts stay under ~10^4
cues). Cues carrying sub-segment timing emit each token with the
sub-segment's start; plain cues use the cue start.

RULES:
- Overlap test in ms: cue.end_ms >= range_start and cue.start_ms <= range_end
- Range seconds are converted to ms once, at the boundary
- No sortedness is assumed
- An empty match returns None, never []
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from rewind_vocab.core.models import Cue, WordOccurrence

logger = logging.getLogger(__name__)


def seconds_to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))


class CueStore:
    """Holds the cues for one video identity at a time.

    RULES:
    - video_id is the identity the cues belong to (None before first load)
    - loaded is False until load() succeeds for the current identity
    - reset() switches identity and drops cues without loading new ones
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._video_id: Optional[str] = None
        self._cues: Optional[List[Cue]] = None
        self.source: Optional[str] = None

    @property
    def video_id(self) -> Optional[str]:
        return self._video_id

    @property
    def loaded(self) -> bool:
        return self._cues is not None

    @property
    def cues(self) -> List[Cue]:
        with self._lock:
            return list(self._cues or [])

    def __len__(self) -> int:
        return len(self._cues or [])

    def reset(self, video_id: Optional[str]) -> None:
        with self._lock:
            self._video_id = video_id
            self._cues = None
            self.source = None

    def load(self, video_id: str, cues: Sequence[Cue], source: Optional[str] = None) -> None:
        """Replace the stored cues with a complete transcript for video_id."""
        with self._lock:
            self._video_id = video_id
            self._cues = list(cues)
            self.source = source
        logger.info("Loaded %d cues for %s (source: %s)", len(cues), video_id, source)

    def get_words_in_range(self, start_s: float, end_s: float) -> Optional[List[WordOccurrence]]:
        """Return every token of every cue overlapping [start_s, end_s].

        Args:
            start_s: Range start in seconds.
            end_s: Range end in seconds.

        Returns:
            Raw (un-normalized) occurrences in cue order, or None when no
            transcript is loaded or nothing overlapped.
        """
        with self._lock:
            cues = self._cues
        if cues is None:
            return None

        range_start = seconds_to_ms(start_s)
        range_end = seconds_to_ms(end_s)
        results: List[WordOccurrence] = []

        for cue in cues:
            if cue.end_ms < range_start or cue.start_ms > range_end:
                continue
            if not cue.text:
                continue

            if cue.segments:
                for seg in cue.segments:
                    for raw in seg.text.split():
                        results.append(WordOccurrence(
                            word=raw,
                            sentence=cue.text,
                            timestamp_ms=cue.start_ms + seg.offset_ms,
                        ))
            else:
                for raw in cue.text.split():
                    results.append(WordOccurrence(
                        word=raw,
                        sentence=cue.text,
                        timestamp_ms=cue.start_ms,
                    ))

        return results or None
