"""Replay orchestrator: wires detector, cue store, normalizer, and ledger.

WHY: Each stage is testable alone, but something has to decide what a
replay means end to end: which transcript is current, whether logging is
on, what to do when no transcript exists, and how the learner hears about
it. That policy lives here and nowhere else.

HOW: navigate() asks the acquirer to load the current video's transcript
(failure just means "no transcript data"). Session state drives the
detector's enabled flag. handle_segment() is the detector callback: it
pulls words from the cue store, falls back to the on-screen caption text
when the store has nothing, normalizes and filters, logs the batch, and
reports (total, new) through the notify callback.

RULES:
- TranscriptUnavailable is caught and logged; it never reaches the host
- On-screen fallback tokens carry the segment start as their timestamp
- Stop words are dropped only when filter_stop_words is set
- An empty batch is never sent to the ledger
- Subtitle-off warnings are throttled to one per SUBTITLE_WARNING_INTERVAL_S
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from rewind_vocab.acquisition.chain import TranscriptAcquirer
from rewind_vocab.acquisition.sources import SiteAdapter
from rewind_vocab.acquisition.strategies import OnScreenTextStrategy
from rewind_vocab.config import (
    DEFAULT_LANGUAGE,
    FILTER_STOP_WORDS,
    REWIND_THRESHOLD_S,
    SUBTITLE_WARNING_INTERVAL_S,
)
from rewind_vocab.core.detector import ElementWatcher, SegmentDetector
from rewind_vocab.core.models import LogResult, ReplaySegment, WordOccurrence
from rewind_vocab.core.normalizer import is_stop_word, normalize, tokenize
from rewind_vocab.errors import TranscriptUnavailable
from rewind_vocab.ledger.ledger import VocabularyLedger

logger = logging.getLogger(__name__)

NotifyCallback = Callable[[int, int], None]
WarnCallback = Callable[[str], None]


class ReplayOrchestrator:
    """Per-page controller turning replay segments into ledger updates.

    Args:
        adapter: Site metadata reader (video id, title, subtitle check).
        acquirer: Transcript acquirer owning the cue store.
        ledger: Vocabulary ledger receiving batches.
        on_screen: Optional overlay reader used when no transcript matched.
        notify: Called with (total_words, new_words) after each logged batch.
        warn: Called with a message when subtitles appear to be off.
        clock: Monotonic seconds source, injectable for tests.
    """

    def __init__(
        self,
        adapter: SiteAdapter,
        acquirer: TranscriptAcquirer,
        ledger: VocabularyLedger,
        on_screen: Optional[OnScreenTextStrategy] = None,
        language: str = DEFAULT_LANGUAGE,
        filter_stop_words: bool = FILTER_STOP_WORDS,
        notify: Optional[NotifyCallback] = None,
        warn: Optional[WarnCallback] = None,
        threshold_s: float = REWIND_THRESHOLD_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.adapter = adapter
        self.acquirer = acquirer
        self.ledger = ledger
        self.on_screen = on_screen
        self.language = language
        self.filter_stop_words = filter_stop_words
        self.notify = notify
        self.warn = warn
        self._clock = clock
        self._last_warning: Optional[float] = None
        self.detector = SegmentDetector(self.handle_segment, threshold_s=threshold_s)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, watcher: ElementWatcher) -> None:
        self.detector.start(watcher)
        self.refresh_session_state()

    def stop(self) -> None:
        self.detector.stop()
        self.acquirer.cancel()

    async def navigate(self, video_id: Optional[str] = None) -> bool:
        """Load the transcript for the page's current video.

        Returns:
            True if a transcript is now loaded for that video.
        """
        video_id = video_id or self.adapter.video_id()
        if not video_id:
            logger.debug("No video identity on this page")
            return False

        self.acquirer.language = self.language
        loaded = False
        try:
            loaded = await self.acquirer.load(video_id) is not None
        except TranscriptUnavailable as exc:
            logger.warning("No transcript for %s; using on-screen captions only", video_id)
            logger.debug("%s", exc)
        self.refresh_session_state()
        return loaded

    def refresh_session_state(self) -> None:
        self.set_session_active(self.ledger.sessions.active)

    def set_session_active(self, active: bool) -> None:
        self.detector.set_enabled(active)
        if active:
            self.check_subtitles()

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    def collect_words(self, segment: ReplaySegment) -> List[WordOccurrence]:
        """Normalized, filtered occurrences for a segment (possibly empty)."""
        entries = self.acquirer.cue_store.get_words_in_range(segment.start_s, segment.end_s)

        if entries is None:
            text = self.on_screen.current_text() if self.on_screen else None
            if not text:
                logger.info("No transcript data available for this segment")
                return []
            timestamp_ms = int(round(segment.start_s * 1000))
            words = [WordOccurrence(word=w, sentence=text, timestamp_ms=timestamp_ms)
                     for w in tokenize(text)]
        else:
            words = []
            for entry in entries:
                word = normalize(entry.word)
                if word:
                    words.append(WordOccurrence(word, entry.sentence, entry.timestamp_ms))

        if self.filter_stop_words:
            words = [w for w in words if not is_stop_word(w.word, self.language)]
        return words

    def handle_segment(self, segment: ReplaySegment) -> Optional[LogResult]:
        self.check_subtitles()

        words = self.collect_words(segment)
        if not words:
            logger.info("No words to log (all filtered or empty segment)")
            return None

        video_id = self.adapter.video_id()
        try:
            result = self.ledger.log_occurrences(
                words,
                video_id=video_id,
                video_title=self.adapter.video_title(),
                language=self.language,
            )
        except Exception:
            logger.exception("Failed to log %d words for %s", len(words), video_id)
            return None

        logger.info("Logged %d words: %s", len(words), ", ".join(w.word for w in words))
        if self.notify is not None:
            self.notify(len(words), result.new_words)
        return result

    # ------------------------------------------------------------------
    # Subtitle warnings
    # ------------------------------------------------------------------

    def check_subtitles(self) -> bool:
        """Warn if the site reports subtitles off. Returns True if warned."""
        check = self.adapter.check_subtitles()
        if check is None or check.enabled:
            return False

        now = self._clock()
        if self._last_warning is not None and now - self._last_warning < SUBTITLE_WARNING_INTERVAL_S:
            return False
        self._last_warning = now

        logger.warning("Subtitles appear to be off: %s", check.message)
        if self.warn is not None:
            self.warn(check.message)
        return True
