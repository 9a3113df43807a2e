"""Ordered fallback chain that loads one video's transcript into the cue store.

WHY: Strategies fail for ordinary reasons (bridge absent, page layout
changed, subtitles off). The chain tries them in reliability order and
stops at the first success, so the caller only ever sees "transcript
loaded" or a single TranscriptUnavailable carrying every reason.

HOW: TranscriptAcquirer.load(video_id) first checks the cue store cache.
Otherwise it starts (or joins) an asyncio task running the chain for that
identity. Each strategy runs under asyncio.wait_for(); timeouts become
TransientIOFailure. When the identity changes, the superseded task is
cancelled and the store reset, and a late result for an old identity is
discarded instead of loaded.

RULES:
- Concurrent load() calls for the same identity share one task
- A successful result is cached for its identity until the identity changes
- Results for a superseded identity never populate the cue store
- No retries: a failed strategy is logged and the next one runs
- All strategies failing → TranscriptUnavailable(video_id, failures)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from rewind_vocab.acquisition.client import CaptionHttpClient
from rewind_vocab.acquisition.sources import (
    CaptionBridge,
    CaptionMarkupSource,
    PageLocator,
    PlayerTracks,
    SubtitleUrlSource,
)
from rewind_vocab.acquisition.strategies import (
    AcquisitionStrategy,
    BridgeStrategy,
    CaptionMarkupStrategy,
    ClientFactory,
    PageDocumentStrategy,
    SubtitleFileStrategy,
    TextTrackStrategy,
)
from rewind_vocab.config import DEFAULT_LANGUAGE, STRATEGY_TIMEOUT_S
from rewind_vocab.core.cues import CueStore
from rewind_vocab.core.models import Cue
from rewind_vocab.errors import AcquisitionFailure, TranscriptUnavailable, TransientIOFailure

logger = logging.getLogger(__name__)


def build_default_chain(
    bridge: Optional[CaptionBridge] = None,
    player: Optional[PlayerTracks] = None,
    locator: Optional[PageLocator] = None,
    url_source: Optional[SubtitleUrlSource] = None,
    markup_source: Optional[CaptionMarkupSource] = None,
    client_factory: ClientFactory = CaptionHttpClient,
) -> List[AcquisitionStrategy]:
    """Build the strategy list for whichever capabilities the host provides.

    Order is fixed: bridge, text tracks, page document, subtitle file,
    caption markup. Missing capabilities are simply left out.
    """
    chain: List[AcquisitionStrategy] = []
    if bridge is not None:
        chain.append(BridgeStrategy(bridge, client_factory=client_factory))
    if player is not None:
        chain.append(TextTrackStrategy(player))
    if locator is not None:
        chain.append(PageDocumentStrategy(locator, client_factory=client_factory))
    if url_source is not None:
        chain.append(SubtitleFileStrategy(url_source, client_factory=client_factory))
    if markup_source is not None:
        chain.append(CaptionMarkupStrategy(markup_source))
    return chain


class TranscriptAcquirer:
    """Runs the strategy chain for the current video identity.

    RULES:
    - language is read at chain start; changing it affects the next load
    - last_failures holds the failures from the most recent exhausted chain
    """

    def __init__(
        self,
        strategies: Sequence[AcquisitionStrategy],
        cue_store: CueStore,
        language: str = DEFAULT_LANGUAGE,
        strategy_timeout_s: float = STRATEGY_TIMEOUT_S,
    ) -> None:
        self.strategies = list(strategies)
        self.cue_store = cue_store
        self.language = language
        self.strategy_timeout_s = strategy_timeout_s
        self.last_failures: List[AcquisitionFailure] = []
        self._inflight: Dict[str, asyncio.Task] = {}

    @property
    def current_video_id(self) -> Optional[str]:
        return self.cue_store.video_id

    async def load(self, video_id: str) -> Optional[List[Cue]]:
        """Ensure the cue store holds the transcript for ``video_id``.

        Returns:
            The loaded cues, or None if the identity was superseded while
            loading.

        Raises:
            TranscriptUnavailable: Every strategy failed.
        """
        if self.cue_store.video_id == video_id and self.cue_store.loaded:
            return self.cue_store.cues

        if self.cue_store.video_id != video_id:
            self._switch(video_id)

        task = self._inflight.get(video_id)
        if task is None:
            task = asyncio.ensure_future(self._run(video_id))
            self._inflight[video_id] = task
            task.add_done_callback(lambda t, vid=video_id: self._forget(vid, t))
        else:
            logger.debug("Joining in-flight transcript load for %s", video_id)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                logger.info("Transcript load for %s superseded", video_id)
                return None
            raise

    def cancel(self) -> None:
        """Cancel every in-flight load."""
        for task in list(self._inflight.values()):
            task.cancel()

    def _switch(self, video_id: str) -> None:
        for vid, task in list(self._inflight.items()):
            if vid != video_id:
                task.cancel()
        self.cue_store.reset(video_id)

    def _forget(self, video_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(video_id) is task:
            del self._inflight[video_id]

    async def _run(self, video_id: str) -> Optional[List[Cue]]:
        failures: List[AcquisitionFailure] = []
        language = self.language

        for strategy in self.strategies:
            try:
                cues = await asyncio.wait_for(
                    strategy.acquire(video_id, language), timeout=self.strategy_timeout_s
                )
            except asyncio.TimeoutError:
                failure: AcquisitionFailure = TransientIOFailure(
                    strategy.name,
                    "Timed out after {:.1f}s".format(self.strategy_timeout_s),
                )
            except AcquisitionFailure as exc:
                failure = exc
            except Exception as exc:
                logger.exception("Strategy %s raised unexpectedly", strategy.name)
                failure = AcquisitionFailure(strategy.name, str(exc))
            else:
                if cues:
                    return self._store(video_id, cues, strategy.name)
                failure = AcquisitionFailure(strategy.name, "Strategy returned no cues")

            logger.warning("Transcript strategy %s failed: %s", strategy.name, failure.message)
            failures.append(failure)

        self.last_failures = failures
        raise TranscriptUnavailable(video_id, failures)

    def _store(self, video_id: str, cues: List[Cue], source: str) -> Optional[List[Cue]]:
        if self.cue_store.video_id != video_id:
            logger.info("Discarding transcript for superseded video %s", video_id)
            return None
        self.cue_store.load(video_id, cues, source=source)
        return list(cues)
