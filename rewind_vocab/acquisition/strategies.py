"""Transcript acquisition strategies, from most to least reliable.

WHY: No single caption source works everywhere. A privileged bridge is
fast but may not be installed; the player's text tracks exist only on some
sites; the page document can be fetched anywhere but is large and fragile;
intercepted WebVTT files appear only when the player requests them; the
on-screen overlay always shows *something* but only the current line.

HOW: Each strategy is a small class with a ``name`` and an async
``acquire(video_id, language) -> list[Cue]`` method. They share no base
class; the chain only relies on that shape (AcquisitionStrategy protocol).
Strategies that end up with a caption track descriptor all go through
fetch_track_cues(), which selects the track, forces JSON3, and parses it.

RULES:
- acquire() returns a non-empty cue list or raises AcquisitionFailure
- BridgeStrategy bounds the bridge request by BRIDGE_TIMEOUT_S
- TextTrackStrategy never makes a track visible: "disabled" → "hidden"
- OnScreenTextStrategy is synchronous, stateless, never cached, and not
  part of the chain (the orchestrator calls it per segment)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from rewind_vocab.acquisition.client import CaptionHttpClient
from rewind_vocab.acquisition.sources import (
    CaptionBridge,
    CaptionMarkupSource,
    CaptionOverlay,
    PageLocator,
    PlayerTracks,
    SubtitleUrlSource,
)
from rewind_vocab.acquisition.subtitles import parse_json3, parse_vtt, strip_tags
from rewind_vocab.acquisition.tracks import (
    caption_tracks_from_player_response,
    describe_languages,
    extract_json_object,
    select_track,
)
from rewind_vocab.config import (
    BRIDGE_TIMEOUT_S,
    TEXT_TRACK_POLL_ATTEMPTS,
    TEXT_TRACK_POLL_INTERVAL_S,
    language_matches,
)
from rewind_vocab.core.models import Cue
from rewind_vocab.errors import AcquisitionFailure, TransientIOFailure

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], CaptionHttpClient]


class AcquisitionStrategy(Protocol):
    """Common contract for every chain member."""

    name: str

    async def acquire(self, video_id: str, language: str) -> List[Cue]: ...


async def fetch_track_cues(
    client_factory: ClientFactory,
    tracks: List[Dict[str, Any]],
    language: str,
    strategy: str,
) -> List[Cue]:
    """Select the best track for ``language`` and parse its JSON3 payload.

    Raises:
        AcquisitionFailure: No track for the language.
        TransientIOFailure: The track fetch failed.
        MalformedInput: The payload was empty or unparseable.
    """
    track = select_track(tracks, language)
    if track is None:
        raise AcquisitionFailure(
            strategy,
            "No {} captions found. Available: {}".format(language, describe_languages(tracks)),
        )

    async with client_factory() as client:
        body = await client.fetch_subtitle(track["baseUrl"], strategy=strategy)

    cues = parse_json3(body, strategy=strategy)
    logger.info(
        "Loaded %d transcript events (%s, %s) via %s",
        len(cues),
        track.get("languageCode"),
        "auto" if track.get("kind") == "asr" else "manual",
        strategy,
    )
    return cues


# ---------------------------------------------------------------------------
# 1. Bridge
# ---------------------------------------------------------------------------


class BridgeStrategy:
    """Ask a privileged page bridge for caption tracks, then fetch one."""

    name = "bridge"

    def __init__(
        self,
        bridge: CaptionBridge,
        client_factory: ClientFactory = CaptionHttpClient,
        timeout_s: float = BRIDGE_TIMEOUT_S,
    ) -> None:
        self._bridge = bridge
        self._client_factory = client_factory
        self._timeout_s = timeout_s

    async def acquire(self, video_id: str, language: str) -> List[Cue]:
        try:
            tracks = await asyncio.wait_for(
                self._bridge.request_caption_tracks(), timeout=self._timeout_s
            )
        except asyncio.TimeoutError:
            raise TransientIOFailure(
                self.name, "Bridge did not answer within {:.1f}s".format(self._timeout_s)
            )

        if not tracks:
            raise AcquisitionFailure(self.name, "Bridge reported no caption tracks")
        return await fetch_track_cues(self._client_factory, list(tracks), language, self.name)


# ---------------------------------------------------------------------------
# 2. Player text tracks
# ---------------------------------------------------------------------------


class TextTrackStrategy:
    """Read cues straight from the embedded player's text tracks.

    WHY: Players that load WebVTT natively expose parsed cues through their
    text-track objects, which is cheaper and more reliable than refetching.

    HOW: Candidate tracks are those whose language matches the target,
    non-"asr" first; if none match, any subtitles/captions track is tried.
    A disabled track is switched to "hidden" so the player loads its cues
    without rendering them, then polled briefly for cues to appear.
    """

    name = "text_tracks"

    def __init__(
        self,
        player: PlayerTracks,
        poll_interval_s: float = TEXT_TRACK_POLL_INTERVAL_S,
        poll_attempts: int = TEXT_TRACK_POLL_ATTEMPTS,
    ) -> None:
        self._player = player
        self._poll_interval_s = poll_interval_s
        self._poll_attempts = poll_attempts

    def _candidates(self, language: str) -> list:
        tracks = list(self._player.text_tracks() or [])
        matching = [t for t in tracks if language_matches(t.language, language)]
        matching.sort(key=lambda t: t.kind == "asr")
        if matching:
            return matching
        return [t for t in tracks if t.kind in ("subtitles", "captions")]

    async def acquire(self, video_id: str, language: str) -> List[Cue]:
        candidates = self._candidates(language)
        if not candidates:
            raise AcquisitionFailure(self.name, "Player exposes no usable text tracks")

        for track in candidates:
            if track.mode == "disabled":
                track.mode = "hidden"

            for _ in range(max(1, self._poll_attempts)):
                if track.cues:
                    break
                await asyncio.sleep(self._poll_interval_s)

            cues = [
                Cue(
                    start_ms=int(round(c.start_time * 1000)),
                    end_ms=int(round(c.end_time * 1000)),
                    text=strip_tags(c.text),
                )
                for c in (track.cues or [])
            ]
            cues = [c for c in cues if c.text]
            if cues:
                logger.info("Loaded %d cues via player text track (%s)", len(cues), track.language)
                return cues

        raise AcquisitionFailure(self.name, "Text tracks produced no cues")


# ---------------------------------------------------------------------------
# 3. Page document
# ---------------------------------------------------------------------------


class PageDocumentStrategy:
    """Fetch the watch page and dig the caption track list out of its JSON."""

    name = "page_document"

    def __init__(
        self,
        locator: PageLocator,
        client_factory: ClientFactory = CaptionHttpClient,
    ) -> None:
        self._locator = locator
        self._client_factory = client_factory

    async def acquire(self, video_id: str, language: str) -> List[Cue]:
        async with self._client_factory() as client:
            document = await client.fetch_page(self._locator.page_url(video_id), strategy=self.name)

        player_response = extract_json_object(document, strategy=self.name)
        tracks = caption_tracks_from_player_response(player_response)
        if not tracks:
            raise AcquisitionFailure(self.name, "Page document lists no caption tracks")
        return await fetch_track_cues(self._client_factory, tracks, language, self.name)


# ---------------------------------------------------------------------------
# 4. Subtitle file
# ---------------------------------------------------------------------------


class SubtitleFileStrategy:
    """Fetch a known caption track URL directly."""

    name = "subtitle_file"

    def __init__(
        self,
        source: SubtitleUrlSource,
        client_factory: ClientFactory = CaptionHttpClient,
    ) -> None:
        self._source = source
        self._client_factory = client_factory

    async def acquire(self, video_id: str, language: str) -> List[Cue]:
        url = await self._source.subtitle_track_url(video_id, language)
        if not url:
            raise AcquisitionFailure(self.name, "No subtitle track URL known")

        async with self._client_factory() as client:
            body = await client.fetch_subtitle(url, strategy=self.name)
        return parse_json3(body, strategy=self.name)


# ---------------------------------------------------------------------------
# 5. Raw caption markup
# ---------------------------------------------------------------------------


class CaptionMarkupStrategy:
    """Parse an intercepted WebVTT document."""

    name = "caption_markup"

    def __init__(self, source: CaptionMarkupSource) -> None:
        self._source = source

    async def acquire(self, video_id: str, language: str) -> List[Cue]:
        text = await self._source.caption_markup(video_id)
        if not text:
            raise AcquisitionFailure(self.name, "No caption document captured")
        cues = parse_vtt(text, strategy=self.name)
        logger.info("Loaded %d VTT cues from captured document", len(cues))
        return cues


# ---------------------------------------------------------------------------
# 6. On-screen text (not part of the chain)
# ---------------------------------------------------------------------------


class OnScreenTextStrategy:
    """Read the currently rendered caption text from the overlay."""

    name = "on_screen"

    def __init__(self, overlay: CaptionOverlay) -> None:
        self._overlay = overlay

    def current_text(self) -> Optional[str]:
        text = self._overlay.visible_caption_text()
        if not text:
            return None
        text = strip_tags(text)
        return text or None
