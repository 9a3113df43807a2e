"""Collaborator interfaces the acquisition chain and orchestrator consume.

WHY: The host page (bridge scripts, player text tracks, subtitle overlay,
site metadata) lives outside this package. Each strategy only needs one
narrow capability, so each capability is its own Protocol and a strategy is
constructed only when its capability is available.

HOW: typing.Protocol classes describe the shape; nothing here inherits from
them. Two concrete sources ship here: WatchPageLocator builds page URLs,
and MarkupInbox receives intercepted WebVTT documents from the host for
the markup strategy to read back.

RULES:
- Async capabilities may suspend; the chain bounds every wait
- TextTrack.mode is writable ("disabled", "hidden", "showing")
- TextTrackCue times are float seconds, as players report them
- SiteAdapter.check_subtitles() returns None when the site cannot tell
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from rewind_vocab.config import WATCH_PAGE_URL


class CaptionBridge(Protocol):
    """Privileged same-process channel that returns caption track descriptors."""

    async def request_caption_tracks(self) -> Optional[List[Dict[str, Any]]]: ...


class TextTrackCue(Protocol):
    start_time: float
    end_time: float
    text: str


class TextTrack(Protocol):
    language: str
    kind: str
    mode: str
    cues: Optional[Sequence[TextTrackCue]]


class PlayerTracks(Protocol):
    """Embedded player exposing its text tracks."""

    def text_tracks(self) -> Sequence[TextTrack]: ...


class PageLocator(Protocol):
    """Resolves the document URL for a video identity."""

    def page_url(self, video_id: str) -> str: ...


class SubtitleUrlSource(Protocol):
    """Knows a hosted caption track URL for a video, if any."""

    async def subtitle_track_url(self, video_id: str, language: str) -> Optional[str]: ...


class CaptionMarkupSource(Protocol):
    """Supplies a raw WebVTT document for a video, if one was captured."""

    async def caption_markup(self, video_id: str) -> Optional[str]: ...


class CaptionOverlay(Protocol):
    """The page's visible subtitle layer."""

    def visible_caption_text(self) -> Optional[str]: ...


@dataclass
class SubtitleCheck:
    enabled: bool
    message: str = ""


class SiteAdapter(Protocol):
    """Site-specific metadata reader."""

    def video_id(self) -> Optional[str]: ...

    def video_title(self) -> str: ...

    def check_subtitles(self) -> Optional[SubtitleCheck]: ...


class MarkupInbox:
    """Holds the most recent intercepted WebVTT document per video.

    The host calls push() whenever the page fetches a subtitle file; the
    caption markup strategy reads it back through caption_markup().
    Documents without a WEBVTT signature are ignored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: Dict[str, str] = {}

    def push(self, video_id: str, text: str) -> bool:
        if "WEBVTT" not in text:
            return False
        with self._lock:
            self._documents[video_id] = text
        return True

    async def caption_markup(self, video_id: str) -> Optional[str]:
        with self._lock:
            return self._documents.get(video_id)

    def discard(self, video_id: str) -> None:
        with self._lock:
            self._documents.pop(video_id, None)


class WatchPageLocator:
    """Builds watch page URLs of the form ``{base}?v={video_id}``."""

    def __init__(self, base_url: str = WATCH_PAGE_URL) -> None:
        self.base_url = base_url

    def page_url(self, video_id: str) -> str:
        return str(httpx.URL(self.base_url, params={"v": video_id}))
