"""Replay segment detector: turns playback samples into rewind events.

WHY: Learners rewind in many ways (keyboard shortcut, progress-bar click,
player buttons). Watching the media element's position instead of any one
input method catches all of them. A backward seek of more than a second is
a replay of the range between where playback landed and where it was.

HOW: The detector attaches to a media element's ``timeupdate`` and
``seeking`` events. timeupdate keeps the last-known position (forward or
flat moves only). seeking compares that position with the element's new
current_time. Host pages may re-render the element; an ElementWatcher
notifies the detector, which re-attaches to the replacement.

RULES:
- Emit ReplaySegment(after, before) only if before - after > 1 s and enabled
- A seek observed while disabled never emits
- After every seek, last-known position becomes the post-seek position
- Re-attachment preserves enabled and resets last-known position to the
  new element's current_time
- Listeners are removed from a replaced element before attaching anew
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from rewind_vocab.config import KEY_REWIND_STEP_S, REWIND_THRESHOLD_S
from rewind_vocab.core.models import ReplaySegment

logger = logging.getLogger(__name__)

SegmentCallback = Callable[[ReplaySegment], None]


class MediaElement(Protocol):
    """The slice of an HTML5-style media element the detector needs."""

    @property
    def current_time(self) -> float: ...

    def add_event_listener(self, event: str, handler: Callable[[], None]) -> None: ...

    def remove_event_listener(self, event: str, handler: Callable[[], None]) -> None: ...


class ElementWatcher(Protocol):
    """Notifies subscribers when a media element appears or is replaced.

    subscribe() returns an unsubscribe callable.
    """

    def subscribe(self, callback: Callable[[MediaElement], None]) -> Callable[[], None]: ...


class SegmentDetector:
    """Position-tracking state machine emitting replay segments.

    RULES:
    - on_segment is called synchronously from the seeking handler
    - set_enabled() may be called at any time, from any event
    """

    def __init__(
        self,
        on_segment: SegmentCallback,
        threshold_s: float = REWIND_THRESHOLD_S,
    ) -> None:
        self.on_segment = on_segment
        self.threshold_s = threshold_s
        self.enabled = False
        self.last_position = 0.0
        self._element: Optional[MediaElement] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def start(self, watcher: ElementWatcher) -> None:
        """Subscribe to element appear/replace notifications."""
        self.stop()
        self._unsubscribe = watcher.subscribe(self.attach)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._detach()

    def attach(self, element: MediaElement) -> None:
        """Attach to a (possibly replacement) media element."""
        self._detach()
        self._element = element
        self.last_position = element.current_time
        element.add_event_listener("timeupdate", self._on_time_update)
        element.add_event_listener("seeking", self._on_seeking)
        logger.debug("Attached to media element at %.2fs", self.last_position)

    def _detach(self) -> None:
        if self._element is None:
            return
        self._element.remove_event_listener("timeupdate", self._on_time_update)
        self._element.remove_event_listener("seeking", self._on_seeking)
        self._element = None

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)

    # ------------------------------------------------------------------
    # Samples and seeks
    # ------------------------------------------------------------------

    def sample(self, position: float) -> None:
        """Record a playback position sample."""
        if position >= self.last_position:
            self.last_position = position

    def seek(self, after: float, before: Optional[float] = None) -> Optional[ReplaySegment]:
        """Handle a seek that landed at ``after``.

        Args:
            after: Playback position immediately after the seek (seconds).
            before: Position immediately before the seek. Defaults to the
                last-known position.

        Returns:
            The emitted ReplaySegment, or None if the seek was not a replay
            or the detector is disabled.
        """
        previous = self.last_position if before is None else before
        self.last_position = after

        if previous - after <= self.threshold_s:
            return None
        if not self.enabled:
            return None

        segment = ReplaySegment(start_s=after, end_s=previous)
        self.on_segment(segment)
        return segment

    def rewind_step(self, position: float, step_s: float = KEY_REWIND_STEP_S) -> Optional[ReplaySegment]:
        """Emit a fixed-length replay for a key-driven rewind at ``position``.

        Used on players where the rewind key is observed before the player
        applies it, so no seek position is available yet.
        """
        if not self.enabled:
            return None
        segment = ReplaySegment(start_s=max(0.0, position - step_s), end_s=position)
        self.on_segment(segment)
        return segment

    def _on_time_update(self) -> None:
        if self._element is not None:
            self.sample(self._element.current_time)

    def _on_seeking(self) -> None:
        if self._element is not None:
            self.seek(self._element.current_time)
