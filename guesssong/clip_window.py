from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from guesssong.time_format import ms_to_seconds, seconds_to_ms

DEFAULT_CLIP_LENGTH_MS = 30000

MARKER_START = "start"
MARKER_END = "end"
MARKERS = (MARKER_START, MARKER_END)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClipChange:
    start_time_sec: float
    end_time_sec: float
    start_time_ms: int
    end_time_ms: int


ClipListener = Callable[[ClipChange], None]


class ClipWindow:
    """Start/end markers that stay one clip length apart.

    Every mutator clamps instead of rejecting. While the track duration is
    unknown (0) only the lower bounds apply; the upper bounds kick in once
    ``set_duration`` or ``begin_track`` reports a positive length. A track
    shorter than the clip length shrinks the window to the whole track.

    ``set_from_manual_start`` never looks at the duration, so typed start
    times can push ``end_ms`` past the end of the track.
    """

    def __init__(self, clip_length_ms: int = DEFAULT_CLIP_LENGTH_MS, start_ms: int = 0) -> None:
        length = int(clip_length_ms)
        if length <= 0:
            raise ValueError(f"Clip length must be positive, got {clip_length_ms}")
        self._clip_length_ms = length
        self._duration_ms = 0
        self._start_ms = max(0, int(start_ms))
        self._end_ms = self._start_ms + length
        self._active_marker: Optional[str] = None
        self._listeners: List[ClipListener] = []
        self._last_notified: Optional[Tuple[int, int]] = None

    @property
    def clip_length_ms(self) -> int:
        return self._clip_length_ms

    @property
    def start_ms(self) -> int:
        return self._start_ms

    @property
    def end_ms(self) -> int:
        return self._end_ms

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    @property
    def has_duration(self) -> bool:
        return self._duration_ms > 0

    @property
    def effective_length_ms(self) -> int:
        if self._duration_ms > 0:
            return min(self._clip_length_ms, self._duration_ms)
        return self._clip_length_ms

    @property
    def active_marker(self) -> Optional[str]:
        return self._active_marker

    @property
    def is_dragging(self) -> bool:
        return self._active_marker is not None

    def subscribe(self, listener: ClipListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ClipListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def snapshot(self) -> ClipChange:
        return ClipChange(
            start_time_sec=ms_to_seconds(self._start_ms),
            end_time_sec=ms_to_seconds(self._end_ms),
            start_time_ms=self._start_ms,
            end_time_ms=self._end_ms,
        )

    def set_duration(self, duration_ms: int) -> None:
        self._duration_ms = max(0, int(duration_ms))
        if self._duration_ms > 0 and self._end_ms > self._duration_ms:
            self._end_ms = self._duration_ms
            self._start_ms = max(0, self._end_ms - self._clip_length_ms)
        self._notify()

    def begin_track(self, duration_ms: int = 0) -> None:
        self._active_marker = None
        self._last_notified = None
        self._duration_ms = max(0, int(duration_ms))
        self._start_ms = 0
        self._end_ms = self.effective_length_ms
        self._notify()

    def reset(self) -> None:
        self._start_ms = 0
        self._end_ms = self.effective_length_ms
        self._notify()

    def move_start(self, candidate_ms: float) -> None:
        length = self.effective_length_ms
        start = max(0, int(candidate_ms))
        if self._duration_ms > 0:
            start = min(start, max(0, self._duration_ms - length))
        self._start_ms = start
        self._end_ms = start + length
        self._notify()

    def move_end(self, candidate_ms: float) -> None:
        length = self.effective_length_ms
        end = max(length, int(candidate_ms))
        if self._duration_ms > 0:
            end = min(end, self._duration_ms)
        self._end_ms = end
        self._start_ms = end - length
        self._notify()

    def set_from_manual_start(self, seconds: float) -> None:
        start = max(0, seconds_to_ms(seconds))
        self._start_ms = start
        self._end_ms = start + self._clip_length_ms
        self._notify()

    def begin_drag(self, marker: str) -> bool:
        if marker not in MARKERS:
            raise ValueError(f"Unknown marker: {marker}")
        if self._active_marker is not None:
            return False
        self._active_marker = marker
        return True

    def drag_to(self, candidate_ms: float) -> bool:
        if self._active_marker == MARKER_START:
            self.move_start(candidate_ms)
            return True
        if self._active_marker == MARKER_END:
            self.move_end(candidate_ms)
            return True
        return False

    def end_drag(self) -> None:
        self._active_marker = None

    def fraction_for(self, value_ms: float) -> float:
        if self._duration_ms <= 0:
            return 0.0
        return max(0.0, min(1.0, float(value_ms) / float(self._duration_ms)))

    @property
    def start_fraction(self) -> float:
        return self.fraction_for(self._start_ms)

    @property
    def end_fraction(self) -> float:
        return self.fraction_for(self._end_ms)

    def _notify(self) -> None:
        if self._duration_ms <= 0:
            return
        key = (self._start_ms, self._end_ms)
        if key == self._last_notified:
            return
        self._last_notified = key
        change = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Clip change listener failed")
