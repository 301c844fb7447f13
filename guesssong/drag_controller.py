from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from guesssong.clip_window import ClipWindow

logger = logging.getLogger(__name__)

MoveHandler = Callable[[float], None]
ReleaseHandler = Callable[[], None]
SeekHandler = Callable[[int], None]


class PointerListenerHost(Protocol):
    def bind(self, on_move: MoveHandler, on_release: ReleaseHandler) -> None:
        ...

    def unbind(self) -> None:
        ...


class DragGestureController:
    """Maps pointer positions over the timeline onto the clip window.

    Global move/release listeners are bound on pointer-down over a marker
    and released on pointer-up, ``cancel`` and ``teardown``.
    """

    def __init__(
        self,
        clip_window: ClipWindow,
        listener_host: PointerListenerHost,
        seek: Optional[SeekHandler] = None,
        granularity_ms: int = 1,
    ) -> None:
        self._window = clip_window
        self._host = listener_host
        self._seek = seek
        self._granularity_ms = max(1, int(granularity_ms))
        self._timeline_left = 0.0
        self._timeline_width = 0.0
        self._listeners_bound = False

    @property
    def listeners_bound(self) -> bool:
        return self._listeners_bound

    @property
    def granularity_ms(self) -> int:
        return self._granularity_ms

    def set_seek_handler(self, seek: Optional[SeekHandler]) -> None:
        self._seek = seek

    def set_timeline_geometry(self, left: float, width: float) -> None:
        self._timeline_left = float(left)
        self._timeline_width = max(0.0, float(width))

    def time_for_x(self, pointer_x: float) -> int:
        duration = self._window.duration_ms
        width = self._timeline_width
        if duration <= 0 or width <= 0:
            return 0
        offset = max(0.0, min(width, float(pointer_x) - self._timeline_left))
        raw_ms = (offset / width) * duration
        return int(raw_ms // self._granularity_ms) * self._granularity_ms

    def pointer_down(self, marker: str) -> bool:
        if not self._window.begin_drag(marker):
            return False
        self._bind_listeners()
        return True

    def pointer_move(self, pointer_x: float) -> None:
        if not self._window.is_dragging:
            return
        if self._window.duration_ms <= 0 or self._timeline_width <= 0:
            return
        self._window.drag_to(self.time_for_x(pointer_x))

    def pointer_up(self) -> None:
        self._window.end_drag()
        self._release_listeners()

    def timeline_click(self, pointer_x: float) -> Optional[int]:
        if self._window.is_dragging:
            return None
        if self._window.duration_ms <= 0 or self._timeline_width <= 0:
            return None
        target = self.time_for_x(pointer_x)
        if self._seek is not None:
            self._seek(target)
        return target

    def cancel(self) -> None:
        self.pointer_up()

    def teardown(self) -> None:
        self.pointer_up()
        self._seek = None

    def _bind_listeners(self) -> None:
        if self._listeners_bound:
            return
        self._host.bind(self.pointer_move, self.pointer_up)
        self._listeners_bound = True

    def _release_listeners(self) -> None:
        if not self._listeners_bound:
            return
        self._listeners_bound = False
        try:
            self._host.unbind()
        except Exception:
            logger.exception("Failed to release pointer listeners")
