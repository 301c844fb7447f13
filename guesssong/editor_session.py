from __future__ import annotations

import logging
from typing import Callable, Optional

from guesssong.clip_window import DEFAULT_CLIP_LENGTH_MS, ClipChange, ClipWindow
from guesssong.drag_controller import DragGestureController, PointerListenerHost
from guesssong.manual_entry import ManualTimeEntry
from guesssong.playback_engine import PlaybackEngine
from guesssong.playback_sync import PlaybackSynchronizer
from guesssong.settings_store import AppSettings
from guesssong.song_record import SongRecord, apply_record_clip

ClipChangeHandler = Callable[[ClipChange], None]

logger = logging.getLogger(__name__)


class ClipEditorSession:
    """One clip-editing session: window, drag, manual entry and playback."""

    def __init__(
        self,
        listener_host: PointerListenerHost,
        clip_length_ms: int = DEFAULT_CLIP_LENGTH_MS,
        granularity_ms: int = 1,
        on_clip_change: Optional[ClipChangeHandler] = None,
    ) -> None:
        self._window = ClipWindow(clip_length_ms)
        self._synchronizer = PlaybackSynchronizer(self._window)
        self._drag = DragGestureController(
            self._window,
            listener_host,
            seek=self._synchronizer.seek,
            granularity_ms=granularity_ms,
        )
        self._manual = ManualTimeEntry(self._window)
        self._on_clip_change = on_clip_change
        self._last_change: Optional[ClipChange] = None
        self._closed = False
        self._window.subscribe(self._handle_clip_change)

    @classmethod
    def from_settings(
        cls,
        listener_host: PointerListenerHost,
        settings: AppSettings,
        on_clip_change: Optional[ClipChangeHandler] = None,
    ) -> "ClipEditorSession":
        return cls(
            listener_host,
            clip_length_ms=settings.clip_length_ms(),
            granularity_ms=settings.drag_granularity_ms,
            on_clip_change=on_clip_change,
        )

    @property
    def clip_window(self) -> ClipWindow:
        return self._window

    @property
    def drag_controller(self) -> DragGestureController:
        return self._drag

    @property
    def manual_entry(self) -> ManualTimeEntry:
        return self._manual

    @property
    def synchronizer(self) -> PlaybackSynchronizer:
        return self._synchronizer

    @property
    def engine(self) -> Optional[PlaybackEngine]:
        return self._synchronizer.engine

    @property
    def last_change(self) -> Optional[ClipChange]:
        return self._last_change

    def select_track(self, engine: PlaybackEngine, record: Optional[SongRecord] = None) -> None:
        """Switch to a new track.

        Without ``record`` the window restarts at ``(0, clip_length)`` once the
        duration is known. With ``record`` its saved cut is kept and clamped to
        that duration instead.
        """
        self._drag.cancel()
        previous = self._synchronizer.engine
        if previous is not None:
            self._synchronizer.pause()
            self._synchronizer.detach_engine()
            if previous is not engine:
                previous.close()
        self._window.begin_track(0)
        if record is None:
            self._synchronizer.attach_engine(engine, new_track=True)
        else:
            apply_record_clip(self._window, record)
            self._synchronizer.attach_engine(engine, new_track=False)
        logger.debug("Selected new track engine %s", type(engine).__name__)

    def load_record(self, record: SongRecord) -> None:
        self._drag.cancel()
        apply_record_clip(self._window, record)
        self._synchronizer.keep_window()

    def reset(self) -> None:
        if self._synchronizer.state.is_playing:
            self._synchronizer.pause()
        self._drag.cancel()
        self._window.reset()

    def apply_to_record(self, record: SongRecord) -> SongRecord:
        return record.with_clip(self._window)

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._drag.teardown()
        self._window.unsubscribe(self._handle_clip_change)
        engine = self._synchronizer.engine
        if engine is not None:
            self._synchronizer.pause()
            self._synchronizer.detach_engine()
            engine.close()

    def _handle_clip_change(self, change: ClipChange) -> None:
        self._last_change = change
        if self._on_clip_change is not None:
            self._on_clip_change(change)
