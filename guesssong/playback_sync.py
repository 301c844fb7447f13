from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from PyQt5.QtCore import QObject, pyqtSignal

from guesssong.clip_window import ClipWindow
from guesssong.playback_engine import PlaybackEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackState:
    position_ms: int = 0
    duration_ms: int = 0
    is_playing: bool = False


class PlaybackSynchronizer(QObject):
    """Keeps one engine and one clip window in step.

    Mirrors engine position/duration/playing into ``PlaybackState`` and
    pauses the engine as soon as an observed position reaches the window end.
    The check reads ``end_ms`` on every update, so each new ``play`` is armed
    against the current window.
    """

    stateChanged = pyqtSignal(object)
    errorOccurred = pyqtSignal(str)
    autoPaused = pyqtSignal(int)

    def __init__(
        self,
        clip_window: ClipWindow,
        engine: Optional[PlaybackEngine] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._window = clip_window
        self._engine: Optional[PlaybackEngine] = None
        self._state = PlaybackState()
        self._awaiting_first_duration = False
        if engine is not None:
            self.attach_engine(engine)

    @property
    def engine(self) -> Optional[PlaybackEngine]:
        return self._engine

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def awaiting_first_duration(self) -> bool:
        return self._awaiting_first_duration

    def keep_window(self) -> None:
        """Clamp the current window to the first reported duration instead of restarting it."""
        self._awaiting_first_duration = False

    def attach_engine(self, engine: PlaybackEngine, new_track: bool = True) -> None:
        self.detach_engine()
        self._engine = engine
        engine.positionChanged.connect(self._on_position_changed)
        engine.durationChanged.connect(self._on_duration_changed)
        engine.playingChanged.connect(self._on_playing_changed)
        engine.ended.connect(self._on_ended)
        engine.errorOccurred.connect(self._on_engine_error)
        duration = max(0, int(engine.duration_ms()))
        self._set_state(PlaybackState(duration_ms=duration))
        self._awaiting_first_duration = bool(new_track) and duration <= 0
        if duration <= 0:
            return
        if new_track:
            self._window.begin_track(duration)
        else:
            self._window.set_duration(duration)

    def detach_engine(self) -> None:
        engine = self._engine
        if engine is None:
            return
        self._engine = None
        for signal, slot in (
            (engine.positionChanged, self._on_position_changed),
            (engine.durationChanged, self._on_duration_changed),
            (engine.playingChanged, self._on_playing_changed),
            (engine.ended, self._on_ended),
            (engine.errorOccurred, self._on_engine_error),
        ):
            try:
                signal.disconnect(slot)
            except TypeError:
                continue
        self._set_state(replace(self._state, is_playing=False))

    def play(self) -> None:
        if self._engine is None:
            return
        if not self._command("play", self._engine.play):
            return
        self._set_state(replace(self._state, is_playing=True))

    def pause(self) -> None:
        if self._engine is None:
            return
        self._set_state(replace(self._state, is_playing=False))
        self._command("pause", self._engine.pause)

    def toggle_play(self) -> None:
        if self._state.is_playing:
            self.pause()
            return
        self.seek(self._window.start_ms)
        self.play()

    def preview_clip(self) -> None:
        self.seek(self._window.start_ms)
        self.play()

    def seek(self, position_ms: int) -> None:
        if self._engine is None:
            return
        target = max(0, int(position_ms))
        self._set_state(replace(self._state, position_ms=target))
        engine = self._engine
        self._command("seek", lambda: engine.seek(target))

    def _command(self, name: str, action: Callable[[], None]) -> bool:
        try:
            action()
        except Exception as exc:
            self._on_engine_error(f"Engine {name} failed: {exc}")
            return False
        return True

    def _on_position_changed(self, position_ms: int) -> None:
        position = max(0, int(position_ms))
        self._set_state(replace(self._state, position_ms=position))
        if self._state.is_playing and position >= self._window.end_ms:
            logger.debug("Auto-pause at %d ms (clip end %d ms)", position, self._window.end_ms)
            self.pause()
            self.autoPaused.emit(position)

    def _on_duration_changed(self, duration_ms: int) -> None:
        duration = max(0, int(duration_ms))
        self._set_state(replace(self._state, duration_ms=duration))
        if duration <= 0:
            return
        if self._awaiting_first_duration:
            self._awaiting_first_duration = False
            self._window.begin_track(duration)
        else:
            self._window.set_duration(duration)

    def _on_playing_changed(self, playing: bool) -> None:
        self._set_state(replace(self._state, is_playing=bool(playing)))

    def _on_ended(self) -> None:
        self._set_state(replace(self._state, is_playing=False))

    def _on_engine_error(self, message: str) -> None:
        logger.warning("Playback engine error: %s", message)
        self.errorOccurred.emit(str(message))

    def _set_state(self, state: PlaybackState) -> None:
        if state == self._state:
            return
        self._state = state
        self.stateChanged.emit(state)
