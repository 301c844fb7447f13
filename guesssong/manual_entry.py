from __future__ import annotations

from guesssong.clip_window import ClipWindow
from guesssong.time_format import format_compact_time, ms_to_seconds, parse_time_input


class ManualTimeEntry:
    """Typed start time for the clip window; the end field is derived.

    Empty text resets the window to ``(0, clip_length)``. Anything else is
    parsed leniently and applied without looking at the track duration.
    """

    end_editable = False

    def __init__(self, clip_window: ClipWindow) -> None:
        self._window = clip_window

    def commit_start_text(self, text: str) -> None:
        if text is None or not str(text).strip():
            self._window.reset()
            return
        self._window.set_from_manual_start(max(0, parse_time_input(text)))

    def start_text(self) -> str:
        return format_compact_time(ms_to_seconds(self._window.start_ms))

    def end_text(self) -> str:
        return format_compact_time(ms_to_seconds(self._window.end_ms))
