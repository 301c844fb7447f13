from __future__ import annotations

from typing import Optional

from PyQt5.QtCore import QEvent, QObject, QSize, Qt, pyqtSignal
from PyQt5.QtGui import QColor, QPainter, QPen, QWindow
from PyQt5.QtWidgets import QApplication, QWidget

from guesssong.clip_window import MARKER_END, MARKER_START, ClipChange, ClipWindow
from guesssong.drag_controller import DragGestureController, MoveHandler, ReleaseHandler
from guesssong.i18n import tr
from guesssong.playback_sync import PlaybackState
from guesssong.time_format import format_clock_time

MARKER_GRAB_PX = 8


class GlobalPointerListeners(QObject):
    """Application-wide mouse move/release hooks, active only while bound.

    Moves are reported in ``target`` coordinates so a drag keeps tracking
    after the pointer leaves the timeline.
    """

    def __init__(self, target: QWidget) -> None:
        super().__init__(target)
        self._target = target
        self._on_move: Optional[MoveHandler] = None
        self._on_release: Optional[ReleaseHandler] = None

    @property
    def is_bound(self) -> bool:
        return self._on_move is not None or self._on_release is not None

    def bind(self, on_move: MoveHandler, on_release: ReleaseHandler) -> None:
        app = QApplication.instance()
        if app is None:
            raise RuntimeError("QApplication is required for pointer listeners")
        if not self.is_bound:
            app.installEventFilter(self)
        self._on_move = on_move
        self._on_release = on_release

    def unbind(self) -> None:
        self._on_move = None
        self._on_release = None
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self)

    def eventFilter(self, obj, event) -> bool:  # noqa: N802
        # Widgets see propagated copies; the QWindow sees each event once.
        if not isinstance(obj, QWindow):
            return False
        kind = event.type()
        if kind == QEvent.MouseMove and self._on_move is not None:
            self._on_move(float(self._target.mapFromGlobal(event.globalPos()).x()))
        elif kind == QEvent.MouseButtonRelease and self._on_release is not None:
            self._on_release()
        return False


class ClipTimelineWidget(QWidget):
    """Track timeline with the clip region, both markers and the playhead."""

    markerPressed = pyqtSignal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._window: Optional[ClipWindow] = None
        self._controller: Optional[DragGestureController] = None
        self._position_ms = 0
        self._loading = False
        self._listeners = GlobalPointerListeners(self)
        self.setMinimumHeight(56)
        self.setMouseTracking(False)

    @property
    def pointer_listeners(self) -> GlobalPointerListeners:
        return self._listeners

    def sizeHint(self) -> QSize:
        return QSize(480, 64)

    def attach(self, clip_window: ClipWindow, controller: DragGestureController) -> None:
        self.detach()
        self._window = clip_window
        self._controller = controller
        clip_window.subscribe(self._on_clip_changed)
        controller.set_timeline_geometry(0, self.width())
        self.update()

    def detach(self) -> None:
        if self._window is not None:
            self._window.unsubscribe(self._on_clip_changed)
        self._window = None
        self._controller = None
        self.update()

    def set_position(self, position_ms: int) -> None:
        self._position_ms = max(0, int(position_ms))
        self.update()

    def set_playback_state(self, state: PlaybackState) -> None:
        self.set_position(state.position_ms)

    def set_loading(self, loading: bool) -> None:
        self._loading = bool(loading)
        self.update()

    def x_for_ms(self, value_ms: float) -> int:
        if self._window is None:
            return 0
        return int(round(self._window.fraction_for(value_ms) * self.width()))

    def marker_at(self, x: float) -> Optional[str]:
        window = self._window
        if window is None or not window.has_duration:
            return None
        best = None
        best_distance = MARKER_GRAB_PX + 1
        for marker, value_ms in ((MARKER_START, window.start_ms), (MARKER_END, window.end_ms)):
            distance = abs(float(x) - self.x_for_ms(value_ms))
            if distance <= MARKER_GRAB_PX and distance < best_distance:
                best = marker
                best_distance = distance
        return best

    def mousePressEvent(self, event) -> None:  # noqa: N802
        if event.button() != Qt.LeftButton or self._controller is None:
            super().mousePressEvent(event)
            return
        x = float(event.pos().x())
        marker = self.marker_at(x)
        if marker is not None:
            if self._controller.pointer_down(marker):
                self.markerPressed.emit(marker)
        else:
            self._controller.timeline_click(x)
        event.accept()

    def resizeEvent(self, event) -> None:  # noqa: N802
        super().resizeEvent(event)
        if self._controller is not None:
            self._controller.set_timeline_geometry(0, self.width())

    def _on_clip_changed(self, _change: ClipChange) -> None:
        self.update()

    def paintEvent(self, _event) -> None:  # noqa: N802
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, False)
        w = max(1, self.width())
        h = max(1, self.height())

        painter.fillRect(0, 0, w, h, QColor("#141A1F"))
        window = self._window
        if self._loading or window is None or not window.has_duration:
            painter.setPen(QColor("#D8E3EA"))
            text = tr("Loading track...") if self._loading else tr("No track loaded")
            painter.drawText(self.rect(), int(Qt.AlignCenter), text)
            painter.end()
            return

        x1 = self.x_for_ms(window.start_ms)
        x2 = max(x1, self.x_for_ms(window.end_ms))
        painter.fillRect(x1, 0, max(1, x2 - x1), h, QColor("#253B4B"))

        start_pen = QPen(QColor("#00C853"))
        start_pen.setWidth(3 if window.active_marker == MARKER_START else 2)
        painter.setPen(start_pen)
        painter.drawLine(x1, 0, x1, h - 1)
        end_pen = QPen(QColor("#FF5252"))
        end_pen.setWidth(3 if window.active_marker == MARKER_END else 2)
        painter.setPen(end_pen)
        painter.drawLine(x2, 0, x2, h - 1)

        playhead_x = self.x_for_ms(self._position_ms)
        painter.setPen(QPen(QColor("#FFD54F")))
        painter.drawLine(playhead_x, 0, playhead_x, h - 1)

        painter.setPen(QPen(QColor("#45535E")))
        painter.drawRect(0, 0, w - 1, h - 1)

        painter.setPen(QColor("#00C853"))
        painter.drawText(4, 14, format_clock_time(window.start_ms))
        end_text = format_clock_time(window.end_ms)
        text_w = painter.fontMetrics().horizontalAdvance(end_text)
        painter.setPen(QColor("#FF5252"))
        painter.drawText(max(2, w - text_w - 4), 14, end_text)
        painter.setPen(QColor("#8AA6B8"))
        painter.drawText(4, h - 6, format_clock_time(window.duration_ms))
        painter.end()
