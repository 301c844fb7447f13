from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt5.QtWidgets import QFormLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton, QVBoxLayout, QWidget

from guesssong.clip_window import ClipChange
from guesssong.editor_session import ClipEditorSession
from guesssong.i18n import localize_widget_tree, tr, translate_text
from guesssong.playback_engine import PlaybackEngine
from guesssong.playback_sync import PlaybackState
from guesssong.settings_store import AppSettings
from guesssong.song_record import SongRecord
from guesssong.ui.clip_timeline import ClipTimelineWidget

SaveHandler = Callable[[SongRecord], None]

logger = logging.getLogger(__name__)


class ClipEditorWindow(QWidget):
    """Timeline, start/end fields and transport for one editing session."""

    def __init__(
        self,
        settings: AppSettings,
        on_save: Optional[SaveHandler] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("Clip Editor")
        self.resize(720, 240)
        self._on_save = on_save
        self._record: Optional[SongRecord] = None

        self.timeline = ClipTimelineWidget()
        self._session = ClipEditorSession.from_settings(
            self.timeline.pointer_listeners,
            settings,
            on_clip_change=self._on_clip_changed,
        )
        self.timeline.attach(self._session.clip_window, self._session.drag_controller)

        root = QVBoxLayout(self)
        root.setContentsMargins(10, 10, 10, 10)
        root.setSpacing(8)

        self.title_label = QLabel("Select a track")
        root.addWidget(self.title_label)
        root.addWidget(self.timeline)

        form = QFormLayout()
        self.start_edit = QLineEdit("")
        self.start_edit.setPlaceholderText("0:00")
        self.end_edit = QLineEdit("")
        self.end_edit.setReadOnly(True)
        form.addRow(QLabel("Start Time"), self.start_edit)
        form.addRow(QLabel("End Time"), self.end_edit)
        root.addLayout(form)

        transport = QHBoxLayout()
        self.play_btn = QPushButton("Play")
        self.preview_btn = QPushButton("Preview Clip")
        self.reset_btn = QPushButton("Reset")
        self.save_btn = QPushButton("Save")
        self.save_btn.setEnabled(False)
        transport.addWidget(self.play_btn)
        transport.addWidget(self.preview_btn)
        transport.addWidget(self.reset_btn)
        transport.addStretch(1)
        transport.addWidget(self.save_btn)
        root.addLayout(transport)

        self.status_label = QLabel("")
        root.addWidget(self.status_label)

        synchronizer = self._session.synchronizer
        self.start_edit.editingFinished.connect(self._commit_start)
        self.play_btn.clicked.connect(synchronizer.toggle_play)
        self.preview_btn.clicked.connect(synchronizer.preview_clip)
        self.reset_btn.clicked.connect(self._reset)
        self.save_btn.clicked.connect(self._save)
        synchronizer.stateChanged.connect(self._on_state_changed)
        synchronizer.errorOccurred.connect(self._on_error)

        self._refresh_fields()
        localize_widget_tree(self)

    @property
    def session(self) -> ClipEditorSession:
        return self._session

    def open_track(self, engine: PlaybackEngine, title: str = "", record: Optional[SongRecord] = None) -> None:
        self._record = record
        self.status_label.setText("")
        self.title_label.setText(title or (record.song_title if record is not None else "") or tr("Select a track"))
        self.timeline.set_loading(engine.duration_ms() <= 0)
        self._session.select_track(engine, record=record)
        self.save_btn.setEnabled(record is not None and self._on_save is not None)
        self._refresh_fields()

    def closeEvent(self, event) -> None:  # noqa: N802
        self._session.teardown()
        self.timeline.detach()
        super().closeEvent(event)

    def _commit_start(self) -> None:
        self._session.manual_entry.commit_start_text(self.start_edit.text())
        self._refresh_fields()

    def _reset(self) -> None:
        self._session.reset()
        self._refresh_fields()

    def _save(self) -> None:
        if self._record is None or self._on_save is None:
            return
        self._record = self._session.apply_to_record(self._record)
        self._on_save(self._record)
        logger.info("Saved clip %s-%s for %s", self._record.start_cut, self._record.stop_cut, self._record.song_id)

    def _refresh_fields(self) -> None:
        entry = self._session.manual_entry
        self.start_edit.setText(entry.start_text())
        self.end_edit.setText(entry.end_text())

    def _on_clip_changed(self, _change: ClipChange) -> None:
        self._refresh_fields()

    def _on_state_changed(self, state: PlaybackState) -> None:
        self.timeline.set_playback_state(state)
        if state.duration_ms > 0:
            self.timeline.set_loading(False)
        self.play_btn.setText(tr("Pause") if state.is_playing else tr("Play"))

    def _on_error(self, message: str) -> None:
        self.timeline.set_loading(False)
        self.status_label.setText(translate_text(f"Playback error: {message}"))
