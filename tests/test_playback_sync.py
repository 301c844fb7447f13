import os

import pytest
from PyQt5.QtWidgets import QApplication

from fakes import FakeEngine
from guesssong.clip_window import ClipWindow
from guesssong.playback_sync import PlaybackState, PlaybackSynchronizer

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="module")
def qapp():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def _synced(qapp, duration_ms=0):
    window = ClipWindow(30000)
    engine = FakeEngine(duration_ms=duration_ms)
    sync = PlaybackSynchronizer(window, engine)
    return window, engine, sync


def test_first_duration_starts_track_window(qapp):
    window, engine, sync = _synced(qapp)
    window.move_start(90000)
    assert sync.awaiting_first_duration

    engine.push_duration(180000)

    assert not sync.awaiting_first_duration
    assert (window.start_ms, window.end_ms) == (0, 30000)
    assert window.duration_ms == 180000
    assert sync.state.duration_ms == 180000


def test_later_duration_updates_only_clamp(qapp):
    window, engine, _sync = _synced(qapp)
    engine.push_duration(180000)
    window.move_start(140000)

    engine.push_duration(160000)

    assert (window.start_ms, window.end_ms) == (130000, 160000)


def test_engine_with_known_duration_starts_immediately(qapp):
    window = ClipWindow(30000)
    window.move_start(50000)
    sync = PlaybackSynchronizer(window, FakeEngine(duration_ms=120000))
    assert not sync.awaiting_first_duration
    assert (window.start_ms, window.end_ms) == (0, 30000)
    assert window.duration_ms == 120000


def test_zero_duration_is_ignored(qapp):
    window, engine, sync = _synced(qapp)
    engine.push_duration(0)
    assert sync.awaiting_first_duration
    assert window.duration_ms == 0


def test_auto_pause_at_clip_end(qapp):
    window, engine, sync = _synced(qapp)
    engine.push_duration(180000)
    paused = []
    sync.autoPaused.connect(paused.append)

    sync.preview_clip()
    assert engine.calls[:2] == [("seek", 0), ("play",)]
    assert sync.state.is_playing

    engine.push_position(29000)
    assert sync.state.is_playing
    engine.push_position(30000)

    assert not sync.state.is_playing
    assert engine.command_names()[-1] == "pause"
    assert paused == [30000]


def test_auto_pause_rearms_for_next_play(qapp):
    window, engine, sync = _synced(qapp)
    engine.push_duration(180000)
    sync.play()
    engine.push_position(31000)
    assert engine.command_names().count("pause") == 1

    window.move_start(60000)
    sync.toggle_play()
    assert engine.calls[-2:] == [("seek", 60000), ("play",)]
    engine.push_position(70000)
    assert sync.state.is_playing
    engine.push_position(90500)
    assert engine.command_names().count("pause") == 2


def test_positions_while_paused_do_not_pause(qapp):
    _window, engine, sync = _synced(qapp)
    engine.push_duration(180000)
    engine.push_position(45000)
    assert "pause" not in engine.command_names()
    assert sync.state.position_ms == 45000


def test_toggle_play_pauses_when_playing(qapp):
    _window, engine, sync = _synced(qapp)
    engine.push_duration(180000)
    sync.play()
    sync.toggle_play()
    assert engine.command_names()[-1] == "pause"
    assert not sync.state.is_playing


def test_engine_playing_and_ended_signals_update_state(qapp):
    _window, engine, sync = _synced(qapp)
    engine.push_playing(True)
    assert sync.state.is_playing
    engine.ended.emit()
    assert not sync.state.is_playing


def test_seek_is_optimistic(qapp):
    _window, engine, sync = _synced(qapp)
    states = []
    sync.stateChanged.connect(states.append)
    sync.seek(-20)
    assert engine.calls == [("seek", 0)]
    assert states == []
    sync.seek(42000)
    assert sync.state.position_ms == 42000
    assert states[-1].position_ms == 42000


def test_failed_command_reports_error(qapp):
    window = ClipWindow(30000)
    engine = FakeEngine(fail_on={"play"})
    sync = PlaybackSynchronizer(window, engine)
    errors = []
    sync.errorOccurred.connect(errors.append)

    sync.play()

    assert not sync.state.is_playing
    assert errors == ["Engine play failed: play refused"]


def test_engine_errors_are_forwarded(qapp, caplog):
    _window, engine, sync = _synced(qapp)
    errors = []
    sync.errorOccurred.connect(errors.append)
    engine.errorOccurred.emit("device offline")
    assert errors == ["device offline"]
    assert "device offline" in caplog.text


def test_detach_disconnects_engine(qapp):
    window, engine, sync = _synced(qapp)
    sync.detach_engine()
    engine.push_duration(180000)
    assert window.duration_ms == 0
    assert sync.engine is None
    sync.play()
    assert engine.calls == []


def test_commands_without_engine_are_noops(qapp):
    sync = PlaybackSynchronizer(ClipWindow(30000))
    sync.play()
    sync.pause()
    sync.seek(1000)
    assert sync.state == PlaybackState()
