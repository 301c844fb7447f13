import os
from concurrent.futures import Future

import pytest
import requests
from PyQt5.QtWidgets import QApplication

from guesssong.credentials import TokenCache
from guesssong.playback_engine import RemoteTrackEngine, create_remote_engine
from guesssong.settings_store import AppSettings

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="module")
def qapp():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


class InlineExecutor:
    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class FakeResponse:
    def __init__(self, status_code=204, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else b"{}"

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self):
        self.requests = []
        self.state = {}
        self.fail = {}

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": headers, "params": params, "json": json})
        path = url.split("/v1", 1)[1]
        error = self.fail.get(path)
        if isinstance(error, Exception):
            raise error
        if error is not None:
            return FakeResponse(status_code=error)
        if method == "GET":
            return FakeResponse(status_code=200, payload=self.state)
        return FakeResponse()


def _engine(qapp, state=None, device_id="device-1"):
    session = FakeSession()
    session.state = state or {}
    engine = RemoteTrackEngine(
        lambda: "tok",
        device_id=device_id,
        session=session,
        executor=InlineExecutor(),
    )
    events = {"position": [], "duration": [], "playing": [], "ended": 0, "errors": []}
    engine.positionChanged.connect(events["position"].append)
    engine.durationChanged.connect(events["duration"].append)
    engine.playingChanged.connect(events["playing"].append)
    engine.errorOccurred.connect(events["errors"].append)

    def on_ended():
        events["ended"] += 1

    engine.ended.connect(on_ended)
    return engine, session, events


def test_load_starts_track_and_reads_state(qapp):
    state = {"item": {"duration_ms": 200000}, "progress_ms": 1234, "is_playing": True}
    engine, session, events = _engine(qapp, state)

    engine.load("spotify:track:abc")

    first, second = session.requests
    assert first["method"] == "PUT"
    assert first["url"] == "https://api.spotify.com/v1/me/player/play"
    assert first["json"] == {"uris": ["spotify:track:abc"]}
    assert first["params"] == {"device_id": "device-1"}
    assert first["headers"] == {"Authorization": "Bearer tok"}
    assert second["method"] == "GET"
    assert second["url"].endswith("/me/player")

    assert engine.track_uri == "spotify:track:abc"
    assert events["duration"] == [200000]
    assert events["position"] == [1234]
    assert events["playing"] == [True]
    assert engine.is_polling
    assert engine.duration_ms() == 200000
    engine.close()


def test_poll_is_stopped_by_pause(qapp):
    engine, session, events = _engine(qapp, {"progress_ms": 0, "is_playing": True})
    engine.play()
    assert engine.is_polling

    engine.pause()

    assert not engine.is_polling
    assert not engine.is_playing()
    assert events["playing"] == [True, False]
    assert session.requests[-1]["url"].endswith("/me/player/pause")
    engine.close()


def test_seek_sends_position_and_updates_optimistically(qapp):
    engine, session, _events = _engine(qapp)
    engine.seek(45000)
    assert engine.position_ms() == 45000
    assert session.requests[-1]["params"] == {"position_ms": 45000, "device_id": "device-1"}
    engine.seek(-5)
    assert session.requests[-1]["params"]["position_ms"] == 0
    engine.close()


def test_device_id_is_optional(qapp):
    engine, session, _events = _engine(qapp, device_id="")
    engine.pause()
    assert session.requests[-1]["params"] is None
    engine.set_device_id("speaker")
    engine.pause()
    assert session.requests[-1]["params"] == {"device_id": "speaker"}
    engine.close()


def test_transport_error_is_reported(qapp, caplog):
    engine, session, events = _engine(qapp)
    session.fail["/me/player/play"] = requests.ConnectionError("offline")

    engine.play()

    assert len(events["errors"]) == 1
    assert events["errors"][0].startswith("Remote player play failed")
    assert not engine.is_playing()
    assert not engine.is_polling
    assert "Remote player play failed" in caplog.text
    engine.close()


def test_http_error_is_reported(qapp):
    engine, session, events = _engine(qapp)
    session.fail["/me/player/seek"] = 404
    engine.seek(1000)
    assert events["errors"] == ["Remote player seek failed: 404 Client Error"]
    engine.close()


def test_track_end_is_detected_from_state(qapp):
    engine, session, events = _engine(qapp, {"item": {"duration_ms": 1000}, "progress_ms": 900, "is_playing": True})
    engine.play()
    session.state = {"item": {"duration_ms": 1000}, "progress_ms": 0, "is_playing": False}

    engine.refresh_state()

    assert events["ended"] == 1
    assert events["playing"] == [True, False]
    assert not engine.is_polling
    engine.close()


def test_empty_state_changes_nothing(qapp):
    engine, _session, events = _engine(qapp, {})
    engine.refresh_state()
    assert events == {"position": [], "duration": [], "playing": [], "ended": 0, "errors": []}
    engine.close()


def test_commands_after_close_are_ignored(qapp):
    engine, session, _events = _engine(qapp)
    engine.close()
    engine.play()
    engine.refresh_state()
    assert session.requests == []


def test_token_cache_is_used_as_provider(qapp):
    session = FakeSession()
    cache = TokenCache(lambda: ("cached-token", 3600))
    engine = RemoteTrackEngine(cache, session=session, executor=InlineExecutor())
    engine.pause()
    engine.pause()
    assert [r["headers"]["Authorization"] for r in session.requests] == ["Bearer cached-token"] * 2
    engine.close()


def test_remote_engine_from_settings(qapp):
    settings = AppSettings(spotify_device_id="living-room", position_poll_ms=500)
    engine = create_remote_engine(settings, lambda: ("tok", 3600))
    assert isinstance(engine._token_provider, TokenCache)
    assert engine._token_provider() == "tok"
    assert engine._device_id == "living-room"
    assert engine._poll_timer.interval() == 500
    engine.close()
