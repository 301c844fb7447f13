from __future__ import annotations

import logging
import os
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

import requests
from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from guesssong.audio_engine import DecodedAudioPlayer, set_output_device
from guesssong.credentials import TokenCache, TokenFetcher
from guesssong.settings_store import AppSettings

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str]


class PlaybackEngine(QObject):
    """Capability set shared by the preview and the remote engines.

    Engines never raise from commands; failures arrive on ``errorOccurred``.
    """

    positionChanged = pyqtSignal(int)
    durationChanged = pyqtSignal(int)
    playingChanged = pyqtSignal(bool)
    ended = pyqtSignal()
    errorOccurred = pyqtSignal(str)

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek(self, position_ms: int) -> None:
        raise NotImplementedError

    def position_ms(self) -> int:
        raise NotImplementedError

    def duration_ms(self) -> int:
        raise NotImplementedError

    def is_playing(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        return


class PreviewAudioEngine(PlaybackEngine):
    def __init__(
        self,
        player: Optional[DecodedAudioPlayer] = None,
        session: Optional[requests.Session] = None,
        notify_interval_ms: int = 30,
        download_timeout_sec: float = 15.0,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._player = player if player is not None else DecodedAudioPlayer(self, notify_interval_ms)
        self._session = session if session is not None else requests.Session()
        self._download_timeout_sec = float(download_timeout_sec)
        self._temp_path = ""
        self._player.positionChanged.connect(self.positionChanged)
        self._player.durationChanged.connect(self.durationChanged)
        self._player.stateChanged.connect(self._on_state_changed)
        self._player.finished.connect(self.ended)

    def load_file(self, file_path: str) -> bool:
        try:
            self._player.setMedia(file_path)
        except Exception as exc:
            self._report(f"Could not load audio preview: {exc}")
            return False
        return True

    def load_url(self, url: str) -> bool:
        try:
            response = self._session.get(url, timeout=self._download_timeout_sec)
            response.raise_for_status()
        except requests.RequestException as exc:
            self._report(f"Could not download audio preview: {exc}")
            return False
        self._discard_temp_file()
        handle, path = tempfile.mkstemp(prefix="guesssong-preview-", suffix=".mp3")
        with os.fdopen(handle, "wb") as fh:
            fh.write(response.content)
        self._temp_path = path
        return self.load_file(path)

    def play(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.pause()

    def seek(self, position_ms: int) -> None:
        self._player.setPosition(int(position_ms))

    def position_ms(self) -> int:
        return int(self._player.position())

    def duration_ms(self) -> int:
        return int(self._player.duration())

    def is_playing(self) -> bool:
        return self._player.state() == DecodedAudioPlayer.PlayingState

    def close(self) -> None:
        self._player.close()
        self._discard_temp_file()

    def _on_state_changed(self, state: int) -> None:
        self.playingChanged.emit(state == DecodedAudioPlayer.PlayingState)

    def _report(self, message: str) -> None:
        logger.warning(message)
        self.errorOccurred.emit(message)

    def _discard_temp_file(self) -> None:
        path = self._temp_path
        self._temp_path = ""
        if not path:
            return
        try:
            os.remove(path)
        except OSError:
            logger.debug("Preview temp file already gone: %s", path)


class RemoteTrackEngine(PlaybackEngine):
    """Full-track playback on a remote Spotify Connect device.

    The Web API has no push channel, so position updates are synthesized
    from a poll that only runs while the device reports playback.
    """

    _requestFinished = pyqtSignal(str, object, object)

    def __init__(
        self,
        token_provider: TokenProvider,
        device_id: str = "",
        poll_interval_ms: int = 1000,
        session: Optional[requests.Session] = None,
        executor=None,
        api_base_url: str = SPOTIFY_API_BASE_URL,
        request_timeout_sec: float = 10.0,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._token_provider = token_provider
        self._device_id = str(device_id or "").strip()
        self._session = session if session is not None else requests.Session()
        self._owns_executor = executor is None
        # One worker keeps commands in issue order.
        self._executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="guesssong-remote"
        )
        self._api_base_url = api_base_url.rstrip("/")
        self._request_timeout_sec = float(request_timeout_sec)
        self._track_uri = ""
        self._position_ms = 0
        self._duration_ms = 0
        self._is_playing = False
        self._closed = False

        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(max(100, int(poll_interval_ms)))
        self._poll_timer.timeout.connect(self.refresh_state)
        self._requestFinished.connect(self._on_request_finished)

    @property
    def track_uri(self) -> str:
        return self._track_uri

    @property
    def is_polling(self) -> bool:
        return self._poll_timer.isActive()

    def set_device_id(self, device_id: str) -> None:
        self._device_id = str(device_id or "").strip()

    def load(self, track_uri: str) -> None:
        self._track_uri = str(track_uri or "").strip()
        self._position_ms = 0
        self._duration_ms = 0
        self._submit("load", "PUT", "/me/player/play", body={"uris": [self._track_uri]})

    def play(self) -> None:
        self._submit("play", "PUT", "/me/player/play")

    def pause(self) -> None:
        self._set_playing(False)
        self._submit("pause", "PUT", "/me/player/pause")

    def seek(self, position_ms: int) -> None:
        target = max(0, int(position_ms))
        self._position_ms = target
        self._submit("seek", "PUT", "/me/player/seek", params={"position_ms": target})

    def refresh_state(self) -> None:
        self._submit("state", "GET", "/me/player")

    def position_ms(self) -> int:
        return self._position_ms

    def duration_ms(self) -> int:
        return self._duration_ms

    def is_playing(self) -> bool:
        return self._is_playing

    def close(self) -> None:
        self._closed = True
        self._poll_timer.stop()
        self._is_playing = False
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _submit(
        self,
        action: str,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._closed:
            return
        query = dict(params or {})
        if self._device_id:
            query["device_id"] = self._device_id
        future = self._executor.submit(self._send, method, path, query, body)
        future.add_done_callback(lambda done, name=action: self._deliver(name, done))

    def _send(self, method: str, path: str, params: Dict[str, Any], body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        token = self._token_provider()
        response = self._session.request(
            method,
            f"{self._api_base_url}{path}",
            headers={"Authorization": f"Bearer {token}"},
            params=params or None,
            json=body,
            timeout=self._request_timeout_sec,
        )
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _deliver(self, action: str, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        payload = None if error is not None else future.result()
        # Emitted from the worker thread; Qt queues it onto our thread.
        self._requestFinished.emit(action, payload, error)

    def _on_request_finished(self, action: str, payload, error) -> None:
        if self._closed:
            return
        if error is not None:
            message = f"Remote player {action} failed: {error}"
            logger.warning(message)
            if action in {"load", "play"}:
                self._set_playing(False)
            self.errorOccurred.emit(message)
            return
        if action == "state":
            self._apply_state(payload or {})
        elif action in {"load", "play"}:
            self._set_playing(True)
            self.refresh_state()

    def _apply_state(self, payload: Dict[str, Any]) -> None:
        if not payload:
            return
        item = payload.get("item") or {}
        duration = int(item.get("duration_ms") or 0)
        if duration > 0 and duration != self._duration_ms:
            self._duration_ms = duration
            self.durationChanged.emit(duration)
        progress = payload.get("progress_ms")
        if progress is not None:
            self._position_ms = max(0, int(progress))
            self.positionChanged.emit(self._position_ms)
        was_playing = self._is_playing
        now_playing = bool(payload.get("is_playing"))
        self._set_playing(now_playing)
        if was_playing and not now_playing and self._position_ms == 0:
            self.ended.emit()

    def _set_playing(self, playing: bool) -> None:
        if playing == self._is_playing:
            return
        self._is_playing = playing
        if playing:
            self._poll_timer.start()
        else:
            self._poll_timer.stop()
        self.playingChanged.emit(playing)


def create_preview_engine(settings: AppSettings, parent: Optional[QObject] = None) -> PreviewAudioEngine:
    if not set_output_device(settings.audio_output_device):
        logger.warning("Audio output device not found, using default: %s", settings.audio_output_device)
    return PreviewAudioEngine(notify_interval_ms=settings.preview_notify_ms, parent=parent)


def create_remote_engine(
    settings: AppSettings,
    token_fetcher: TokenFetcher,
    parent: Optional[QObject] = None,
) -> RemoteTrackEngine:
    return RemoteTrackEngine(
        TokenCache(token_fetcher),
        device_id=settings.spotify_device_id,
        poll_interval_ms=settings.position_poll_ms,
        parent=parent,
    )
