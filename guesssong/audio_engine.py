from __future__ import annotations

import os
import threading
from typing import List, Optional, Tuple

import numpy as np
import pygame
import sounddevice as sd
from PyQt5.QtCore import QObject, QTimer, pyqtSignal

_DECODER_READY = False
_CHANNEL_COUNT = 2
_REQUESTED_DEVICE = ""
_DECODER_LOCK = threading.RLock()


class _NullOutputStream:
    def start(self) -> None:
        return

    def stop(self) -> None:
        return

    def close(self) -> None:
        return


def _ensure_decoder() -> None:
    global _DECODER_READY
    with _DECODER_LOCK:
        if _DECODER_READY and pygame.mixer.get_init():
            return
        if not pygame.mixer.get_init():
            original_driver = os.environ.get("SDL_AUDIODRIVER")
            init_errors: List[str] = []
            for driver in [original_driver, "pulseaudio", "alsa", "wasapi", "directsound", "dummy"]:
                try:
                    if driver:
                        os.environ["SDL_AUDIODRIVER"] = driver
                    elif "SDL_AUDIODRIVER" in os.environ:
                        del os.environ["SDL_AUDIODRIVER"]
                    pygame.mixer.init(frequency=44100, size=-16, channels=_CHANNEL_COUNT)
                    break
                except Exception as exc:
                    init_errors.append(f"{driver or 'default'}: {exc}")
            if not pygame.mixer.get_init():
                raise pygame.error("Unable to initialize pygame mixer: " + " | ".join(init_errors))
        _DECODER_READY = True


def set_output_device(device_name: str) -> bool:
    global _REQUESTED_DEVICE
    target = (device_name or "").strip()
    if not target:
        _REQUESTED_DEVICE = ""
        return True
    try:
        _find_output_device_index(target)
    except Exception:
        return False
    _REQUESTED_DEVICE = target
    return True


def _find_output_device_index(device_name: str) -> Optional[int]:
    target = (device_name or "").strip().casefold()
    if not target:
        return None
    devices = sd.query_devices()
    for i, dev in enumerate(devices):
        if int(dev.get("max_output_channels", 0)) <= 0:
            continue
        if str(dev.get("name", "")).strip().casefold() == target:
            return i
    raise ValueError(f"Output device not found: {device_name}")


def _bytes_to_frames(raw: bytes, sample_size: int, channels: int) -> Optional[np.ndarray]:
    if channels <= 0:
        return None
    if sample_size in (-16, 16):
        src = np.frombuffer(raw, dtype=np.int16).astype(np.float32) / 32768.0
    elif sample_size == 8:
        src = (np.frombuffer(raw, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    elif sample_size == -8:
        src = np.frombuffer(raw, dtype=np.int8).astype(np.float32) / 128.0
    elif sample_size in (-32, 32):
        src = np.frombuffer(raw, dtype=np.int32).astype(np.float32) / 2147483648.0
    else:
        return None
    frame_count = int(len(src) // channels)
    if frame_count <= 0:
        return None
    return src[: frame_count * channels].reshape((frame_count, channels))


def decode_media_frames(file_path: str) -> Tuple[np.ndarray, int, int]:
    """Decode a file into float32 frames; returns (frames, sample_rate, duration_ms)."""
    _ensure_decoder()
    sound = pygame.mixer.Sound(file_path)
    mixer_info = pygame.mixer.get_init() or (44100, -16, _CHANNEL_COUNT)
    sample_rate = int(mixer_info[0])
    frames = _bytes_to_frames(sound.get_raw(), int(mixer_info[1]), int(mixer_info[2]))
    if frames is None:
        raise ValueError("Unsupported mixer sample format")
    duration_ms = int((len(frames) / float(sample_rate)) * 1000.0)
    return frames, sample_rate, duration_ms


class DecodedAudioPlayer(QObject):
    StoppedState = 0
    PlayingState = 1
    PausedState = 2

    positionChanged = pyqtSignal(int)
    durationChanged = pyqtSignal(int)
    stateChanged = pyqtSignal(int)
    finished = pyqtSignal()

    def __init__(self, parent: Optional[QObject] = None, notify_interval_ms: int = 30) -> None:
        super().__init__(parent)
        self._state = self.StoppedState
        self._duration_ms = 0
        self._position_ms = 0
        self._sample_rate = 44100
        self._channels = _CHANNEL_COUNT
        self._frames: Optional[np.ndarray] = None
        self._frame_pos = 0
        self._ended = False
        self._lock = threading.RLock()
        self._stream = None

        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(max(20, int(notify_interval_ms)))
        self._poll_timer.timeout.connect(self._poll)

    def setMedia(self, file_path: str) -> None:
        self.stop()
        frames, sample_rate, duration_ms = decode_media_frames(file_path)
        with self._lock:
            self._frames = frames
            self._sample_rate = sample_rate
            self._channels = int(frames.shape[1])
            self._frame_pos = 0
            self._duration_ms = int(duration_ms)
            self._position_ms = 0
            self._ended = False
        self._open_stream()
        self.durationChanged.emit(self._duration_ms)
        self.positionChanged.emit(0)

    def play(self) -> None:
        with self._lock:
            if self._frames is None or self._state == self.PlayingState:
                return
            if self._frame_pos >= len(self._frames):
                self._frame_pos = 0
            self._ended = False
            self._set_state_locked(self.PlayingState)
        self._poll_timer.start()

    def pause(self) -> None:
        with self._lock:
            if self._state != self.PlayingState:
                return
            self._set_state_locked(self.PausedState)
        self._poll_timer.stop()

    def stop(self) -> None:
        with self._lock:
            self._frame_pos = 0
            self._position_ms = 0
            self._ended = False
            self._set_state_locked(self.StoppedState)
        self._poll_timer.stop()
        self.positionChanged.emit(0)

    def state(self) -> int:
        with self._lock:
            return self._state

    def setPosition(self, position_ms: int) -> None:
        with self._lock:
            target = max(0, min(int(position_ms), self._duration_ms))
            self._position_ms = target
            if self._frames is not None:
                self._frame_pos = min(len(self._frames), int((target / 1000.0) * self._sample_rate))
            self._ended = False
        self.positionChanged.emit(target)

    def position(self) -> int:
        with self._lock:
            return self._position_ms

    def duration(self) -> int:
        with self._lock:
            return self._duration_ms

    def close(self) -> None:
        self.stop()
        stream = self._stream
        self._stream = None
        if stream is not None:
            stream.stop()
            stream.close()

    def _open_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
        self._stream = self._create_stream()
        self._stream.start()

    def _create_stream(self):
        device_index = None
        if _REQUESTED_DEVICE:
            try:
                device_index = _find_output_device_index(_REQUESTED_DEVICE)
            except ValueError:
                device_index = None
        try:
            return sd.OutputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype="float32",
                callback=self._audio_callback,
                device=device_index,
                blocksize=1024,
                latency="low",
            )
        except Exception:
            return _NullOutputStream()

    def _audio_callback(self, outdata, frames, _time_info, _status) -> None:
        outdata.fill(0.0)
        with self._lock:
            if self._state != self.PlayingState or self._frames is None:
                return
            src = self._frames
            begin = self._frame_pos
            end = min(len(src), begin + frames)
            n = max(0, end - begin)
            if n > 0:
                outdata[:n, :] = src[begin:end, :]
            self._frame_pos = end
            if end >= len(src):
                self._ended = True
            self._position_ms = min(self._duration_ms, int((self._frame_pos / float(self._sample_rate)) * 1000.0))

    def _poll(self) -> None:
        emit_pos: Optional[int] = None
        finished = False
        with self._lock:
            if self._state == self.PlayingState:
                emit_pos = self._position_ms
                if self._ended:
                    self._ended = False
                    emit_pos = self._duration_ms
                    self._position_ms = self._duration_ms
                    self._set_state_locked(self.StoppedState)
                    finished = True
        if emit_pos is not None:
            self.positionChanged.emit(emit_pos)
        if finished:
            self._poll_timer.stop()
            self.finished.emit()

    def _set_state_locked(self, new_state: int) -> None:
        if new_state != self._state:
            self._state = new_state
            self.stateChanged.emit(new_state)
