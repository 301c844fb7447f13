from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path

from guesssong.i18n import LANG_EN, normalize_language


@dataclass
class AppSettings:
    clip_length_sec: int = 30
    position_poll_ms: int = 1000
    drag_granularity_ms: int = 1
    preview_notify_ms: int = 30
    ui_language: str = LANG_EN
    songs_store_path: str = ""
    api_host: str = "127.0.0.1"
    api_port: int = 3001
    spotify_device_id: str = ""
    audio_output_device: str = ""
    log_file_enabled: bool = False
    last_preview_dir: str = ""

    def clip_length_ms(self) -> int:
        return int(self.clip_length_sec) * 1000

    def resolved_store_path(self) -> Path:
        if self.songs_store_path.strip():
            return Path(self.songs_store_path).expanduser()
        return get_settings_path().parent / "songs.json"


def get_settings_path() -> Path:
    appdata = os.getenv("APPDATA")
    if appdata:
        base = Path(appdata)
    else:
        base = Path.home() / ".config"
    settings_dir = base / "guesssong"
    settings_dir.mkdir(parents=True, exist_ok=True)
    return settings_dir / "settings.ini"


def load_settings() -> AppSettings:
    settings_path = get_settings_path()
    if settings_path.exists():
        parser = configparser.ConfigParser()
        parser.read(settings_path, encoding="utf-8")
        return _from_parser(parser)

    settings = AppSettings()
    save_settings(settings)
    return settings


def save_settings(settings: AppSettings) -> None:
    parser = configparser.ConfigParser()
    parser["main"] = {
        "clip_length_sec": str(settings.clip_length_sec),
        "position_poll_ms": str(settings.position_poll_ms),
        "drag_granularity_ms": str(settings.drag_granularity_ms),
        "preview_notify_ms": str(settings.preview_notify_ms),
        "ui_language": settings.ui_language,
        "songs_store_path": settings.songs_store_path,
        "api_host": settings.api_host,
        "api_port": str(settings.api_port),
        "spotify_device_id": settings.spotify_device_id,
        "audio_output_device": settings.audio_output_device,
        "log_file_enabled": "1" if settings.log_file_enabled else "0",
        "last_preview_dir": settings.last_preview_dir,
    }
    with open(get_settings_path(), "w", encoding="utf-8") as fh:
        parser.write(fh)


def _from_parser(parser: configparser.ConfigParser) -> AppSettings:
    section = parser["main"] if parser.has_section("main") else {}
    api_host = str(section.get("api_host", "127.0.0.1")).strip() or "127.0.0.1"
    return AppSettings(
        clip_length_sec=_clamp_int(_get_int(section, "clip_length_sec", 30), 5, 120),
        position_poll_ms=_clamp_int(_get_int(section, "position_poll_ms", 1000), 100, 5000),
        drag_granularity_ms=_clamp_int(_get_int(section, "drag_granularity_ms", 1), 1, 1000),
        preview_notify_ms=_clamp_int(_get_int(section, "preview_notify_ms", 30), 20, 1000),
        ui_language=normalize_language(str(section.get("ui_language", LANG_EN))),
        songs_store_path=str(section.get("songs_store_path", "")),
        api_host=api_host,
        api_port=_clamp_int(_get_int(section, "api_port", 3001), 1, 65535),
        spotify_device_id=str(section.get("spotify_device_id", "")).strip(),
        audio_output_device=str(section.get("audio_output_device", "")),
        log_file_enabled=_get_bool(section, "log_file_enabled", False),
        last_preview_dir=str(section.get("last_preview_dir", "")),
    )


def _get_bool(section, key: str, default: bool) -> bool:
    raw = str(section.get(key, "1" if default else "0")).strip().lower()
    return raw in {"1", "true", "yes", "y", "on"}


def _get_int(section, key: str, default: int) -> int:
    try:
        return int(str(section.get(key, str(default))).strip())
    except ValueError:
        return default


def _clamp_int(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))
