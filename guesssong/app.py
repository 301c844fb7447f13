from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from PyQt5.QtWidgets import QApplication

from guesssong.credentials import environment_token_fetcher
from guesssong.i18n import set_current_language
from guesssong.playback_engine import PlaybackEngine, RemoteTrackEngine, create_preview_engine, create_remote_engine
from guesssong.settings_store import AppSettings, get_settings_path, load_settings
from guesssong.song_record import SongRecord
from guesssong.song_store import SongNotFoundError, SongStore
from guesssong.ui.clip_editor_window import ClipEditorWindow
from guesssong.version import get_app_title_base, get_configured_version
from guesssong.web_api import SongsApiServer

LOG_FILE_NAME = "guesssong.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("guesssong")


def configure_logging(debug: bool = False, log_file_enabled: bool = False, log_dir: Optional[Path] = None) -> None:
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(handler, "_guesssong_console", False) for handler in root.handlers):
        console = logging.StreamHandler(sys.stderr)
        console._guesssong_console = True
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console)
    if log_file_enabled:
        directory = log_dir if log_dir is not None else get_settings_path().parent
        target = str(Path(directory) / LOG_FILE_NAME)
        if not any(getattr(handler, "baseFilename", None) == target for handler in root.handlers):
            file_handler = logging.FileHandler(target, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(file_handler)


def _parse_args(argv: list[str], settings: AppSettings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="guesssong", description="Serve the song clip backoffice API or open the clip editor.")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    parser.add_argument("--store", default="", help="path of the songs JSON file")
    parser.add_argument("--editor", action="store_true", help="open the clip editor instead of serving the API")
    parser.add_argument("--preview", default="", help="preview audio file or URL to edit")
    parser.add_argument("--track", default="", help="Spotify track URI to play on the remote device")
    parser.add_argument("--song", default="", help="song id whose clip is edited and saved back")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--version", action="version", version=get_configured_version())
    return parser.parse_args(argv)


def _open_store(path: Path) -> Optional[SongStore]:
    try:
        return SongStore(path)
    except (OSError, ValueError) as exc:
        logger.error("Could not open song store %s: %s", path, exc)
        return None


def _editor_source(args: argparse.Namespace, record: Optional[SongRecord]) -> str:
    if args.track or args.preview:
        return args.track or args.preview
    if record is not None and record.spotify_id:
        return f"spotify:track:{record.spotify_id}"
    return ""


def _create_editor_engine(source: str, settings: AppSettings) -> PlaybackEngine:
    if source.startswith("spotify:"):
        return create_remote_engine(settings, environment_token_fetcher())
    return create_preview_engine(settings)


def _load_editor_source(engine: PlaybackEngine, source: str) -> None:
    if isinstance(engine, RemoteTrackEngine):
        engine.load(source)
    elif source.startswith(("http://", "https://")):
        engine.load_url(source)
    else:
        engine.load_file(str(Path(source).expanduser()))


def _store_saver(store: SongStore):
    def save(record: SongRecord) -> None:
        store.update_song(record.song_id, {"startCut": record.start_cut, "stopCut": record.stop_cut})

    return save


def run_editor(args: argparse.Namespace, settings: AppSettings, store: Optional[SongStore] = None) -> int:
    record: Optional[SongRecord] = None
    if args.song:
        if store is None:
            logger.error("Song store is not available")
            return 1
        try:
            record = store.get_song(args.song)
        except SongNotFoundError:
            logger.error("Song not found: %s", args.song)
            return 1
    app = QApplication.instance() or QApplication(sys.argv[:1])
    window = ClipEditorWindow(settings, on_save=_store_saver(store) if record is not None else None)
    source = _editor_source(args, record)
    if source:
        engine = _create_editor_engine(source, settings)
        window.open_track(engine, title=record.song_title if record is not None else Path(source).name, record=record)
        _load_editor_source(engine, source)
    window.show()
    return app.exec_()


def main(argv: Optional[list[str]] = None) -> int:
    settings = load_settings()
    args = _parse_args(list(sys.argv[1:] if argv is None else argv), settings)
    configure_logging(debug=args.debug, log_file_enabled=settings.log_file_enabled)
    set_current_language(settings.ui_language)
    store_path = Path(args.store).expanduser() if args.store else settings.resolved_store_path()
    if args.editor:
        return run_editor(args, settings, _open_store(store_path) if args.song else None)
    logger.info("Starting %s with store %s", get_app_title_base(), store_path)
    server = SongsApiServer(_open_store(store_path), host=args.host, port=args.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as exc:
        logger.error("Could not start songs API on %s:%s: %s", args.host, args.port, exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
