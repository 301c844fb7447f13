from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, request
from werkzeug.serving import WSGIRequestHandler, make_server

from guesssong.song_record import SongRecord, validate_for_save
from guesssong.song_store import (
    ITEMS_PER_PAGE,
    SORT_ASC,
    SORT_DESC,
    SongNotFoundError,
    SongStore,
    filter_songs,
    page_numbers,
    paginate,
    sort_songs,
    total_pages,
)
from guesssong.version import get_configured_version

StoreProvider = Callable[[], Optional[SongStore]]

logger = logging.getLogger(__name__)


class QuietRequestHandler(WSGIRequestHandler):
    def log_request(self, _code: int | str = "-", _size: int | str = "-") -> None:
        return

    def log_message(self, _format: str, *args) -> None:
        return


class SongsApiServer:
    """Songs CRUD over HTTP for the backoffice front end."""

    def __init__(self, store: SongStore | StoreProvider | None, host: str = "127.0.0.1", port: int = 3001) -> None:
        if store is None or isinstance(store, SongStore):
            self._store_provider: StoreProvider = lambda: store
        else:
            self._store_provider = store
        self.host = host
        self.port = int(port)
        self._app = Flask("guesssong_songs_api")
        self._server = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._configure_logging()
        self._register_routes()

    @property
    def app(self) -> Flask:
        return self._app

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._server = make_server(
                self.host,
                self.port,
                self._app,
                threaded=True,
                request_handler=QuietRequestHandler,
            )
            self._thread = threading.Thread(target=self._server.serve_forever, name="guesssong-api", daemon=True)
            self._thread.start()
            logger.info("Songs API listening on http://%s:%s", self.host, self.port)

    def serve_forever(self) -> None:
        self.start()
        thread = self._thread
        if thread is None:
            return
        try:
            while thread.is_alive():
                thread.join(timeout=0.5)
        finally:
            self.stop()

    def stop(self) -> None:
        with self._lock:
            server = self._server
            thread = self._thread
            self._server = None
            self._thread = None
        if server is not None:
            server.shutdown()
        if thread is not None:
            thread.join(timeout=2.0)

    def _configure_logging(self) -> None:
        logging.getLogger("werkzeug").setLevel(logging.ERROR)
        self._app.logger.setLevel(logging.ERROR)

    def _register_routes(self) -> None:
        app = self._app

        def error(message: str, status: int):
            return jsonify({"ok": False, "error": message}), status

        def require_store() -> SongStore:
            store = self._store_provider()
            if store is None:
                raise _StoreUnavailable()
            return store

        def json_body() -> Dict[str, Any]:
            payload = request.get_json(silent=True)
            if not isinstance(payload, dict):
                raise _BadRequest("Request body must be a JSON object")
            return payload

        @app.errorhandler(SongNotFoundError)
        def handle_not_found(exc: SongNotFoundError):
            return error(f"Song not found: {exc.args[0] if exc.args else ''}", 404)

        @app.errorhandler(_BadRequest)
        def handle_bad_request(exc: _BadRequest):
            return error(str(exc), 400)

        @app.errorhandler(_StoreUnavailable)
        def handle_unavailable(_exc: _StoreUnavailable):
            return error("Song store is not available", 503)

        @app.get("/api/health")
        def api_health():
            return jsonify(
                {"ok": True, "store": self._store_provider() is not None, "version": get_configured_version()}
            )

        @app.get("/api/songs")
        def api_list_songs():
            store = require_store()
            args = request.args
            direction = str(args.get("direction", SORT_ASC)).lower()
            if direction not in {SORT_ASC, SORT_DESC}:
                raise _BadRequest(f"Unknown sort direction: {direction}")
            page = _positive_int(args.get("page"), 1)
            per_page = _positive_int(args.get("per_page"), ITEMS_PER_PAGE)
            songs = filter_songs(store.list_songs(), args.get("q", ""))
            songs = sort_songs(songs, args.get("sort"), direction)
            pages = total_pages(len(songs), per_page)
            return jsonify(
                {
                    "ok": True,
                    "songs": [song.to_dict() for song in paginate(songs, page, per_page)],
                    "total": len(songs),
                    "page": page,
                    "per_page": per_page,
                    "total_pages": pages,
                    "pages": page_numbers(page, pages),
                }
            )

        @app.get("/api/songs/<string:song_id>")
        def api_get_song(song_id: str):
            song = require_store().get_song(song_id)
            return jsonify({"ok": True, "song": song.to_dict()})

        @app.post("/api/songs")
        def api_add_song():
            store = require_store()
            record = SongRecord.from_dict(json_body())
            problem = validate_for_save(record)
            if problem:
                raise _BadRequest(problem)
            song = store.add_song(record)
            return jsonify({"ok": True, "song": song.to_dict()}), 201

        @app.put("/api/songs/<string:song_id>")
        def api_update_song(song_id: str):
            store = require_store()
            song = store.update_song(song_id, json_body())
            return jsonify({"ok": True, "song": song.to_dict()})

        @app.delete("/api/songs/<string:song_id>")
        def api_delete_song(song_id: str):
            require_store().delete_song(song_id)
            return jsonify({"ok": True, "deleted": song_id})


class _BadRequest(ValueError):
    pass


class _StoreUnavailable(RuntimeError):
    pass


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default
