from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from guesssong.song_record import SongRecord, parse_view_count

SORT_ASC = "asc"
SORT_DESC = "desc"
SORTABLE_COLUMNS = ("songTitle", "releaseDate", "views", "difficulty")
ITEMS_PER_PAGE = 30
MAX_PAGE_BUTTONS = 5
PAGE_GAP = "..."

logger = logging.getLogger(__name__)


class SongNotFoundError(KeyError):
    pass


class SongStore:
    """Song records kept in a JSON file, one list in insertion order."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()
        self._songs: List[SongRecord] = []
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def list_songs(self) -> List[SongRecord]:
        with self._lock:
            return list(self._songs)

    def get_song(self, song_id: str) -> SongRecord:
        with self._lock:
            _index, song = self._find_locked(song_id)
            return song

    def add_song(self, record: SongRecord) -> SongRecord:
        with self._lock:
            if not record.song_id:
                record.song_id = str(uuid.uuid4())
            if not record.uuid:
                record.uuid = str(uuid.uuid4())
            self._songs.append(record)
            self._save_locked()
            logger.info("Added song %s (%s)", record.song_id, record.song_title)
            return record

    def update_song(self, song_id: str, changes: Dict[str, Any]) -> SongRecord:
        with self._lock:
            index, existing = self._find_locked(song_id)
            updated = existing.merged(changes)
            updated.song_id = existing.song_id
            self._songs[index] = updated
            self._save_locked()
            return updated

    def delete_song(self, song_id: str) -> None:
        with self._lock:
            index, _song = self._find_locked(song_id)
            del self._songs[index]
            self._save_locked()
            logger.info("Deleted song %s", song_id)

    def _find_locked(self, song_id: str) -> Tuple[int, SongRecord]:
        for index, song in enumerate(self._songs):
            if song.song_id == song_id:
                return index, song
        raise SongNotFoundError(song_id)

    def _load(self) -> None:
        if not self._path.exists():
            return
        with open(self._path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, list):
            raise ValueError(f"Song store must hold a JSON list: {self._path}")
        self._songs = [SongRecord.from_dict(item) for item in raw if isinstance(item, dict)]

    def _save_locked(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump([song.to_dict() for song in self._songs], fh, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self._path)


def filter_songs(songs: List[SongRecord], term: str) -> List[SongRecord]:
    needle = str(term or "").lower()
    return [song for song in songs if needle in song.song_title.lower()]


def sort_songs(songs: List[SongRecord], column: Optional[str], direction: str = SORT_ASC) -> List[SongRecord]:
    if column not in SORTABLE_COLUMNS:
        return list(songs)
    return sorted(songs, key=lambda song: _sort_key(song, column), reverse=direction == SORT_DESC)


def _sort_key(song: SongRecord, column: str):
    if column == "songTitle":
        return song.song_title.lower()
    if column == "releaseDate":
        try:
            return int(song.release_date.strip() or 0)
        except ValueError:
            return 0
    if column == "views":
        return parse_view_count(song.views)
    return song.difficulty


def total_pages(count: int, per_page: int = ITEMS_PER_PAGE) -> int:
    per_page = max(1, int(per_page))
    return (max(0, int(count)) + per_page - 1) // per_page


def paginate(songs: List[SongRecord], page: int, per_page: int = ITEMS_PER_PAGE) -> List[SongRecord]:
    per_page = max(1, int(per_page))
    start = (max(1, int(page)) - 1) * per_page
    return songs[start : start + per_page]


def page_numbers(current: int, total: int) -> List[Union[int, str]]:
    if total <= MAX_PAGE_BUTTONS:
        return list(range(1, total + 1))
    if current <= 3:
        return [1, 2, 3, 4, 5, PAGE_GAP, total]
    if current >= total - 2:
        return [1, PAGE_GAP] + list(range(total - 4, total + 1))
    return [1, PAGE_GAP, current - 1, current, current + 1, PAGE_GAP, total]
