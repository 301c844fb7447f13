from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from guesssong.clip_window import DEFAULT_CLIP_LENGTH_MS, ClipWindow
from guesssong.time_format import seconds_to_ms

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="

_FLOAT_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))")


@dataclass(frozen=True)
class Tag:
    name: str
    value: int


AVAILABLE_TAGS: List[Tag] = [
    Tag("מזרחית", 1),
    Tag("רוק", 2),
    Tag("קלאסיקות", 4),
    Tag("פופ", 8),
    Tag("היפ הופ", 16),
    Tag("מסיבות", 32),
    Tag("שירי אהבה", 64),
]


@dataclass
class SongRecord:
    song_id: str = ""
    uuid: str = ""
    song_title: str = ""
    release_date: str = ""
    views: str = ""
    difficulty: str = ""
    youtube_id: str = ""
    spotify_id: str = ""
    youtube_url: str = ""
    spotify_url: str = ""
    start_cut: str = ""
    stop_cut: str = ""
    inside_of_120: str = ""
    top_30: str = ""
    tag: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(
            {
                "songId": self.song_id,
                "uuid": self.uuid,
                "songTitle": self.song_title,
                "releaseDate": self.release_date,
                "views": self.views,
                "difficulty": self.difficulty,
                "media": {"youtubeId": self.youtube_id, "spotifyId": self.spotify_id},
                "youtubeUrl": self.youtube_url,
                "spotifyUrl": self.spotify_url,
                "startCut": self.start_cut,
                "stopCut": self.stop_cut,
                "insideOf120": self.inside_of_120,
                "top30": self.top_30,
                "tag": self.tag,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SongRecord":
        raw = dict(data or {})
        media = raw.pop("media", None) or {}
        values: Dict[str, Any] = {}
        for key, attr in _JSON_FIELDS.items():
            if key in raw:
                values[attr] = _text(raw.pop(key))
        if "youtubeId" in raw:
            values.setdefault("youtube_id", _text(raw.pop("youtubeId")))
        if "spotifyId" in raw:
            values.setdefault("spotify_id", _text(raw.pop("spotifyId")))
        if isinstance(media, dict):
            if media.get("youtubeId"):
                values["youtube_id"] = _text(media.get("youtubeId"))
            if media.get("spotifyId"):
                values["spotify_id"] = _text(media.get("spotifyId"))
        return cls(extra=raw, **values)

    def merged(self, changes: Dict[str, Any]) -> "SongRecord":
        current = self.to_dict()
        incoming = dict(changes or {})
        if isinstance(incoming.get("media"), dict):
            media = dict(current.get("media") or {})
            media.update(incoming.pop("media"))
            incoming["media"] = media
        current.update(incoming)
        return SongRecord.from_dict(current)

    @property
    def tags(self) -> List[Tag]:
        return tags_from_value(self.tag)

    def with_clip(self, clip_window: ClipWindow) -> "SongRecord":
        return replace(
            self,
            start_cut=seconds_text(clip_window.start_ms),
            stop_cut=seconds_text(clip_window.end_ms),
        )


_JSON_FIELDS = {
    "songId": "song_id",
    "uuid": "uuid",
    "songTitle": "song_title",
    "releaseDate": "release_date",
    "views": "views",
    "difficulty": "difficulty",
    "youtubeUrl": "youtube_url",
    "spotifyUrl": "spotify_url",
    "startCut": "start_cut",
    "stopCut": "stop_cut",
    "insideOf120": "inside_of_120",
    "top30": "top_30",
    "tag": "tag",
}


def tags_from_value(value: Any) -> List[Tag]:
    mask = _int_prefix(value)
    return [tag for tag in AVAILABLE_TAGS if mask & tag.value]


def tags_value(tags: List[Tag]) -> int:
    total = 0
    for tag in tags:
        total |= int(tag.value)
    return total


def tag_names(value: Any) -> str:
    return ", ".join(tag.name for tag in tags_from_value(value))


def toggle_tag(tags: List[Tag], tag: Tag) -> List[Tag]:
    if any(existing.value == tag.value for existing in tags):
        return [existing for existing in tags if existing.value != tag.value]
    return list(tags) + [tag]


def format_view_count(count: Any) -> str:
    num = _int_prefix(count, default=None)
    if num is None:
        return ""
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if num >= threshold:
            text = f"{num / threshold:.1f}"
            if text.endswith(".0"):
                text = text[:-2]
            return text + suffix
    return str(num)


def parse_view_count(text: Any) -> float:
    raw = str(text or "").upper()
    number = _float_prefix(raw)
    if "B" in raw:
        return number * 1_000_000_000
    if "M" in raw:
        return number * 1_000_000
    if "K" in raw:
        return number * 1_000
    return number


def youtube_url(video_id: str) -> str:
    return f"{YOUTUBE_WATCH_URL}{video_id}"


def seconds_text(value_ms: int) -> str:
    ms = max(0, int(value_ms))
    if ms % 1000 == 0:
        return str(ms // 1000)
    return f"{ms / 1000.0:.3f}".rstrip("0").rstrip(".")


def clip_window_for_record(record: SongRecord, clip_length_ms: int = DEFAULT_CLIP_LENGTH_MS) -> ClipWindow:
    window = ClipWindow(clip_length_ms)
    apply_record_clip(window, record)
    return window


def apply_record_clip(window: ClipWindow, record: SongRecord) -> None:
    """Position ``window`` from a stored record; ``stopCut`` only matters without ``startCut``."""
    start_text = (record.start_cut or "").strip()
    stop_text = (record.stop_cut or "").strip()
    if start_text:
        window.move_start(seconds_to_ms(_float_prefix(start_text)))
    elif stop_text:
        window.move_end(seconds_to_ms(_float_prefix(stop_text)))
    else:
        window.reset()


def validate_for_save(record: SongRecord) -> Optional[str]:
    if not record.youtube_id.strip():
        return "Please select a YouTube video"
    if not record.song_title.strip():
        return "Please enter a song title"
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else ""
    return str(value)


def _int_prefix(value: Any, default: Optional[int] = 0) -> Optional[int]:
    match = re.match(r"^\s*([+-]?\d+)", str(value if value is not None else ""))
    if match is None:
        return default
    return int(match.group(1))


def _float_prefix(text: str) -> float:
    match = _FLOAT_PREFIX_RE.match(text or "")
    if match is None:
        return 0.0
    return float(match.group(1))
