import json

import pytest

from guesssong.song_record import SongRecord
from guesssong.song_store import (
    PAGE_GAP,
    SORT_DESC,
    SongNotFoundError,
    SongStore,
    filter_songs,
    page_numbers,
    paginate,
    sort_songs,
    total_pages,
)


def _song(title, release="", views="", difficulty="", song_id=""):
    return SongRecord(song_id=song_id, song_title=title, release_date=release, views=views, difficulty=difficulty)


def test_add_assigns_ids_and_persists(tmp_path):
    path = tmp_path / "songs.json"
    store = SongStore(path)
    added = store.add_song(_song("Hallelujah"))
    assert added.song_id
    assert added.uuid
    assert added.song_id != added.uuid

    reloaded = SongStore(path)
    assert [song.song_title for song in reloaded.list_songs()] == ["Hallelujah"]
    assert reloaded.get_song(added.song_id).uuid == added.uuid


def test_existing_ids_are_kept(tmp_path):
    store = SongStore(tmp_path / "songs.json")
    added = store.add_song(SongRecord(song_id="fixed", uuid="u", song_title="x"))
    assert (added.song_id, added.uuid) == ("fixed", "u")


def test_update_merges_changes(tmp_path):
    store = SongStore(tmp_path / "songs.json")
    added = store.add_song(_song("Old", release="1990"))
    updated = store.update_song(added.song_id, {"songTitle": "New", "songId": "hijack", "startCut": "30"})
    assert updated.song_id == added.song_id
    assert updated.song_title == "New"
    assert updated.release_date == "1990"
    assert store.get_song(added.song_id).start_cut == "30"


def test_delete_removes_song(tmp_path):
    path = tmp_path / "songs.json"
    store = SongStore(path)
    added = store.add_song(_song("Gone"))
    store.delete_song(added.song_id)
    assert store.list_songs() == []
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_unknown_id_raises_not_found(tmp_path):
    store = SongStore(tmp_path / "songs.json")
    with pytest.raises(SongNotFoundError):
        store.get_song("missing")
    with pytest.raises(KeyError):
        store.update_song("missing", {})
    with pytest.raises(SongNotFoundError):
        store.delete_song("missing")


def test_non_list_file_is_rejected(tmp_path):
    path = tmp_path / "songs.json"
    path.write_text('{"songs": []}', encoding="utf-8")
    with pytest.raises(ValueError):
        SongStore(path)


def test_filter_is_case_insensitive_title_contains():
    songs = [_song("Yesterday"), _song("Let It Be"), _song("yes or no")]
    assert [s.song_title for s in filter_songs(songs, "YES")] == ["Yesterday", "yes or no"]
    assert filter_songs(songs, "") == songs


def test_sort_by_each_column():
    songs = [
        _song("b", release="2001", views="2M", difficulty="3"),
        _song("A", release="1999", views="900K", difficulty="1"),
        _song("c", release="", views="1.5B", difficulty="2"),
    ]
    assert [s.song_title for s in sort_songs(songs, "songTitle")] == ["A", "b", "c"]
    assert [s.song_title for s in sort_songs(songs, "releaseDate")] == ["c", "A", "b"]
    assert [s.song_title for s in sort_songs(songs, "views", SORT_DESC)] == ["c", "b", "A"]
    assert [s.song_title for s in sort_songs(songs, "difficulty")] == ["A", "c", "b"]
    assert sort_songs(songs, "unknown") == songs


def test_paginate_and_total_pages():
    songs = [_song(str(i)) for i in range(65)]
    assert total_pages(len(songs)) == 3
    assert len(paginate(songs, 1)) == 30
    assert [s.song_title for s in paginate(songs, 3)] == [str(i) for i in range(60, 65)]
    assert paginate(songs, 4) == []
    assert total_pages(0) == 0


def test_page_numbers_windows():
    assert page_numbers(1, 4) == [1, 2, 3, 4]
    assert page_numbers(2, 10) == [1, 2, 3, 4, 5, PAGE_GAP, 10]
    assert page_numbers(9, 10) == [1, PAGE_GAP, 6, 7, 8, 9, 10]
    assert page_numbers(5, 10) == [1, PAGE_GAP, 4, 5, 6, PAGE_GAP, 10]
