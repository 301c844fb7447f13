from guesssong.song_record import SongRecord
from guesssong.song_store import SongStore
from guesssong.web_api import SongsApiServer


def _make_client(tmp_path, songs=()):
    store = SongStore(tmp_path / "songs.json")
    for song in songs:
        store.add_song(song)
    server = SongsApiServer(store, host="127.0.0.1", port=3001)
    return server.app.test_client(), store


def test_health_reports_store(tmp_path):
    client, _store = _make_client(tmp_path)
    payload = client.get("/api/health").get_json()
    assert payload["ok"] is True
    assert payload["store"] is True
    assert payload["version"]


def test_list_filters_sorts_and_paginates(tmp_path):
    songs = [SongRecord(song_title=f"Song {i:02d}", release_date=str(1980 + i)) for i in range(35)]
    songs.append(SongRecord(song_title="Other", release_date="2020"))
    client, _store = _make_client(tmp_path, songs)

    response = client.get("/api/songs?q=song&sort=releaseDate&direction=desc&page=2")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["total"] == 35
    assert payload["total_pages"] == 2
    assert payload["page"] == 2
    assert payload["pages"] == [1, 2]
    assert [song["songTitle"] for song in payload["songs"]] == [f"Song {i:02d}" for i in range(4, -1, -1)]


def test_list_rejects_unknown_direction(tmp_path):
    client, _store = _make_client(tmp_path)
    response = client.get("/api/songs?direction=sideways")
    assert response.status_code == 400
    assert response.get_json()["ok"] is False


def test_create_song_returns_201(tmp_path):
    client, store = _make_client(tmp_path)
    response = client.post(
        "/api/songs",
        json={"songTitle": "Hava Nagila", "media": {"youtubeId": "yt1"}, "startCut": "15"},
    )
    assert response.status_code == 201
    song = response.get_json()["song"]
    assert song["songId"]
    assert song["media"]["youtubeId"] == "yt1"
    assert store.get_song(song["songId"]).start_cut == "15"


def test_create_song_validates_required_fields(tmp_path):
    client, store = _make_client(tmp_path)
    response = client.post("/api/songs", json={"songTitle": "No video"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Please select a YouTube video"
    assert store.list_songs() == []


def test_create_song_rejects_non_object_body(tmp_path):
    client, _store = _make_client(tmp_path)
    response = client.post("/api/songs", data="not json", content_type="application/json")
    assert response.status_code == 400


def test_get_update_and_delete_song(tmp_path):
    client, store = _make_client(tmp_path, [SongRecord(song_id="s1", song_title="First", youtube_id="yt")])

    assert client.get("/api/songs/s1").get_json()["song"]["songTitle"] == "First"

    response = client.put("/api/songs/s1", json={"startCut": "42", "stopCut": "72"})
    assert response.status_code == 200
    assert response.get_json()["song"]["startCut"] == "42"
    assert store.get_song("s1").stop_cut == "72"

    response = client.delete("/api/songs/s1")
    assert response.status_code == 200
    assert response.get_json()["deleted"] == "s1"
    assert store.list_songs() == []


def test_unknown_song_is_404(tmp_path):
    client, _store = _make_client(tmp_path)
    assert client.get("/api/songs/nope").status_code == 404
    assert client.put("/api/songs/nope", json={"songTitle": "x"}).status_code == 404
    response = client.delete("/api/songs/nope")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Song not found: nope"


def test_missing_store_is_503():
    server = SongsApiServer(None)
    client = server.app.test_client()
    assert client.get("/api/songs").status_code == 503
    assert client.get("/api/health").get_json()["store"] is False
