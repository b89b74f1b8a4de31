"""Tests for SongService: adding, reading, changing and deleting songs."""

import asyncio

import pytest

from music_library_api.app.core import db
from music_library_api.app.core.errors import BadRequest, MusicInfoUnavailable, ReferenceNotFound
from music_library_api.app.schemas.song import MusicInfo, SongChange, SongCreate
from music_library_api.app.services.song_service import SongService

from conftest import anchor_of, ids_of, texts_of, verse_count


class FakeMusicInfoClient:
    """Stands in for the external service; records the requests it gets."""

    def __init__(self, info=None, error=None):
        self.info = info
        self.error = error
        self.calls = []

    def fetch(self, group, song):
        self.calls.append((group, song))
        if self.error is not None:
            raise self.error
        return self.info


LYRICS = "Verse one\nline two\n\nChorus\n\nVerse two"


@pytest.fixture
def client():
    return FakeMusicInfoClient(
        MusicInfo(releaseDate="16.07.2006", text=LYRICS, link="https://example.com/smbh")
    )


def _add(client, group="Muse", song="Supermassive Black Hole"):
    return asyncio.run(SongService.add_song(SongCreate(group=group, song=song), client))


def _change(song_id, **changes):
    asyncio.run(SongService.change_song(song_id, SongChange(**changes)))


def test_split_verses_drops_blank_stanzas():
    assert SongService.split_verses("a\n\n\n\nb\n\n") == ["a", "b"]
    assert SongService.split_verses("") == []


def test_add_song_builds_chain(database, client):
    song_id = _add(client)
    assert texts_of(song_id) == ["Verse one\nline two", "Chorus", "Verse two"]
    assert client.calls == [("Muse", "Supermassive Black Hole")]
    with db.transaction(write=False) as conn:
        row = conn.execute("SELECT name, link, release_date FROM songs WHERE id = ?", (song_id,)).fetchone()
    assert row["name"] == "Supermassive Black Hole"
    assert row["link"] == "https://example.com/smbh"
    assert row["release_date"] == "2006-07-16"


def test_add_existing_song_returns_same_id(database, client):
    first = _add(client)
    second = _add(client)
    assert first == second
    assert len(client.calls) == 1
    assert verse_count() == 3


def test_add_song_without_lyrics(database):
    client = FakeMusicInfoClient(MusicInfo(releaseDate="01.01.2000", text="", link=""))
    song_id = _add(client)
    assert anchor_of(song_id).is_empty
    assert texts_of(song_id) == []


def test_add_song_bad_release_date_writes_nothing(database):
    client = FakeMusicInfoClient(MusicInfo(releaseDate="2006-07-16", text=LYRICS, link=""))
    with pytest.raises(BadRequest):
        _add(client)
    assert verse_count() == 0


def test_add_song_music_info_failure(database):
    client = FakeMusicInfoClient(error=MusicInfoUnavailable("down", op="music_info.fetch"))
    with pytest.raises(MusicInfoUnavailable):
        _add(client)
    assert verse_count() == 0


def test_get_song_text_pages(make_song):
    song_id = make_song(["v1", "v2", "v3", "v4", "v5"])
    count, verses = asyncio.run(SongService.get_song_text(song_id, limit=2, page=1))
    assert count == 2
    assert [v.text for v in verses] == ["v3", "v4"]
    count, verses = asyncio.run(SongService.get_song_text(song_id, limit=2, page=2))
    assert count == 1
    assert [v.text for v in verses] == ["v5"]


def test_delete_song_removes_song_and_all_verses(make_song):
    keep = make_song(["k1", "k2"], name="Keep")
    song_id = make_song(["a", "b", "c"], name="Drop")
    asyncio.run(SongService.delete_song(song_id))
    assert anchor_of(song_id) is None
    assert verse_count() == 2
    assert texts_of(keep) == ["k1", "k2"]
    with db.transaction(write=False) as conn:
        assert conn.execute(
            "SELECT COUNT(*) FROM songs_groups WHERE song_id = ?", (song_id,)
        ).fetchone()[0] == 0


def test_delete_missing_song(database):
    with pytest.raises(ReferenceNotFound):
        asyncio.run(SongService.delete_song(404))


def test_change_name_and_groups(make_song):
    song_id = make_song(["a"], name="Old", group="First")
    _change(song_id, name="New", new_group="Second")
    with db.transaction(write=False) as conn:
        name = conn.execute("SELECT name FROM songs WHERE id = ?", (song_id,)).fetchone()["name"]
        groups = [
            row["name"]
            for row in conn.execute(
                """
                SELECT g.name FROM groups g
                JOIN songs_groups sg ON sg.group_id = g.id
                WHERE sg.song_id = ? ORDER BY g.id
                """,
                (song_id,),
            )
        ]
        first_group_id = conn.execute("SELECT id FROM groups WHERE name = 'First'").fetchone()["id"]
    assert name == "New"
    assert groups == ["First", "Second"]

    _change(song_id, group_to_delete=first_group_id)
    with db.transaction(write=False) as conn:
        assert conn.execute(
            "SELECT COUNT(*) FROM songs_groups WHERE song_id = ?", (song_id,)
        ).fetchone()[0] == 1


def test_change_insert_verse_at_head_and_after(make_song):
    song_id = make_song(["A", "B"])
    a_id, b_id = ids_of(song_id)
    _change(song_id, new_verse_prev_id=0, new_verse_text="Intro")
    _change(song_id, new_verse_prev_id=a_id, new_verse_text="X")
    assert texts_of(song_id) == ["Intro", "A", "X", "B"]


def test_change_verse_text_and_delete(make_song):
    song_id = make_song(["A", "B", "C"])
    a_id, b_id, c_id = ids_of(song_id)
    _change(song_id, verse_id=a_id, verse_text="A'", delete_verse_id=c_id)
    assert texts_of(song_id) == ["A'", "B"]
    assert anchor_of(song_id).last_verse_id == b_id


def test_change_rejects_verse_of_other_song(make_song):
    first = make_song(["a1", "a2"], name="First")
    second = make_song(["b1", "b2"], name="Second")
    foreign_id = ids_of(second)[1]
    with pytest.raises(ReferenceNotFound):
        _change(first, new_verse_prev_id=foreign_id, new_verse_text="X")
    with pytest.raises(ReferenceNotFound):
        _change(first, verse_id=foreign_id, verse_text="X")
    with pytest.raises(ReferenceNotFound):
        _change(first, delete_verse_id=foreign_id)
    assert texts_of(first) == ["a1", "a2"]
    assert texts_of(second) == ["b1", "b2"]


def test_change_missing_song(database):
    with pytest.raises(ReferenceNotFound):
        _change(404, name="x")


def test_change_requires_text_for_new_verse(make_song):
    song_id = make_song(["A"])
    with pytest.raises(BadRequest):
        _change(song_id, new_verse_prev_id=0)
    assert texts_of(song_id) == ["A"]
