"""Shared test fixtures for the music library."""

import pytest

from music_library_api.app.core import db
from music_library_api.app.core.config import settings
from music_library_api.app.services import verse_chain


@pytest.fixture
def database(tmp_path, monkeypatch):
    """Point the application at a fresh, migrated SQLite file."""
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "library.db"))
    db.init_db()
    return tmp_path / "library.db"


@pytest.fixture
def make_song(database):
    """Factory creating a song whose lyrics are ``texts``; returns its id."""

    def _make_song(texts, name="Song", group="Group", release_date="2006-07-16"):
        with db.transaction("tests.make_song") as conn:
            first_id, last_id = verse_chain.build_chain(conn, texts)
            cursor = conn.execute(
                """
                INSERT INTO songs (name, link, release_date, first_verse_id, last_verse_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (name, "https://example.com/" + name, release_date, first_id, last_id),
            )
            song_id = cursor.lastrowid
            conn.execute("INSERT OR IGNORE INTO groups (name) VALUES (?)", (group,))
            group_id = conn.execute("SELECT id FROM groups WHERE name = ?", (group,)).fetchone()["id"]
            conn.execute(
                "INSERT INTO songs_groups (song_id, group_id) VALUES (?, ?)", (song_id, group_id)
            )
        return song_id

    return _make_song


def anchor_of(song_id):
    with db.transaction("tests.anchor_of", write=False) as conn:
        return verse_chain.get_anchor(conn, song_id)


def texts_of(song_id):
    with db.transaction("tests.texts_of", write=False) as conn:
        _, verses = verse_chain.read_chain(conn, song_id)
    return [verse.text for verse in verses]


def ids_of(song_id):
    with db.transaction("tests.ids_of", write=False) as conn:
        return verse_chain.chain_ids(conn, song_id)


def verse_count():
    with db.transaction("tests.verse_count", write=False) as conn:
        return conn.execute("SELECT COUNT(*) FROM verses").fetchone()[0]
