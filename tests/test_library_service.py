"""Tests for LibraryService listing, search and date filters."""

import asyncio
from datetime import date

import pytest

from music_library_api.app.core import db
from music_library_api.app.services.library_service import LibraryService


@pytest.fixture
def library(make_song):
    ids = {
        "smbh": make_song(["a"], name="Supermassive Black Hole", group="Muse", release_date="2006-07-16"),
        "hysteria": make_song(["b"], name="Hysteria", group="Muse", release_date="2003-12-01"),
        "creep": make_song(["c"], name="Creep", group="Radiohead", release_date="1992-09-21"),
        "odd_100%": make_song(["d"], name="100% Odd", group="Various", release_date="2010-01-01"),
    }
    # A song performed by two groups
    with db.transaction() as conn:
        conn.execute("INSERT INTO groups (name) VALUES ('Guests')")
        group_id = conn.execute("SELECT id FROM groups WHERE name = 'Guests'").fetchone()["id"]
        conn.execute(
            "INSERT INTO songs_groups (song_id, group_id) VALUES (?, ?)", (ids["creep"], group_id)
        )
    return ids


def _get(**kwargs):
    return asyncio.run(LibraryService.get_library(**kwargs))


def test_lists_songs_with_groups(library):
    count, songs = _get(limit=10, page=0)
    assert count == 4
    assert [s.id for s in songs] == sorted(library.values())
    creep = next(s for s in songs if s.id == library["creep"])
    assert [g.group_name for g in creep.groups] == ["Radiohead", "Guests"]
    assert creep.release_date == date(1992, 9, 21)


def test_pagination_counts_songs_not_groups(library):
    count, songs = _get(limit=2, page=1)
    assert count == 2
    assert [s.id for s in songs] == sorted(library.values())[2:4]


def test_search_by_song_or_group_name(library):
    _, songs = _get(search="muse")
    assert {s.id for s in songs} == {library["smbh"], library["hysteria"]}
    _, songs = _get(search="CREEP")
    assert [s.id for s in songs] == [library["creep"]]
    _, songs = _get(search="guest")
    assert [s.id for s in songs] == [library["creep"]]


def test_search_treats_wildcards_literally(library):
    _, songs = _get(search="0%")
    assert [s.id for s in songs] == [library["odd_100%"]]
    _, songs = _get(search="_")
    assert songs == []


def test_date_range_is_inclusive(library):
    _, songs = _get(date_from=date(2003, 12, 1), date_to=date(2006, 7, 16))
    assert {s.id for s in songs} == {library["smbh"], library["hysteria"]}


def test_empty_library(database):
    assert _get() == (0, [])


def test_search_is_case_insensitive_for_non_ascii(make_song):
    kino = make_song(["a"], name="Кино", group="Виктор Цой")
    make_song(["b"], name="Creep", group="Radiohead")
    _, songs = _get(search="кино")
    assert [s.id for s in songs] == [kino]
    _, songs = _get(search="ВИКТОР")
    assert [s.id for s in songs] == [kino]