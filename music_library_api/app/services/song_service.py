"""
Service layer for songs.

``SongService`` adds songs to the library (fetching their details from
the external music info service), returns their lyrics page by page,
applies changes (name, groups, verses) and deletes them.  Lyrics are
kept as a verse chain; all chain manipulation is delegated to
``verse_chain`` and every chain mutation runs inside one
``transaction``.

Before a verse id supplied by a client is passed to the chain, the
service checks that the verse is part of the song's lyrics.  The chain
functions themselves trust their caller on this point.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional, Tuple

from music_library_api.app.core.db import transaction
from music_library_api.app.core.errors import BadRequest, ReferenceNotFound
from music_library_api.app.schemas.song import MusicInfo, SongChange, SongCreate, VerseRead
from music_library_api.app.services import verse_chain
from music_library_api.app.services.music_info import MusicInfoClient

# Stanzas in the lyrics returned by the music info service are
# separated by an empty line.
VERSE_SEPARATOR = "\n\n"
RELEASE_DATE_FORMAT = "%d.%m.%Y"


class SongService:
    """Service class for songs and their lyrics."""

    @classmethod
    async def get_song_text(cls, song_id: int, limit: int, page: int) -> Tuple[int, List[VerseRead]]:
        """Return ``(count, verses)`` for one page of the song's lyrics.

        ``page`` is zero based; the page starts at verse ``limit * page``.
        An unknown song yields an empty page.
        """
        logger = logging.getLogger(__name__)
        offset = limit * page
        with transaction("song_service.get_song_text", write=False) as conn:
            count, verses = verse_chain.read_chain(conn, song_id, limit=limit, offset=offset)
        logger.debug("Read %s verses of song %s (offset %s)", count, song_id, offset)
        return count, verses

    @classmethod
    async def add_song(cls, data: SongCreate, client: Optional[MusicInfoClient] = None) -> int:
        """Add a song to the library and return its id.

        If the group already has a song with this name, its id is
        returned and nothing is fetched or written.  Otherwise the song
        details are fetched from the music info service and the song,
        its lyrics and its group are stored in a single transaction.
        """
        logger = logging.getLogger(__name__)
        op = "song_service.add_song"

        with transaction(op, write=False) as conn:
            existing_id = cls._find_song(conn, data.song, data.group)
        if existing_id is not None:
            logger.info("Song '%s' by '%s' already exists as %s", data.song, data.group, existing_id)
            return existing_id

        client = client or MusicInfoClient()
        info = client.fetch(data.group, data.song)
        logger.debug("Data from music info service: %s", info.model_dump())
        release_date = cls._parse_release_date(info.release_date, op)
        verses = cls.split_verses(info.text)

        with transaction(op) as conn:
            # Someone may have added the same song while we were fetching
            existing_id = cls._find_song(conn, data.song, data.group)
            if existing_id is not None:
                return existing_id
            first_verse_id, last_verse_id = verse_chain.build_chain(conn, verses)
            cursor = conn.execute(
                """
                INSERT INTO songs (name, link, release_date, first_verse_id, last_verse_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (data.song, info.link, release_date, first_verse_id, last_verse_id),
            )
            song_id = cursor.lastrowid
            group_id = cls._get_or_create_group(conn, data.group)
            conn.execute(
                "INSERT INTO songs_groups (song_id, group_id) VALUES (?, ?)",
                (song_id, group_id),
            )
        logger.info("Added song %s '%s' by '%s' with %s verses", song_id, data.song, data.group, len(verses))
        return song_id

    @classmethod
    async def delete_song(cls, song_id: int) -> None:
        """Delete the song, its group relations and all of its verses."""
        logger = logging.getLogger(__name__)
        op = "song_service.delete_song"
        with transaction(op) as conn:
            if verse_chain.get_anchor(conn, song_id) is None:
                raise ReferenceNotFound(f"song {song_id} not found", op=op)
            removed = verse_chain.delete_chain(conn, song_id)
            conn.execute("DELETE FROM songs WHERE id = ?", (song_id,))
        logger.info("Deleted song %s with %s verses", song_id, removed)

    @classmethod
    async def change_song(cls, song_id: int, change: SongChange) -> None:
        """Apply the requested changes to a song.

        Changes are applied in this order: rename, add group, remove
        group, insert verse, change verse text, delete verse.  Each one
        runs in its own transaction; a failing change stops the ones
        after it.
        """
        logger = logging.getLogger(__name__)
        op = "song_service.change_song"

        if change.new_verse_prev_id is not None and change.new_verse_text is None:
            raise BadRequest("text for the new verse is required", op=op)
        if change.verse_id is not None and change.verse_text is None:
            raise BadRequest("new text for the verse is required", op=op)

        with transaction(op, write=False) as conn:
            if verse_chain.get_anchor(conn, song_id) is None:
                raise ReferenceNotFound(f"song {song_id} not found", op=op)

        if change.name:
            with transaction(op) as conn:
                conn.execute("UPDATE songs SET name = ? WHERE id = ?", (change.name, song_id))
            logger.info("Song %s renamed to '%s'", song_id, change.name)

        if change.new_group:
            with transaction(op) as conn:
                group_id = cls._get_or_create_group(conn, change.new_group)
                conn.execute(
                    "INSERT OR IGNORE INTO songs_groups (song_id, group_id) VALUES (?, ?)",
                    (song_id, group_id),
                )
            logger.info("Added group '%s' to song %s", change.new_group, song_id)

        if change.group_to_delete:
            with transaction(op) as conn:
                cursor = conn.execute(
                    "DELETE FROM songs_groups WHERE song_id = ? AND group_id = ?",
                    (song_id, change.group_to_delete),
                )
                if cursor.rowcount == 0:
                    raise ReferenceNotFound(
                        f"group {change.group_to_delete} is not linked to song {song_id}", op=op
                    )
            logger.info("Removed group %s from song %s", change.group_to_delete, song_id)

        if change.new_verse_prev_id is not None:
            with transaction(op) as conn:
                if change.new_verse_prev_id:
                    cls._ensure_verse_in_song(conn, song_id, change.new_verse_prev_id, op)
                verse_id = verse_chain.insert_verse(
                    conn, song_id, change.new_verse_prev_id, change.new_verse_text
                )
            logger.info("Added verse %s to song %s", verse_id, song_id)

        if change.verse_id is not None:
            with transaction(op) as conn:
                cls._ensure_verse_in_song(conn, song_id, change.verse_id, op)
                verse_chain.change_verse_text(conn, change.verse_id, change.verse_text)
            logger.info("Changed verse %s of song %s", change.verse_id, song_id)

        if change.delete_verse_id:
            with transaction(op) as conn:
                cls._ensure_verse_in_song(conn, song_id, change.delete_verse_id, op)
                verse_chain.delete_verse(conn, song_id, change.delete_verse_id)
            logger.info("Deleted verse %s from song %s", change.delete_verse_id, song_id)

    @staticmethod
    def split_verses(text: str) -> List[str]:
        """Split raw lyrics into stanzas, dropping blank ones."""
        return [verse.strip() for verse in text.split(VERSE_SEPARATOR) if verse.strip()]

    @staticmethod
    def _parse_release_date(value: str, op: str) -> str:
        try:
            return datetime.strptime(value, RELEASE_DATE_FORMAT).date().isoformat()
        except ValueError as e:
            raise BadRequest(f"bad release date '{value}'", op=op) from e

    @staticmethod
    def _find_song(conn: sqlite3.Connection, name: str, group: str) -> Optional[int]:
        row = conn.execute(
            """
            SELECT s.id FROM songs s
            JOIN songs_groups sg ON s.id = sg.song_id
            JOIN groups g ON g.id = sg.group_id
            WHERE s.name = ? AND g.name = ?
            """,
            (name, group),
        ).fetchone()
        return row["id"] if row else None

    @staticmethod
    def _get_or_create_group(conn: sqlite3.Connection, name: str) -> int:
        conn.execute("INSERT OR IGNORE INTO groups (name) VALUES (?)", (name,))
        row = conn.execute("SELECT id FROM groups WHERE name = ?", (name,)).fetchone()
        return row["id"]

    @staticmethod
    def _ensure_verse_in_song(conn: sqlite3.Connection, song_id: int, verse_id: int, op: str) -> None:
        if not verse_chain.verse_in_chain(conn, song_id, verse_id):
            raise ReferenceNotFound(f"verse {verse_id} does not belong to song {song_id}", op=op)
