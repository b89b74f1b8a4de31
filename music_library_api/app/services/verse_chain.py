"""
Verse chain storage for song lyrics.

Lyrics are not stored as one text blob.  Each stanza is a row in the
``verses`` table with a ``next`` column pointing at the following
stanza, and the owning song keeps ``first_verse_id`` and
``last_verse_id`` (the *anchor*).  This module holds the functions that
read and rewire that structure:

* ``read_chain`` walks the chain from the head and returns a page of
  verses in chain order.
* ``insert_verse`` and ``delete_verse`` splice a verse in or out and keep
  neighbour pointers and the anchor consistent.
* ``build_chain`` creates the whole chain for a new song.
* ``delete_chain`` removes every verse of a song.
* ``change_verse_text`` edits a stanza without touching the topology.

Every function takes a connection that belongs to a transaction opened
with ``core.db.transaction``; none of them commits or rolls back.  A
function that raises leaves the transaction to be rolled back by the
caller's context manager, so partial rewiring is never committed.

Callers must make sure a verse id they pass belongs to the song they
pass alongside it.  ``insert_verse`` and ``change_verse_text`` do not
re-derive membership; ``delete_verse`` only checks the anchor when it is
about to move it.
"""

from __future__ import annotations

import functools
import logging
import sqlite3
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from music_library_api.app.core.errors import InvariantViolation, ReferenceNotFound, StorageUnavailable
from music_library_api.app.schemas.song import VerseRead

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Anchor:
    """Head and tail of a song's verse chain; both ``None`` when empty."""

    first_verse_id: Optional[int]
    last_verse_id: Optional[int]

    @property
    def is_empty(self) -> bool:
        return self.first_verse_id is None and self.last_verse_id is None


def _operation(op: str):
    """Tag storage failures raised inside the wrapped function with ``op``."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except sqlite3.Error as e:
                raise StorageUnavailable(str(e), op=op) from e

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Pointer helpers
# ---------------------------------------------------------------------------

def get_anchor(conn: sqlite3.Connection, song_id: int) -> Optional[Anchor]:
    """Return the anchor of ``song_id`` or ``None`` if the song does not exist."""
    row = conn.execute(
        "SELECT first_verse_id, last_verse_id FROM songs WHERE id = ?",
        (song_id,),
    ).fetchone()
    if row is None:
        return None
    return Anchor(row["first_verse_id"], row["last_verse_id"])


def _update_song(conn: sqlite3.Connection, song_id: int, sql: str, params: tuple, op: str) -> None:
    cursor = conn.execute(sql, params)
    if cursor.rowcount == 0:
        raise ReferenceNotFound(f"song {song_id} not found", op=op)


def set_first_verse(conn: sqlite3.Connection, song_id: int, verse_id: Optional[int]) -> None:
    _update_song(
        conn,
        song_id,
        "UPDATE songs SET first_verse_id = ? WHERE id = ?",
        (verse_id, song_id),
        "verse_chain.set_first_verse",
    )


def set_last_verse(conn: sqlite3.Connection, song_id: int, verse_id: Optional[int]) -> None:
    _update_song(
        conn,
        song_id,
        "UPDATE songs SET last_verse_id = ? WHERE id = ?",
        (verse_id, song_id),
        "verse_chain.set_last_verse",
    )


def clear_anchor(conn: sqlite3.Connection, song_id: int) -> None:
    _update_song(
        conn,
        song_id,
        "UPDATE songs SET first_verse_id = NULL, last_verse_id = NULL WHERE id = ?",
        (song_id,),
        "verse_chain.clear_anchor",
    )


def get_next(conn: sqlite3.Connection, verse_id: int) -> Tuple[bool, Optional[int]]:
    """Return ``(exists, next_id)`` for ``verse_id``."""
    row = conn.execute("SELECT next FROM verses WHERE id = ?", (verse_id,)).fetchone()
    if row is None:
        return False, None
    return True, row["next"]


def set_next(conn: sqlite3.Connection, verse_id: int, next_id: Optional[int]) -> None:
    cursor = conn.execute("UPDATE verses SET next = ? WHERE id = ?", (next_id, verse_id))
    if cursor.rowcount == 0:
        raise ReferenceNotFound(f"verse {verse_id} not found", op="verse_chain.set_next")


def find_predecessor(conn: sqlite3.Connection, verse_id: int) -> Optional[int]:
    """Return the id of the verse whose ``next`` is ``verse_id``, if any."""
    rows = conn.execute("SELECT id FROM verses WHERE next = ?", (verse_id,)).fetchall()
    if len(rows) > 1:
        raise InvariantViolation(
            f"verse {verse_id} has {len(rows)} predecessors",
            op="verse_chain.find_predecessor",
        )
    return rows[0]["id"] if rows else None


def create_verse(conn: sqlite3.Connection, text: str, next_id: Optional[int] = None) -> int:
    cursor = conn.execute("INSERT INTO verses (text, next) VALUES (?, ?)", (text, next_id))
    return cursor.lastrowid


def remove_verse(conn: sqlite3.Connection, verse_id: int) -> None:
    cursor = conn.execute("DELETE FROM verses WHERE id = ?", (verse_id,))
    if cursor.rowcount == 0:
        raise ReferenceNotFound(f"verse {verse_id} not found", op="verse_chain.remove_verse")


# ---------------------------------------------------------------------------
# Chain reader
# ---------------------------------------------------------------------------

# ``depth`` keeps the output in chain order and bounds the walk by the
# table size, so a corrupted (cyclic) chain cannot recurse forever.
_CHAIN_QUERY = """
    WITH RECURSIVE verse_chain(id, text, next, depth) AS (
        SELECT v.id, v.text, v.next, 0
        FROM verses v
        INNER JOIN songs s ON v.id = s.first_verse_id
        WHERE s.id = ?

        UNION ALL

        SELECT v.id, v.text, v.next, vc.depth + 1
        FROM verses v
        INNER JOIN verse_chain vc ON v.id = vc.next
        WHERE vc.depth < (SELECT COUNT(*) FROM verses)
    )
    SELECT id, text, next FROM verse_chain
    ORDER BY depth
"""


@_operation("verse_chain.read_chain")
def read_chain(
    conn: sqlite3.Connection,
    song_id: int,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[int, List[VerseRead]]:
    """Return ``(count, verses)`` for a window of the song's chain.

    The chain is walked from ``first_verse_id``; ``offset`` skips leading
    verses and ``limit`` bounds how many are returned (``None`` means no
    bound).  ``count`` is the number of verses in the returned window.
    An unknown song and a song without lyrics both give ``(0, [])``.
    """
    rows = conn.execute(
        _CHAIN_QUERY + " LIMIT ? OFFSET ?",
        (song_id, -1 if limit is None else limit, offset),
    ).fetchall()
    verses = [VerseRead(verse_id=row["id"], text=row["text"]) for row in rows]
    return len(verses), verses


@_operation("verse_chain.chain_ids")
def chain_ids(conn: sqlite3.Connection, song_id: int) -> List[int]:
    """Return every verse id of the song's chain in order.

    The walk is checked against the anchor: the last id must be
    ``last_verse_id`` and no id may repeat.
    """
    op = "verse_chain.chain_ids"
    anchor = get_anchor(conn, song_id)
    if anchor is None:
        return []
    rows = conn.execute(_CHAIN_QUERY, (song_id,)).fetchall()
    ids = [row["id"] for row in rows]
    if len(set(ids)) != len(ids):
        raise InvariantViolation(f"verse chain of song {song_id} has a cycle", op=op)
    if ids and (rows[-1]["next"] is not None or ids[-1] != anchor.last_verse_id):
        raise InvariantViolation(f"verse chain of song {song_id} does not end at its tail", op=op)
    if not ids and not anchor.is_empty:
        raise InvariantViolation(f"song {song_id} has a dangling anchor", op=op)
    return ids


def verse_in_chain(conn: sqlite3.Connection, song_id: int, verse_id: int) -> bool:
    return verse_id in chain_ids(conn, song_id)


# ---------------------------------------------------------------------------
# Chain mutator
# ---------------------------------------------------------------------------

@_operation("verse_chain.insert_verse")
def insert_verse(
    conn: sqlite3.Connection,
    song_id: int,
    reference_verse_id: Optional[int],
    text: str,
) -> int:
    """Insert ``text`` after ``reference_verse_id`` and return the new verse id.

    A reference of ``0`` or ``None`` inserts the verse as the new head.
    The reference verse must belong to ``song_id``; this is not checked.
    """
    op = "verse_chain.insert_verse"
    at_head = not reference_verse_id

    if at_head:
        anchor = get_anchor(conn, song_id)
        if anchor is None:
            raise ReferenceNotFound(f"song {song_id} not found", op=op)
        successor_id = anchor.first_verse_id
    else:
        exists, successor_id = get_next(conn, reference_verse_id)
        if not exists:
            raise ReferenceNotFound(f"verse {reference_verse_id} not found", op=op)

    new_id = create_verse(conn, text, successor_id)

    if successor_id is None:
        # New verse is the tail (this also covers the empty chain)
        set_last_verse(conn, song_id, new_id)

    if at_head:
        set_first_verse(conn, song_id, new_id)
    else:
        set_next(conn, reference_verse_id, new_id)

    logger.debug(
        "Inserted verse %s into song %s after %s (successor %s)",
        new_id, song_id, reference_verse_id or "head", successor_id,
    )
    return new_id


@_operation("verse_chain.delete_verse")
def delete_verse(conn: sqlite3.Connection, song_id: int, verse_id: int) -> None:
    """Unlink ``verse_id`` from the song's chain and delete it.

    Neighbour pointers and the anchor are rewired before the row is
    removed, all inside the caller's transaction.
    """
    op = "verse_chain.delete_verse"
    exists, successor_id = get_next(conn, verse_id)
    if not exists:
        raise ReferenceNotFound(f"verse {verse_id} not found", op=op)
    predecessor_id = find_predecessor(conn, verse_id)
    anchor = get_anchor(conn, song_id)
    if anchor is None:
        raise ReferenceNotFound(f"song {song_id} not found", op=op)

    if predecessor_id is None and successor_id is None:
        # Sole verse
        if anchor.first_verse_id != verse_id or anchor.last_verse_id != verse_id:
            raise InvariantViolation(f"verse {verse_id} is not the only verse of song {song_id}", op=op)
        clear_anchor(conn, song_id)
    elif successor_id is None:
        # Tail
        if anchor.last_verse_id != verse_id:
            raise InvariantViolation(f"verse {verse_id} is not the tail of song {song_id}", op=op)
        set_next(conn, predecessor_id, None)
        set_last_verse(conn, song_id, predecessor_id)
    elif predecessor_id is None:
        # Head
        if anchor.first_verse_id != verse_id:
            raise InvariantViolation(f"verse {verse_id} is not the head of song {song_id}", op=op)
        set_first_verse(conn, song_id, successor_id)
    else:
        set_next(conn, predecessor_id, successor_id)

    remove_verse(conn, verse_id)
    logger.debug(
        "Deleted verse %s from song %s (predecessor %s, successor %s)",
        verse_id, song_id, predecessor_id, successor_id,
    )


@_operation("verse_chain.delete_chain")
def delete_chain(conn: sqlite3.Connection, song_id: int) -> int:
    """Delete every verse of the song and clear its anchor.

    Returns the number of verses removed.
    """
    ids = chain_ids(conn, song_id)
    if not ids:
        return 0
    clear_anchor(conn, song_id)
    conn.executemany("DELETE FROM verses WHERE id = ?", [(verse_id,) for verse_id in ids])
    return len(ids)


@_operation("verse_chain.change_verse_text")
def change_verse_text(conn: sqlite3.Connection, verse_id: int, text: str) -> None:
    cursor = conn.execute("UPDATE verses SET text = ? WHERE id = ?", (text, verse_id))
    if cursor.rowcount == 0:
        raise ReferenceNotFound(f"verse {verse_id} not found", op="verse_chain.change_verse_text")


# ---------------------------------------------------------------------------
# Chain bootstrapper
# ---------------------------------------------------------------------------

@_operation("verse_chain.build_chain")
def build_chain(conn: sqlite3.Connection, texts: Iterable[str]) -> Tuple[Optional[int], Optional[int]]:
    """Create a linked chain of verses and return ``(first_id, last_id)``.

    Must run in the same transaction as the insertion of the song that
    will own the chain.  An empty ``texts`` creates nothing and returns
    ``(None, None)``, i.e. an empty anchor.
    """
    first_id: Optional[int] = None
    prev_id: Optional[int] = None
    for text in texts:
        verse_id = create_verse(conn, text)
        if prev_id is None:
            first_id = verse_id
        else:
            set_next(conn, prev_id, verse_id)
        prev_id = verse_id
    return first_id, prev_id
