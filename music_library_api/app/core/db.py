"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), running a unit of work inside one transaction
(``transaction``) and applying migrations on application start
(``init_db``).  Connections are opened in autocommit mode so that every
transaction is started explicitly; ``transaction`` uses
``BEGIN IMMEDIATE`` which takes the database write lock up front, so two
writers never rewire the same verse chain at the same time.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import settings
from .errors import InvariantViolation, StorageUnavailable

logger = logging.getLogger(__name__)


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # music_library_api/
    return str((base_dir / db_url).resolve())


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name.  Foreign key enforcement is switched on for the lifetime of
    the connection; SQLite leaves it off by default.  ``casefold(text)``
    is available in SQL for case-insensitive matching of non-ASCII text,
    which the built-in ``LIKE`` only folds for ASCII letters.

    ``settings.database_timeout`` bounds how long a statement waits for
    a lock held by another connection.
    """
    db_path = get_database_path()
    conn = sqlite3.connect(db_path, timeout=settings.database_timeout, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(op: str = "db.transaction", write: bool = True) -> Iterator[sqlite3.Connection]:
    """Run the enclosed block as one transaction.

    Commits when the block finishes normally and rolls back on any
    exception, cancellation included, so a multi-step chain mutation is
    never partially committed.  ``sqlite3`` failures are re-raised as
    ``StorageUnavailable``; a constraint failure (for example a deferred
    verse reference checked at commit) becomes ``InvariantViolation``.

    ``write=False`` starts a deferred transaction for read-only work,
    which does not take the write lock.
    """
    try:
        conn = get_connection()
    except sqlite3.Error as e:
        raise StorageUnavailable(f"cannot open database: {e}", op=op) from e
    try:
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        except sqlite3.Error as e:
            raise StorageUnavailable(f"cannot begin transaction: {e}", op=op) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise InvariantViolation(str(e), op=op) from e
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageUnavailable(str(e), op=op) from e
        except BaseException:
            conn.rollback()
            raise
    finally:
        conn.close()


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations defined in
    the ``migrations`` list.  If you add a new migration, append it
    with an incremented version number.
    """
    migrations: list[tuple[int, str]] = [
        # Migration 1: Initial schema
        (
            1,
            """
            -- Lyrics are a singly linked list of verses.  ``next`` points to
            -- the following verse; the song keeps the head and the tail.
            CREATE TABLE IF NOT EXISTS verses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                text TEXT NOT NULL,
                next INTEGER,
                FOREIGN KEY(next) REFERENCES verses(id) DEFERRABLE INITIALLY DEFERRED
            );

            CREATE TABLE IF NOT EXISTS songs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                link TEXT,
                release_date TEXT,
                first_verse_id INTEGER,
                last_verse_id INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(first_verse_id) REFERENCES verses(id) DEFERRABLE INITIALLY DEFERRED,
                FOREIGN KEY(last_verse_id) REFERENCES verses(id) DEFERRABLE INITIALLY DEFERRED
            );

            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE
            );

            CREATE TABLE IF NOT EXISTS songs_groups (
                song_id INTEGER NOT NULL,
                group_id INTEGER NOT NULL,
                PRIMARY KEY(song_id, group_id),
                FOREIGN KEY(song_id) REFERENCES songs(id) ON DELETE CASCADE,
                FOREIGN KEY(group_id) REFERENCES groups(id) ON DELETE CASCADE
            );
            """,
        ),
        # Migration 2: indices for chain walking and library lookups
        (
            2,
            """
            -- Predecessor lookup scans for the verse whose ``next`` matches.
            CREATE INDEX IF NOT EXISTS idx_verses_next ON verses(next);
            CREATE INDEX IF NOT EXISTS idx_songs_groups_group_id ON songs_groups(group_id);
            CREATE INDEX IF NOT EXISTS idx_songs_release_date ON songs(release_date);
            """,
        ),
    ]

    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in migrations:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                logger.info("Applied migration %s", version)
                current_version = version
