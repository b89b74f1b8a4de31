"""
Service layer for the song library listing.

The library is the list of songs with their groups.  It can be searched
by song or group name and filtered by release date; pagination applies
to songs, so a song performed by several groups counts once.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Tuple

from music_library_api.app.core.db import transaction
from music_library_api.app.schemas.song import GroupRead, SongRead


def _like_pattern(text: str) -> str:
    """Build a ``LIKE`` substring pattern with wildcards in ``text`` escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class LibraryService:
    """Service class for listing the library."""

    @classmethod
    async def get_library(
        cls,
        limit: int = 10,
        page: int = 0,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Tuple[int, List[SongRead]]:
        """Return ``(count, songs)`` for one page of the library.

        - ``limit`` and ``page`` (zero based) control pagination.
        - ``search`` matches a substring of the song name or of any of
          its group names, case insensitive (Unicode case folding).
        - ``date_from`` and ``date_to`` bound the release date, inclusive.

        Songs are ordered by id.
        """
        logger = logging.getLogger(__name__)
        query = "SELECT s.id, s.name, s.link, s.release_date FROM songs s"
        params: list = []
        where_clauses: list[str] = []
        if search:
            pattern = _like_pattern(search.casefold())
            where_clauses.append(
                """(
                    casefold(s.name) LIKE ? ESCAPE '\\'
                    OR EXISTS (
                        SELECT 1 FROM songs_groups sg
                        JOIN groups g ON g.id = sg.group_id
                        WHERE sg.song_id = s.id AND casefold(g.name) LIKE ? ESCAPE '\\'
                    )
                )"""
            )
            params.extend([pattern, pattern])
        if date_from:
            where_clauses.append("s.release_date >= ?")
            params.append(date_from.isoformat())
        if date_to:
            where_clauses.append("s.release_date <= ?")
            params.append(date_to.isoformat())
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY s.id ASC LIMIT ? OFFSET ?"
        params.extend([limit, limit * page])

        with transaction("library_service.get_library", write=False) as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
            groups: Dict[int, List[GroupRead]] = defaultdict(list)
            if rows:
                placeholders = ", ".join("?" for _ in rows)
                group_rows = conn.execute(
                    f"""
                    SELECT sg.song_id, g.id AS group_id, g.name AS group_name
                    FROM songs_groups sg
                    JOIN groups g ON g.id = sg.group_id
                    WHERE sg.song_id IN ({placeholders})
                    ORDER BY g.id
                    """,
                    tuple(row["id"] for row in rows),
                ).fetchall()
                for group_row in group_rows:
                    groups[group_row["song_id"]].append(
                        GroupRead(group_id=group_row["group_id"], group_name=group_row["group_name"])
                    )

        library = [
            SongRead(
                id=row["id"],
                name=row["name"],
                link=row["link"],
                release_date=row["release_date"],
                groups=groups.get(row["id"], []),
            )
            for row in rows
        ]
        logger.debug("Library page %s: %s songs", page, len(library))
        return len(library), library
