"""
Song endpoints for API v1.

These routes add songs to the library, return their lyrics verse by
verse, apply changes and delete songs.  Lyrics changes address verses
by id: ``new_verse_prev_id`` names the verse after which a new verse is
inserted (``0`` inserts at the beginning), ``verse_id`` the verse whose
text is replaced and ``delete_verse_id`` the verse to remove.

Errors raised by the service layer are turned into JSON responses by
the handler registered in ``main``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from music_library_api.app.core.errors import MusicLibraryError
from music_library_api.app.schemas.song import (
    AddSongPayload,
    AddSongResponse,
    ErrorResponse,
    Response,
    SongChange,
    SongCreate,
    SongTextPayload,
    SongTextResponse,
)
from music_library_api.app.services.music_info import MusicInfoClient
from music_library_api.app.services.song_service import SongService

router = APIRouter()
logger = logging.getLogger(__name__)


def _errors(*codes: int) -> dict:
    return {code: {"model": ErrorResponse} for code in codes}


def get_music_info_client() -> MusicInfoClient:
    """Dependency returning a client for the music info service."""
    return MusicInfoClient()


@router.post("", response_model=AddSongResponse, responses=_errors(400, 502, 503))
async def add_song(
    song_in: SongCreate,
    client: MusicInfoClient = Depends(get_music_info_client),
) -> AddSongResponse:
    """Add a song to the library.

    Release date, lyrics and link are fetched from the music info
    service.  If the group already has a song with this name, the id
    of the existing song is returned.
    """
    logger.info("Adding song '%s' by '%s'", song_in.song, song_in.group)
    try:
        song_id = await SongService.add_song(song_in, client)
    except MusicLibraryError as e:
        logger.error("Error while adding song: %s", e)
        raise
    return AddSongResponse(payload=AddSongPayload(id=song_id))


@router.get("/{song_id}/text", response_model=SongTextResponse, responses=_errors(503))
async def get_song_text(
    song_id: int,
    limit: int = Query(1, ge=1, le=1000),
    page: int = Query(0, ge=0),
) -> SongTextResponse:
    """Return one page of the song's verses in lyrics order.

    An unknown song returns an empty list.
    """
    try:
        count, verses = await SongService.get_song_text(song_id, limit, page)
    except MusicLibraryError as e:
        logger.error("Error while getting text of song %s: %s", song_id, e)
        raise
    return SongTextResponse(payload=SongTextPayload(count=count, text=verses))


@router.delete("/{song_id}", response_model=Response, responses=_errors(404, 503))
async def delete_song(song_id: int) -> Response:
    """Delete a song together with its lyrics."""
    logger.info("Deleting song %s", song_id)
    try:
        await SongService.delete_song(song_id)
    except MusicLibraryError as e:
        logger.error("Error while deleting song %s: %s", song_id, e)
        raise
    return Response()


@router.put("/{song_id}", response_model=Response, responses=_errors(400, 404, 503))
async def change_song(
    song_id: int,
    name: Optional[str] = Query(None, description="New name for the song"),
    new_group: Optional[str] = Query(None, description="Group to add to the song"),
    group_to_delete: Optional[int] = Query(None, description="Id of the group to remove from the song"),
    new_verse_prev_id: Optional[int] = Query(
        None, ge=0, description="Verse after which the new verse is inserted; 0 inserts at the beginning"
    ),
    new_verse_text: Optional[str] = Query(None, description="Text of the new verse"),
    verse_id: Optional[int] = Query(None, description="Verse whose text is replaced"),
    verse_text: Optional[str] = Query(None, description="New text for ``verse_id``"),
    delete_verse_id: Optional[int] = Query(None, description="Verse to delete"),
) -> Response:
    """Change a song.

    Only the fields for which parameters are supplied are changed.
    """
    change = SongChange(
        name=name,
        new_group=new_group,
        group_to_delete=group_to_delete,
        new_verse_prev_id=new_verse_prev_id,
        new_verse_text=new_verse_text,
        verse_id=verse_id,
        verse_text=verse_text,
        delete_verse_id=delete_verse_id,
    )
    logger.info("Changing song %s", song_id)
    try:
        await SongService.change_song(song_id, change)
    except MusicLibraryError as e:
        logger.error("Error while changing song %s: %s", song_id, e)
        raise
    return Response()
