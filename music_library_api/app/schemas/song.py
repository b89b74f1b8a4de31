"""
Pydantic models for songs, groups and verses.

A song is performed by one or more groups and its lyrics are a chain
of verses.  Response bodies follow a common envelope
(``status``/``message``/``payload``); the envelope classes for each
endpoint live next to their payloads here.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerseRead(BaseModel):
    """One stanza of a song."""

    verse_id: int = Field(..., examples=[89])
    text: str = Field(..., examples=["Ooh baby, don't you know I suffer?\nOoh baby, can you hear me moan?"])


class GroupRead(BaseModel):
    group_id: int = Field(..., examples=[26])
    group_name: str = Field(..., examples=["Muse"])


class SongRead(BaseModel):
    """Song entry as listed in the library."""

    id: int = Field(..., examples=[458])
    name: str = Field(..., examples=["Supermassive Black Hole"])
    release_date: Optional[date] = Field(None, examples=["2006-07-16"])
    link: Optional[str] = Field(None, examples=["https://www.youtube.com/watch?v=Xsp3_a-PMTw"])
    groups: List[GroupRead] = Field(default_factory=list)

    model_config = {
        "from_attributes": True,
    }


class SongCreate(BaseModel):
    """Request body for adding a song to the library."""

    group: str = Field(..., min_length=1, examples=["Muse"])
    song: str = Field(..., min_length=1, examples=["Supermassive Black Hole"])


class SongChange(BaseModel):
    """Set of changes to apply to a song.

    Every field is optional; only the provided ones are applied, in the
    order the fields are declared.  ``new_verse_prev_id`` of ``0``
    inserts the new verse at the beginning of the lyrics.
    """

    name: Optional[str] = None
    new_group: Optional[str] = None
    group_to_delete: Optional[int] = None
    new_verse_prev_id: Optional[int] = Field(None, ge=0)
    new_verse_text: Optional[str] = None
    verse_id: Optional[int] = None
    verse_text: Optional[str] = None
    delete_verse_id: Optional[int] = None


class MusicInfo(BaseModel):
    """Song details returned by the external music info service."""

    model_config = ConfigDict(populate_by_name=True)

    release_date: str = Field(..., alias="releaseDate", examples=["16.07.2006"])
    text: str = Field("", examples=["Ooh baby, don't you know I suffer?\n\nI thought I was a fool for no one"])
    link: str = Field("", examples=["https://www.youtube.com/watch?v=Xsp3_a-PMTw"])


class Response(BaseModel):
    """Envelope for responses without payload."""

    status: int = Field(200, examples=[200])
    message: str = Field("ok", examples=["ok"])
    payload: None = None


class SongTextPayload(BaseModel):
    count: int = Field(..., examples=[5])
    text: List[VerseRead]


class SongTextResponse(Response):
    payload: SongTextPayload


class AddSongPayload(BaseModel):
    id: int = Field(..., examples=[48])


class AddSongResponse(Response):
    payload: AddSongPayload


class LibraryPayload(BaseModel):
    count: int = Field(..., examples=[10])
    library: List[SongRead]


class LibraryResponse(Response):
    payload: LibraryPayload


class ErrorResponse(BaseModel):
    status: int = Field(..., examples=[400])
    message: str = Field(..., examples=["bad request error"])
