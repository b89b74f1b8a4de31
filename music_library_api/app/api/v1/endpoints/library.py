"""
Library endpoint for API v1.

Lists songs with their groups.  Supports pagination (``limit``,
``page``) and filtering by a search string and a release date range.
Dates are given as ``DD.MM.YYYY``.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Query

from music_library_api.app.core.errors import BadRequest
from music_library_api.app.schemas.song import ErrorResponse, LibraryPayload, LibraryResponse
from music_library_api.app.services.library_service import LibraryService

router = APIRouter()
logger = logging.getLogger(__name__)

DATE_FORMAT = "%d.%m.%Y"


def _parse_date(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as e:
        raise BadRequest(f"bad date format for {name}: '{value}'", op="library.get_library") from e


@router.get(
    "",
    response_model=LibraryResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_library(
    limit: int = Query(10, ge=1, le=1000),
    page: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Substring of a song or group name"),
    date_from: Optional[str] = Query(None, description="Earliest release date, DD.MM.YYYY"),
    date_to: Optional[str] = Query(None, description="Latest release date, DD.MM.YYYY"),
) -> LibraryResponse:
    """Return a page of the library."""
    start = _parse_date(date_from, "date_from")
    end = _parse_date(date_to, "date_to")
    count, library = await LibraryService.get_library(
        limit=limit,
        page=page,
        search=search,
        date_from=start,
        date_to=end,
    )
    logger.info("Got library page %s with %s songs", page, count)
    return LibraryResponse(payload=LibraryPayload(count=count, library=library))
