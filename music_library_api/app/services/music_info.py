"""
Client for the external music info service.

When a song is added, the library asks an external service for its
release date, lyrics and link::

    GET {API_MUSIC_ADDRESS}/info?group=Muse&song=Supermassive%20Black%20Hole

    {"releaseDate": "16.07.2006", "text": "...", "link": "https://..."}

The client uses the ``requests`` library.  Any failure (transport
error, non-2xx answer, payload that does not match ``MusicInfo``) is
reported as ``MusicInfoUnavailable``.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from pydantic import ValidationError

from music_library_api.app.core.config import settings
from music_library_api.app.core.errors import MusicInfoUnavailable
from music_library_api.app.schemas.song import MusicInfo

logger = logging.getLogger(__name__)


class MusicInfoClient:
    """Thin wrapper around the ``/info`` endpoint of the music info service."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialise the client.

        Args:
            base_url: Address of the service.  Defaults to
                ``settings.music_api_address``.
            timeout: Request timeout in seconds.  Defaults to
                ``settings.music_api_timeout``.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
        """
        self.base_url = (base_url or settings.music_api_address).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.music_api_timeout
        self.session = session or requests.Session()

    def fetch(self, group: str, song: str) -> MusicInfo:
        """Return release date, lyrics and link for ``song`` by ``group``."""
        op = "music_info.fetch"
        url = f"{self.base_url}/info"
        try:
            logger.debug("Requesting song info from %s for %s - %s", url, group, song)
            response = self.session.request(
                method="GET",
                url=url,
                params={"group": group, "song": song},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error("Music info request failed (%s): %s", status, exc)
            raise MusicInfoUnavailable(f"music info service answered {status}", op=op) from exc
        except requests.RequestException as exc:
            logger.error("Music info request failed: %s", exc)
            raise MusicInfoUnavailable(str(exc), op=op) from exc
        except ValueError as exc:
            # ``response.json()`` on a non-JSON body
            raise MusicInfoUnavailable(f"malformed music info payload: {exc}", op=op) from exc

        try:
            return MusicInfo.model_validate(data)
        except ValidationError as exc:
            raise MusicInfoUnavailable(f"malformed music info payload: {exc}", op=op) from exc
