"""
Exception hierarchy for the music library.

Every error carries the identity of the operation that raised it
(``op``, e.g. ``"verse_chain.delete_verse"``) and the HTTP status the
API layer should answer with.  Errors are passed through to the caller
unchanged; nothing in the service or storage layers retries.
"""

from typing import Optional


class MusicLibraryError(Exception):
    """Base exception for all music library errors."""

    status_code = 500
    default_message = "internal error"

    def __init__(self, message: Optional[str] = None, op: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.op = op
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.op:
            return f"{self.op}: {self.message}"
        return self.message


class BadRequest(MusicLibraryError):
    """Malformed client input (bad date, missing text)."""

    status_code = 400
    default_message = "bad request error"


class ReferenceNotFound(MusicLibraryError, ValueError):
    """A referenced song, verse or group does not exist."""

    status_code = 404
    default_message = "not found"


class StorageUnavailable(MusicLibraryError):
    """Connection or transaction failure in the relational store."""

    status_code = 503
    default_message = "storage unavailable"


class InvariantViolation(MusicLibraryError):
    """The verse chain is not in the shape the operation expects."""

    status_code = 500
    default_message = "verse chain invariant violated"


class MusicInfoUnavailable(MusicLibraryError):
    """The external music info service failed or answered garbage."""

    status_code = 502
    default_message = "music info service unavailable"
