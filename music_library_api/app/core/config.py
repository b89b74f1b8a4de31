"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  A ``.env`` file in the working directory is
loaded first (via ``python-dotenv``) so that local deployments can keep
database and music API settings next to the project.  Defaults are
provided for all fields.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Music Library API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # ``text`` for human readable lines, ``json`` for one JSON object per
    # record (useful when logs are shipped to a collector).
    log_format: str = os.getenv("LOG_FORMAT", "text")
    log_file: str = os.getenv("LOG_FILE", "")

    # Path to the SQLite database.  A relative path is resolved against
    # the project root by the ``db`` module.  Every request opens its own
    # connection, so ``:memory:`` cannot be used here.
    database_url: str = os.getenv("DATABASE_URL", "music_library.db")
    # Seconds a connection waits for another writer before giving up.
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5"))

    # Base address of the external service that provides release date,
    # lyrics and link for a new song.  ``/info`` is appended on request.
    music_api_address: str = os.getenv("API_MUSIC_ADDRESS", "http://localhost:8081")
    music_api_timeout: float = float(os.getenv("API_MUSIC_TIMEOUT", "10"))

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# should be set before importing this module.
settings = Settings()
