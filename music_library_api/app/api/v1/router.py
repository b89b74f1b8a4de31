"""
Top‑level router for version 1 of the API.

This router aggregates the domain routers (library, songs) under a
unified prefix.  When new endpoints are added, update this file to
include their routers.
"""

from fastapi import APIRouter

from .endpoints import library, songs

router = APIRouter()

router.include_router(library.router, prefix="/library", tags=["library"])
router.include_router(songs.router, prefix="/song", tags=["song"])
