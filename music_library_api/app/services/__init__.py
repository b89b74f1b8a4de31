"""
Service layer.

Each service encapsulates business logic for a domain.  Lyrics are
stored as a linked chain of verses managed by ``verse_chain``; the
song and library services build on it.
"""
