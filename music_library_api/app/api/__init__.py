"""
API package containing versioned routes.

Each version subpackage (currently only ``v1``) exposes a ``router``
that ``main`` mounts under ``/api/<version>``.
"""
