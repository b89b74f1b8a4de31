"""
Application package initializer.

This package contains the main entrypoint for the API and its
submodules: ``core`` (configuration, logging, storage, errors),
``schemas`` (pydantic models), ``services`` (business logic, including
the verse chain that stores song lyrics) and ``api`` (versioned
routers).
"""

from .main import app  # noqa: F401
