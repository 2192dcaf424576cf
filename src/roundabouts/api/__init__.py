"""FastAPI bridge between a front-end and the rules engine."""

from .app import create_app  # noqa: F401
