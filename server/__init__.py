"""
Server package exposing the FastAPI app.
"""

from .app import app  # noqa: F401
