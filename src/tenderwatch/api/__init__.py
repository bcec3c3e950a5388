"""HTTP API for tender data and scraper administration."""

from .app import create_app

__all__ = ["create_app"]
