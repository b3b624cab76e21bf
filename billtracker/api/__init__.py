"""HTTP API for bill extraction."""

from billtracker.api.server import create_api

__all__ = ["create_api"]
