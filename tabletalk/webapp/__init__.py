"""HTTP API for TableTalk."""

from tabletalk.webapp.app import create_app

__all__ = ["create_app"]
