"""Command line interface for marketflow."""

from marketflow.cli.main import app, create_app

__all__ = ["app", "create_app"]
