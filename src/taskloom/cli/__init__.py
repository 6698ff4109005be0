"""Command line interface for Taskloom."""

from taskloom.cli.main import app

__all__ = ["app"]
