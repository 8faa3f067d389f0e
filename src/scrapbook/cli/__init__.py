"""Command line interface for the digital scrapbook."""

from scrapbook.cli.main import main, scrapbook

__all__ = ["main", "scrapbook"]
