"""Shared utilities for the scrapbook package."""

from scrapbook.utils.logging import LogContext, setup_logging

__all__ = ["LogContext", "setup_logging"]
